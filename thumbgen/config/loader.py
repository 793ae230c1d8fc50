import yaml
from pathlib import Path
from .models import AppConfig


def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    # Allow a flat file without the 'general' section
    if "general" not in data:
        input_dirs = data.pop("input_dirs", [])
        data = {"general": data, "input_dirs": input_dirs}

    return AppConfig(**data)
