from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

OUTPUT_FORMATS = {".webp", ".jpg", ".jpeg", ".png"}


def _normalize_extensions(values: List[str]) -> List[str]:
    normalized = []
    for ext in values:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.append(ext if ext.startswith(".") else f".{ext}")
    return normalized


class GeneralConfig(BaseModel):
    parallelism: Optional[int] = Field(default=None, gt=0)  # None = CPU count
    target_height: int = Field(default=300, gt=0)
    timeout_s: Optional[float] = Field(default=None, gt=0)
    image_tool: str = "convert"
    video_tool: str = "ffmpeg"
    image_extensions: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".tif", ".tiff"]
    )
    video_extensions: List[str] = Field(
        default_factory=lambda: [".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v"]
    )
    thumbnail_name: str = "thumbnail.webp"
    output_dir: Optional[str] = None
    log_path: str = "/tmp/thumbgen/thumbgen.log"
    debug: bool = False

    @field_validator("image_extensions", "video_extensions")
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        return _normalize_extensions(v)

    @field_validator("thumbnail_name")
    @classmethod
    def validate_thumbnail_name(cls, v: str) -> str:
        name = Path(v)
        if name.name != v:
            raise ValueError(f"thumbnail_name must be a bare file name, got {v!r}")
        if name.suffix.lower() not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unsupported thumbnail format {name.suffix!r}. Use one of {sorted(OUTPUT_FORMATS)}"
            )
        return v

    @field_validator("image_tool", "video_tool")
    @classmethod
    def validate_tool(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("tool must not be empty")
        return v.strip()


class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    input_dirs: List[str] = Field(default_factory=list)
