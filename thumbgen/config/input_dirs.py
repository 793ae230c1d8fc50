from pathlib import Path
from typing import Iterable, List, Optional
from thumbgen.domain.errors import ConfigurationError

MAX_INPUT_DIRS = 5000
QUOTE_CHARS = ('"', "'")


def split_dirs_argument(value: Optional[str]) -> List[str]:
    """Splits the comma-separated DIRS argument. None means it was not given."""
    if value is None:
        return []
    return value.split(",")


def clean_dir_entry(entry: Optional[str]) -> Optional[str]:
    """Trims whitespace and one pair of matching quotes; blank entries become None."""
    if entry is None:
        return None
    entry = entry.strip()
    if len(entry) >= 2 and entry[0] in QUOTE_CHARS and entry[-1] == entry[0]:
        entry = entry[1:-1]
    return entry or None


def expand_album_roots(roots: List[Path]) -> List[Path]:
    """Replaces each root with its sorted, non-hidden subdirectories.

    A root that is missing or unreadable is kept as-is so the catalog
    builder reports it.
    """
    albums: List[Path] = []
    for root in roots:
        try:
            children = sorted(
                (p for p in root.iterdir() if p.is_dir() and not p.name.startswith(".")),
                key=lambda p: p.name,
            )
        except OSError:
            albums.append(root)
            continue
        albums.extend(children)
    return albums


def resolve_locations(entries: Iterable[Optional[str]], albums: bool = False) -> List[Path]:
    """Turns raw folder entries from the CLI or config into catalog locations.

    Blank entries are dropped and a repeated folder keeps its first position.
    With `albums`, every entry is a root and its subfolders are the locations.

    Raises:
        ConfigurationError: nothing is left after cleaning, or more than
            MAX_INPUT_DIRS folders were given.
    """
    roots: List[Path] = []
    seen = set()
    for entry in entries:
        cleaned = clean_dir_entry(entry)
        if cleaned is None:
            continue
        path = Path(cleaned)
        if path not in seen:
            seen.add(path)
            roots.append(path)

    if not roots:
        raise ConfigurationError("No input directories provided in CLI or config.")
    if len(roots) > MAX_INPUT_DIRS:
        raise ConfigurationError(f"Too many input directories ({len(roots)}). Max {MAX_INPUT_DIRS}.")

    return expand_album_roots(roots) if albums else roots
