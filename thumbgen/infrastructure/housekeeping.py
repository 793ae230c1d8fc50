from pathlib import Path
from typing import Iterable, Set


class HousekeepingService:
    """Removes partial thumbnail files left behind by interrupted runs."""

    def cleanup_temp_files(self, destinations: Iterable[Path]) -> int:
        """Deletes the .tmp sibling of each destination path. Returns count removed."""
        removed = 0
        seen: Set[Path] = set()
        for destination in destinations:
            tmp_path = destination.with_suffix(".tmp")
            if tmp_path in seen:
                continue
            seen.add(tmp_path)
            if tmp_path.is_file():
                try:
                    tmp_path.unlink()
                    removed += 1
                except OSError:
                    pass
        return removed
