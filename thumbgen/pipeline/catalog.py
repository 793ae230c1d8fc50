import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from thumbgen.config.models import GeneralConfig
from thumbgen.domain.errors import EnumerationError, EnumerationReason
from thumbgen.domain.events import CatalogBuilt
from thumbgen.domain.models import Catalog, ConversionJob, MediaKind
from thumbgen.infrastructure.event_bus import EventBus


class CatalogBuilder:
    """Derives one ConversionJob per input location.

    Only reads the filesystem. Problems with a single location end up in
    `Catalog.errors` and never stop the scan of the remaining locations.
    """

    def __init__(self, config: GeneralConfig, event_bus: Optional[EventBus] = None):
        self.config = config
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)
        self._image_exts = set(config.image_extensions)
        self._video_exts = set(config.video_extensions)
        self._output_dir: Optional[Path] = Path(config.output_dir) if config.output_dir else None

    def media_kind_for(self, path: Path) -> Optional[MediaKind]:
        suffix = path.suffix.lower()
        if suffix in self._image_exts:
            return MediaKind.IMAGE
        if suffix in self._video_exts:
            return MediaKind.VIDEO
        return None

    def destination_for(self, location: Path) -> Path:
        if self._output_dir is None:
            return location / self.config.thumbnail_name
        return self._output_dir / f"{location.name}{Path(self.config.thumbnail_name).suffix}"

    def _is_candidate(self, path: Path, destination: Path) -> bool:
        if path.name.startswith("."):
            return False
        if path.suffix.lower() == ".tmp":
            return False
        # Never pick a previous run's thumbnail as the source
        if path.name == destination.name and path.parent == destination.parent:
            return False
        return path.is_file()

    def _list_files(self, location: Path, destination: Path) -> List[Path]:
        return sorted(
            (p for p in location.iterdir() if self._is_candidate(p, destination)),
            key=lambda p: p.name,
        )

    def _build_entry(self, location: Path) -> Union[ConversionJob, EnumerationError]:
        destination = self.destination_for(location)
        try:
            if not location.exists():
                return EnumerationError(location, EnumerationReason.MISSING, f"Location does not exist: {location}")
            if not location.is_dir():
                return EnumerationError(location, EnumerationReason.MISSING, f"Location is not a directory: {location}")
            files = self._list_files(location, destination)
        except OSError as e:
            return EnumerationError(location, EnumerationReason.UNREADABLE, f"Cannot read {location}: {e}")

        if not files:
            return EnumerationError(location, EnumerationReason.NO_ARTIFACT, f"No media file in {location}")

        for path in files:
            kind = self.media_kind_for(path)
            if kind is not None:
                return ConversionJob(source_path=path, destination_path=destination, media_kind=kind)

        return EnumerationError(
            location,
            EnumerationReason.UNSUPPORTED_EXTENSION,
            f"Unrecognized media extension: {files[0].name}",
        )

    def build(self, locations: Iterable[Path]) -> Catalog:
        """Scans each location in order and returns the jobs and per-entry errors."""
        catalog = Catalog()
        locations = list(locations)
        claimed: Dict[Path, Path] = {}
        for location in locations:
            location = Path(location)
            entry = self._build_entry(location)
            if isinstance(entry, ConversionJob):
                # Two jobs must never share a destination (and its .tmp file)
                owner = claimed.get(entry.destination_path)
                if owner is not None:
                    entry = EnumerationError(
                        location,
                        EnumerationReason.DESTINATION_CONFLICT,
                        f"Thumbnail {entry.destination_path} is already produced for {owner}",
                    )
                else:
                    claimed[entry.destination_path] = location
            if isinstance(entry, EnumerationError):
                self.logger.warning(f"CATALOG_ENTRY_ERROR: {entry.location} reason={entry.reason.value} ({entry.message})")
                catalog.errors.append(entry)
            else:
                self.logger.debug(f"CATALOG_ENTRY: {entry.source_path} -> {entry.destination_path} ({entry.media_kind.value})")
                catalog.jobs.append(entry)

        self.logger.info(f"Catalog built: jobs={len(catalog.jobs)}, errors={len(catalog.errors)}")
        if self.event_bus is not None:
            self.event_bus.publish(CatalogBuilt(
                locations_count=len(locations),
                jobs_count=len(catalog.jobs),
                errors=list(catalog.errors),
            ))
        return catalog
