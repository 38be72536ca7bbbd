"""Batch orchestrator: discovery, generation and targeted update passes."""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from photostream.config import ConfigManager
from photostream.geocoding import GeocoderFactory, LocationResolver
from photostream.processing.exceptions import FatalPipelineError, RecordFormatError
from photostream.processing.records import (
    RECORD_SUFFIX,
    ImageAsset,
    MetadataRecord,
    cover_image_src,
    publish_date,
    read_record,
    record_id,
    write_record,
)
from photostream.utils.compression import (
    CompressionBudgetExceeded,
    ImageCompressor,
    upload_budget,
)
from photostream.utils.exif import ExifRecord, extract_exif_data
from photostream.vision import AnalysisResult, AnalyzerFactory, ContentAnalyzer, MemoryWindow

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".jpg", ".jpeg", ".png", ".tiff", ".tif")


@dataclass
class ProcessingResult:
    """Result of processing a single image.

    Attributes:
        filename: Image filename
        success: Whether a record was written
        skipped: Whether the image was skipped
        record_id: Id of the record for this image
        title: Title written to the record
        location: Resolved location name
        used_fallback: Whether the filename-based fallback supplied the content
        processing_time: Time taken (seconds)
        error: Error message if failed
    """
    filename: str
    success: bool = False
    skipped: bool = False
    record_id: Optional[str] = None
    title: Optional[str] = None
    location: Optional[str] = None
    used_fallback: bool = False
    processing_time: float = 0.0
    error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.success:
            return "processed"
        if self.skipped:
            return "skipped"
        return "failed"


@dataclass
class BatchStats:
    """Statistics for a batch run.

    Attributes:
        total: Number of images considered
        processed: Number of records written
        skipped: Number of images skipped
        failed: Number of images that failed
        total_time: Wall time of the run (seconds)
        aborted: Whether the run was declined at confirmation
        results: Individual processing results
    """
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    total_time: float = 0.0
    aborted: bool = False
    results: List[ProcessingResult] = field(default_factory=list)

    def add(self, result: ProcessingResult) -> None:
        self.results.append(result)
        if result.success:
            self.processed += 1
        elif result.skipped:
            self.skipped += 1
        else:
            self.failed += 1


# (asset, extracted EXIF) pairs in processing order
Entry = Tuple[ImageAsset, ExifRecord]


class MetadataGenerator:
    """Orchestrates metadata generation for a directory of photos.

    This class coordinates:
    - Image discovery and date ordering
    - EXIF extraction
    - Compression and AI content analysis
    - Reverse geocoding
    - Record rendering and persistence

    Three modes are offered: generate(), update_exif() and
    update_locations(). Per-file problems are logged and counted; only an
    unusable assets root or content directory aborts a run.
    """

    def __init__(
        self,
        config: ConfigManager,
        analyzer: Optional[ContentAnalyzer] = None,
        resolver: Optional[LocationResolver] = None,
        compressor: Optional[ImageCompressor] = None,
    ) -> None:
        """Initialize the generator.

        Args:
            config: Configuration manager
            analyzer: Content analyzer (created from config if not provided)
            resolver: Location resolver (created from config if not provided)
            compressor: Image compressor (created from config if not provided)
        """
        self.config = config
        self.assets_dir = Path(config.get("photos.assets_directory")).expanduser()
        self.content_dir = Path(config.get("photos.content_directory")).expanduser()
        self.extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in config.get("photos.extensions", DEFAULT_EXTENSIONS)
        )
        self.draft = bool(config.get("photos.draft", False))

        self.analyzer = analyzer if analyzer is not None else AnalyzerFactory.create(config)
        self.resolver = resolver if resolver is not None else GeocoderFactory.create(config)

        if compressor is not None:
            self.compressor = compressor
        else:
            self.compressor = ImageCompressor(upload_budget(
                config.get("compression.max_upload_bytes", 5 * 1024 * 1024),
                config.get("compression.encoding_overhead", 0.75),
            ))

        logger.info(
            f"MetadataGenerator initialized: assets={self.assets_dir}, "
            f"content={self.content_dir}, ai={'on' if self.analyzer.enabled else 'off'}, "
            f"geocoding={'on' if self.resolver.enabled else 'off'}"
        )

    # Directory checks and discovery

    def _check_assets_dir(self) -> None:
        if not self.assets_dir.is_dir():
            raise FatalPipelineError("Assets directory not found", self.assets_dir)
        if not os.access(self.assets_dir, os.R_OK | os.X_OK):
            raise FatalPipelineError("Assets directory is not readable", self.assets_dir)

    def _check_content_dir(self, create: bool) -> None:
        if create:
            try:
                self.content_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FatalPipelineError(
                    f"Cannot create content directory ({e})", self.content_dir
                ) from e
        elif not self.content_dir.is_dir():
            raise FatalPipelineError("Content directory not found", self.content_dir)

        if not os.access(self.content_dir, os.W_OK | os.X_OK):
            raise FatalPipelineError("Content directory is not writable", self.content_dir)

    def discover_images(self) -> List[Path]:
        """Recursively find supported images under the assets directory."""
        self._check_assets_dir()
        images = [
            path for path in self.assets_dir.rglob("*")
            if path.is_file() and path.suffix.lower() in self.extensions
        ]
        logger.info(f"Found {len(images)} image(s) in {self.assets_dir}")
        return sorted(images)

    def _resolve_single(self, image_path: Union[str, Path]) -> Path:
        path = Path(image_path).expanduser()
        if not path.is_absolute() and not path.exists():
            path = self.assets_dir / path
        if not path.is_file():
            raise FatalPipelineError("Image file not found", path)
        return path

    def load_entries(self, paths: Sequence[Path]) -> List[Entry]:
        """Extract EXIF for each path and order by capture time.

        Images without a capture timestamp are ordered by modification time.
        Unreadable files are dropped with a warning.

        Returns:
            (asset, exif) pairs, oldest first
        """
        entries: List[Entry] = []
        for path in paths:
            try:
                asset = ImageAsset.from_path(path)
            except OSError as e:
                logger.warning(f"Cannot read {path}: {e}")
                continue
            entries.append((asset, extract_exif_data(str(path))))

        def sort_key(entry: Entry):
            asset, exif = entry
            when = exif.captured_at or asset.modified
            return (when.timestamp() if when else 0.0, asset.path.name)

        return sorted(entries, key=sort_key)

    def _collect(self, single_file: Optional[Union[str, Path]]) -> List[Entry]:
        if single_file:
            return self.load_entries([self._resolve_single(single_file)])
        return self.load_entries(self.discover_images())

    def record_path(self, asset: ImageAsset, exif: ExifRecord) -> Tuple[str, Path]:
        """Return the record id and record path for an image."""
        rid = record_id(publish_date(exif.captured_at, asset.modified), asset.path)
        return rid, self.content_dir / f"{rid}{RECORD_SUFFIX}"

    # Generate mode

    def generate(
        self,
        force: bool = False,
        single_file: Optional[Union[str, Path]] = None,
        confirm: Optional[Callable[[int], bool]] = None,
    ) -> BatchStats:
        """Generate records for every image without one.

        Args:
            force: Regenerate records that already exist, without confirmation
            single_file: Process only this image
            confirm: Called with the image count before a batch run; returning
                False aborts before anything is written

        Returns:
            BatchStats with results

        Raises:
            FatalPipelineError: If the assets or content directory is unusable
        """
        start_time = time.time()
        self._check_assets_dir()
        self._check_content_dir(create=True)

        entries = self._collect(single_file)
        stats = BatchStats(total=len(entries))

        if not entries:
            logger.info("No images to process")
            return stats

        if not force and not single_file and confirm is not None:
            if not confirm(len(entries)):
                logger.info("Processing cancelled")
                stats.aborted = True
                return stats

        memory = MemoryWindow()
        self.resolver.reset()

        for i, (asset, exif) in enumerate(entries, 1):
            logger.info(f"[{i}/{len(entries)}] Processing: {asset.name}")
            result = self.process_image(asset, exif, memory, force=force)
            stats.add(result)

            logger.info(
                f"  Result: {'✓ Success' if result.success else '○ Skipped' if result.skipped else '✗ Error'} "
                f"({result.processing_time:.1f}s)"
            )

        stats.total_time = time.time() - start_time
        logger.info(
            f"Generation complete: {stats.processed} processed, "
            f"{stats.skipped} skipped, {stats.failed} failed "
            f"(Total time: {stats.total_time:.1f}s)"
        )
        return stats

    def process_image(
        self,
        asset: ImageAsset,
        exif: ExifRecord,
        memory: MemoryWindow,
        force: bool = False
    ) -> ProcessingResult:
        """Generate and write the record for one image.

        Compression plus analysis runs alongside the location lookup.

        Args:
            asset: Source image
            exif: Extracted EXIF data
            memory: Memory window for this run
            force: Overwrite an existing record

        Returns:
            ProcessingResult
        """
        start_time = time.time()
        rid, path = self.record_path(asset, exif)
        result = ProcessingResult(filename=asset.name, record_id=rid)

        if path.exists() and not force:
            logger.info(f"  Skipping {asset.name} (record exists: {path.name})")
            result.skipped = True
            return result

        try:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="photostream") as executor:
                analysis_future = executor.submit(self._analyze, asset, exif, memory)
                location_future = executor.submit(self._resolve_location, exif)
                analysis = analysis_future.result()
                location_name = location_future.result()

            record = self.build_record(rid, asset, exif, analysis, location_name)
            write_record(path, record.to_frontmatter(), record.body())

            result.success = True
            result.title = record.title
            result.location = location_name
            result.used_fallback = analysis.fallback
            logger.info(f"  Title: {record.title}")
            if location_name:
                logger.info(f"  Location: {location_name}")

        except CompressionBudgetExceeded as e:
            logger.error(f"Error processing {asset.name}: {e}")
            result.error = str(e)
        except Exception as e:
            logger.error(f"Error processing {asset.name}: {e}", exc_info=True)
            result.error = str(e)

        result.processing_time = time.time() - start_time
        return result

    def _analyze(self, asset: ImageAsset, exif: ExifRecord, memory: MemoryWindow) -> AnalysisResult:
        if not self.analyzer.enabled:
            return self.analyzer.analyze(None, asset.name, exif, memory)

        image_bytes = self.compressor.compress_file(str(asset.path))
        return self.analyzer.analyze(image_bytes, asset.name, exif, memory)

    def _resolve_location(self, exif: ExifRecord) -> Optional[str]:
        if not exif.gps:
            return None
        return self.resolver.resolve(exif.gps.latitude, exif.gps.longitude)

    @staticmethod
    def location_mapping(exif: ExifRecord, name: Optional[str]) -> Optional[Dict[str, object]]:
        """Return the location front matter for an image with GPS."""
        if not exif.gps:
            return None
        location: Dict[str, object] = {
            "latitude": exif.gps.latitude,
            "longitude": exif.gps.longitude,
        }
        if name:
            location["name"] = name
        return location

    def build_record(
        self,
        rid: str,
        asset: ImageAsset,
        exif: ExifRecord,
        analysis: AnalysisResult,
        location_name: Optional[str] = None,
    ) -> MetadataRecord:
        """Merge EXIF, analysis and location into a MetadataRecord."""
        settings = exif.settings.to_dict() if exif.settings and not exif.settings.is_empty() else None

        return MetadataRecord(
            id=rid,
            title=analysis.title,
            description=analysis.description,
            alt_text=analysis.alt_text,
            tags=analysis.tags,
            published=publish_date(exif.captured_at, asset.modified),
            cover_src=cover_image_src(asset.path, self.content_dir),
            draft=self.draft,
            camera=exif.camera,
            lens=exif.lens,
            settings=settings,
            location=self.location_mapping(exif, location_name),
        )

    # Update modes

    def update_exif(self, single_file: Optional[Union[str, Path]] = None) -> BatchStats:
        """Refresh camera, lens and settings in existing records.

        Only fields present in the fresh EXIF data are overwritten; every
        other key and the record body are preserved.

        Raises:
            FatalPipelineError: If the assets or content directory is unusable
        """
        return self._run_update(single_file, self._update_exif_entry, "EXIF update")

    def update_locations(self, single_file: Optional[Union[str, Path]] = None) -> BatchStats:
        """Refresh the location of existing records for images with GPS.

        Raises:
            FatalPipelineError: If the assets or content directory is unusable
        """
        if not self.resolver.enabled:
            logger.warning("No geocoding provider available; location names cannot be resolved")
        self.resolver.reset()
        return self._run_update(single_file, self._update_location_entry, "Location update")

    def _run_update(
        self,
        single_file: Optional[Union[str, Path]],
        update: Callable[[ImageAsset, ExifRecord, ProcessingResult, Path], None],
        label: str,
    ) -> BatchStats:
        start_time = time.time()
        self._check_assets_dir()
        self._check_content_dir(create=False)

        entries = self._collect(single_file)
        stats = BatchStats(total=len(entries))

        if not entries:
            logger.info("No images to process")
            return stats

        for i, (asset, exif) in enumerate(entries, 1):
            logger.info(f"[{i}/{len(entries)}] {label}: {asset.name}")
            item_start = time.time()
            rid, path = self.record_path(asset, exif)
            result = ProcessingResult(filename=asset.name, record_id=rid)

            try:
                update(asset, exif, result, path)
            except (RecordFormatError, OSError) as e:
                logger.error(f"Error updating {asset.name}: {e}")
                result.error = str(e)
            except Exception as e:
                logger.error(f"Error updating {asset.name}: {e}", exc_info=True)
                result.error = str(e)

            result.processing_time = time.time() - item_start
            stats.add(result)

        stats.total_time = time.time() - start_time
        logger.info(
            f"{label} complete: {stats.processed} updated, "
            f"{stats.skipped} skipped, {stats.failed} failed "
            f"(Total time: {stats.total_time:.1f}s)"
        )
        return stats

    @staticmethod
    def _has_record(asset: ImageAsset, path: Path, result: ProcessingResult) -> bool:
        if path.exists():
            return True
        logger.warning(f"  No record found for {asset.name} ({path.name}), skipping")
        result.skipped = True
        return False

    def _update_exif_entry(
        self,
        asset: ImageAsset,
        exif: ExifRecord,
        result: ProcessingResult,
        path: Path
    ) -> None:
        if not self._has_record(asset, path, result):
            return

        updates: Dict[str, object] = {}
        if exif.camera:
            updates["camera"] = exif.camera
        if exif.lens:
            updates["lens"] = exif.lens
        if exif.settings and not exif.settings.is_empty():
            updates["settings"] = exif.settings.to_dict()

        if not updates:
            logger.info(f"  No EXIF data in {asset.name}, skipping")
            result.skipped = True
            return

        frontmatter, body = read_record(path)
        frontmatter.update(updates)
        write_record(path, frontmatter, body)

        result.success = True
        result.title = frontmatter.get("title")
        logger.info(f"  Updated {', '.join(updates)} in {path.name}")

    def _update_location_entry(
        self,
        asset: ImageAsset,
        exif: ExifRecord,
        result: ProcessingResult,
        path: Path
    ) -> None:
        if not exif.gps:
            logger.info(f"  No GPS data in {asset.name}, skipping")
            result.skipped = True
            return

        if not self._has_record(asset, path, result):
            return

        name = self._resolve_location(exif)
        if not name:
            logger.info(f"  Could not resolve location for {asset.name}, skipping")
            result.skipped = True
            return

        frontmatter, body = read_record(path)
        existing = frontmatter.get("location")
        location = dict(existing) if isinstance(existing, dict) else {}
        location.update(self.location_mapping(exif, name))
        frontmatter["location"] = location
        write_record(path, frontmatter, body)

        result.success = True
        result.location = name
        result.title = frontmatter.get("title")
        logger.info(f"  Location: {name}")
