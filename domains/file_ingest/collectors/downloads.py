"""
Downloads directory watcher.

Feeds fragment files into the pipeline's group registry and sends other
media files straight to classification. Uses the watchdog library for
cross-platform file system event monitoring.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from app.utils.helpers import read_origin_url, should_exclude_path
from domains.file_ingest.collectors.fragments import parse_fragment_path
from domains.file_ingest.collectors.registry import GroupStatus
from domains.file_ingest.errors import ConfigError
from domains.file_ingest.pipeline import IngestPipeline
from domains.file_ingest.processors.strategies.heuristic import is_media_file


class DownloadsEventHandler(FileSystemEventHandler):
    """Routes new files in the downloads directory."""

    def __init__(self, pipeline: IngestPipeline):
        """
        Initialize event handler.

        Args:
            pipeline: Pipeline receiving fragments and media files
        """
        super().__init__()
        self.pipeline = pipeline

    def should_process(self, path: Path) -> bool:
        """
        Check if path should be processed.

        Args:
            path: File path

        Returns:
            True if should process, False otherwise
        """
        # Hidden, in-progress downloads and extraction scratch folders
        if should_exclude_path(path):
            return False

        # Files this pipeline merged out of an archive
        if self.pipeline.owns_path(path):
            return False

        return path.is_file()

    def on_created(self, event: FileSystemEvent):
        """Handle file creation."""
        if event.is_directory:
            return
        self.handle_path(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent):
        """Handle rename, e.g. ``.crdownload`` -> final name."""
        if event.is_directory:
            return
        self.handle_path(Path(event.dest_path))

    def handle_path(self, path: Path) -> Optional[GroupStatus]:
        """
        Process one file that appeared in the downloads directory.

        Returns:
            Registry status when the file was a fragment
        """
        if not self.should_process(path):
            return None

        try:
            descriptor = parse_fragment_path(path)
            if descriptor is not None:
                status = self.pipeline.register_fragment(descriptor, origin_hint=read_origin_url(path))
                logger.debug(f"Fragment {path.name}: {status.value}")
                if status is GroupStatus.NEWLY_CREATED:
                    self.register_siblings(path.parent, descriptor.group_key)
                return status

            if is_media_file(path.name):
                logger.info(f"New download: {path.name}")
                self.pipeline.submit_asset(path, origin_url=read_origin_url(path))

        except Exception as e:
            logger.error(f"Failed to handle {path}: {e}")

        return None

    def register_siblings(self, directory: Path, group_key: str) -> int:
        """
        Register parts of ``group_key`` that were already on disk.

        Covers parts that landed before the first event for the group was
        seen, e.g. while the watcher was restarting.
        """
        found = 0
        for sibling in sorted(directory.glob("*.zip")):
            descriptor = parse_fragment_path(sibling)
            if descriptor is None or descriptor.group_key != group_key:
                continue
            if not self.should_process(sibling):
                continue
            self.pipeline.register_fragment(descriptor, origin_hint=read_origin_url(sibling))
            found += 1
        return found


class DownloadsWatcher:
    """Downloads directory monitoring orchestrator."""

    def __init__(self, pipeline: IngestPipeline, directory: Optional[Path] = None, recursive: Optional[bool] = None):
        """
        Initialize downloads watcher.

        Args:
            pipeline: Pipeline to feed
            directory: Directory to watch; settings when omitted
            recursive: Watch subdirectories; settings when omitted
        """
        settings = pipeline.settings
        self.pipeline = pipeline
        self.directory = directory or settings.get_downloads_dir()
        self.recursive = settings.watch_recursive if recursive is None else recursive

        self.event_handler = DownloadsEventHandler(pipeline)
        self.observer: Optional[Observer] = None

        logger.info(f"Downloads watcher initialized for {self.directory}")

    @property
    def running(self) -> bool:
        return self.observer is not None and self.observer.is_alive()

    def scan_existing(self) -> int:
        """
        Register fragments already present in the downloads directory.

        Groups interrupted by a restart either complete from here or are
        reaped as abandoned by the sweeper.
        """
        if not self.directory.exists():
            logger.warning(f"Downloads directory does not exist: {self.directory}")
            return 0

        pattern = "**/*.zip" if self.recursive else "*.zip"
        count = 0
        for path in sorted(self.directory.glob(pattern)):
            descriptor = parse_fragment_path(path)
            if descriptor is None or not self.event_handler.should_process(path):
                continue
            self.pipeline.register_fragment(descriptor, origin_hint=read_origin_url(path))
            count += 1

        if count:
            logger.info(f"Recovered {count} fragment(s) already on disk")
        return count

    def start_watching(self):
        """Start the observer, then pick up fragments that landed while nothing was watching."""
        if self.directory.exists() and not self.directory.is_dir():
            raise ConfigError(f"Downloads path is not a directory: {self.directory}")
        self.directory.mkdir(parents=True, exist_ok=True)

        self.observer = Observer()
        self.observer.schedule(self.event_handler, str(self.directory), recursive=self.recursive)
        self.observer.daemon = True
        self.observer.start()
        self.scan_existing()
        logger.success(f"Started watching: {self.directory}")

    def stop_watching(self):
        """Stop watching."""
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join()
        self.observer = None
        logger.info("Downloads observer stopped")
