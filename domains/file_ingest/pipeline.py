"""
Ingest pipeline wiring.

Owns the registry, sweeper, extractor, orchestrator, router and event
emitter for one downloads directory. Hand-offs run on a small thread pool:
each worker merges a group, then classifies every extracted asset.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Set

from loguru import logger

from app.models.schemas import ClassificationResult
from app.utils.config import Settings, get_settings
from domains.file_ingest.collectors.fragments import FragmentDescriptor
from domains.file_ingest.collectors.registry import GroupRegistry, GroupSnapshot, GroupStatus
from domains.file_ingest.collectors.sweeper import CompletionSweeper
from domains.file_ingest.errors import ExtractionError
from domains.file_ingest.processors.classifier import ClassificationOrchestrator
from domains.file_ingest.processors.events import EventEmitter
from domains.file_ingest.processors.extractor import ArchiveExtractor, cleanup_leftover_scratch, delete_fragments
from domains.file_ingest.processors.router import ManifestRouter, Router
from domains.file_ingest.processors.strategies.heuristic import is_media_file


class IngestPipeline:
    """Everything between a parsed fragment and a routed result."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        emitter: Optional[EventEmitter] = None,
        orchestrator: Optional[ClassificationOrchestrator] = None,
        router: Optional[Router] = None,
        extractor: Optional[ArchiveExtractor] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize pipeline.

        Args:
            settings: Settings; cached settings when omitted
            emitter: Event emitter; built from settings when omitted
            orchestrator: Classification orchestrator; built from settings when omitted
            router: Routing collaborator; manifest router when omitted
            extractor: Archive extractor; writes into the output directory when omitted
            clock: Registry clock
        """
        self.settings = settings or get_settings()
        self.emitter = emitter or EventEmitter(self.settings)
        self.orchestrator = orchestrator or ClassificationOrchestrator(settings=self.settings, emitter=self.emitter)
        self.router = router or ManifestRouter(self.settings.get_routing_manifest())
        self.extractor = extractor or ArchiveExtractor(self.settings.get_output_dir())

        self.registry = GroupRegistry(clock=clock)
        self.sweeper = CompletionSweeper(
            self.registry,
            on_complete=self.hand_off,
            on_abandoned=self._on_abandoned,
            interval_seconds=self.settings.sweep_interval_seconds,
            staleness_seconds=self.settings.staleness_seconds,
        )

        self._executor: Optional[ThreadPoolExecutor] = None
        self._output_folders: Set[Path] = set()
        self._output_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._executor is not None

    def start(self):
        """Start workers, the sweeper and the event flush thread."""
        if self.running:
            return

        cleanup_leftover_scratch(self.extractor.output_dir)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.settings.worker_threads),
            thread_name_prefix="intake-worker",
        )
        self.emitter.start()
        self.sweeper.start()
        logger.success("Ingest pipeline started")

    def stop(self, timeout: Optional[float] = 30.0):
        """
        Stop the pipeline.

        In-flight hand-offs finish; queued ones are cancelled. Their fragments
        stay on disk and are picked up again by the next startup rescan.
        """
        self.sweeper.stop(timeout)

        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True, cancel_futures=True)

        self.emitter.stop(timeout)
        logger.info("Ingest pipeline stopped")

    # Intake -----------------------------------------------------------------

    def register_fragment(self, descriptor: FragmentDescriptor, origin_hint: Optional[str] = None) -> GroupStatus:
        """
        Add one fragment to its group and promote the group if that completed it.

        Returns:
            Registry status for the fragment
        """
        status = self.registry.add_fragment(descriptor, origin_hint=origin_hint)

        if status is GroupStatus.NEWLY_CREATED or (
            status is GroupStatus.BECAME_COMPLETE and descriptor.declared_total_parts == 1
        ):
            self.emitter.emit(
                "group_created",
                expected_parts=descriptor.declared_total_parts,
                has_origin=origin_hint is not None,
            )

        if status is GroupStatus.BECAME_COMPLETE:
            self.sweeper.promote(descriptor.group_key)

        return status

    def submit_asset(self, path: Path, origin_url: Optional[str] = None) -> Optional[Future]:
        """Classify a directly downloaded file in the background."""
        return self._submit(self.classify_asset, Path(path), origin_url, None)

    def hand_off(self, group: GroupSnapshot) -> Optional[Future]:
        """Receive a complete group from the sweeper."""
        return self._submit(self.process_group, group)

    def owns_path(self, path: Path) -> bool:
        """
        True for files inside a folder this pipeline merged an archive into.

        The output directory defaults to the downloads directory, so a
        recursive watcher sees every merged file arrive. Those files are
        classified by ``process_group`` and must not be picked up again.
        """
        resolved = Path(path).resolve()
        with self._output_lock:
            folders = list(self._output_folders)
        return any(folder == resolved or folder in resolved.parents for folder in folders)

    # Work -----------------------------------------------------------------

    def process_group(self, group: GroupSnapshot) -> List[ClassificationResult]:
        """Merge ``group`` and classify every media file it contained."""
        started = time.monotonic()

        with self._output_lock:
            self._output_folders.add(self.extractor.target_folder(group).resolve())

        try:
            files = self.extractor.extract(group)
        except ExtractionError as e:
            logger.error(f"Extraction failed for '{group.folder_name}': {e}")
            self.emitter.emit(
                "extraction_failed",
                expected_parts=group.expected_part_count,
                reason=str(e),
            )
            return []

        self.emitter.emit(
            "group_completed",
            expected_parts=group.expected_part_count,
            file_count=len(files),
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        results = []
        for path in files:
            if not is_media_file(path.name):
                logger.debug(f"Not classifying non-media file {path.name}")
                continue
            results.append(self.classify_asset(path, group.origin_hint, group.group_key))

        return results

    def classify_asset(
        self,
        path: Path,
        origin_url: Optional[str] = None,
        group_key: Optional[str] = None,
    ) -> ClassificationResult:
        """Classify one file and route the result."""
        result = self.orchestrator.classify_sync(path, origin_url, group_key)
        self.router.route(result)
        return result

    # Helper routines -----------------------------------------------------------------

    def _submit(self, fn, *args) -> Optional[Future]:
        executor = self._executor
        if executor is None:
            # Not started (tests, one-off API calls): run inline
            fn(*args)
            return None

        try:
            future = executor.submit(fn, *args)
        except RuntimeError:
            logger.warning("Pipeline is shutting down; work left for the next startup rescan")
            return None

        future.add_done_callback(self._log_failure)
        return future

    def _log_failure(self, future: Future):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Pipeline task failed: {error}")

    def _on_abandoned(self, group: GroupSnapshot):
        self.emitter.emit(
            "group_abandoned",
            expected_parts=group.expected_part_count,
            received_parts=len(group.parts),
            policy=self.settings.abandoned_fragment_policy,
        )

        if self.settings.abandoned_fragment_policy == "delete":
            removed = delete_fragments(group)
            logger.info(f"Deleted {removed} fragment(s) of abandoned group '{group.folder_name}'")
