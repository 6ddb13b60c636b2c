"""
Completion sweeper for fragment groups.

Runs on its own thread, independent of filesystem event handling. Every pass
hands complete groups to the extraction callback exactly once and reaps groups
that stopped receiving parts. All removal goes through the registry, which
takes the group's lock, so a fragment arriving mid-sweep is never lost.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from loguru import logger

from domains.file_ingest.collectors.registry import GroupRegistry, GroupSnapshot, SweepResult

GroupCallback = Callable[[GroupSnapshot], None]


class CompletionSweeper:
    """Periodic promoter/reaper for the group registry."""

    def __init__(
        self,
        registry: GroupRegistry,
        on_complete: GroupCallback,
        on_abandoned: Optional[GroupCallback] = None,
        interval_seconds: float = 5.0,
        staleness_seconds: float = 600.0,
    ):
        """
        Initialize sweeper.

        Args:
            registry: Registry to sweep
            on_complete: Receives each complete group once
            on_abandoned: Receives each reaped incomplete group once
            interval_seconds: Pause between passes
            staleness_seconds: Idle time after which an incomplete group is abandoned
        """
        self.registry = registry
        self.on_complete = on_complete
        self.on_abandoned = on_abandoned
        self.interval_seconds = interval_seconds
        self.staleness_seconds = staleness_seconds

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start sweeping in the background."""
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="completion-sweeper", daemon=True)
        self._thread.start()
        logger.success(
            f"Completion sweeper started (interval={self.interval_seconds}s, "
            f"staleness={self.staleness_seconds}s)"
        )

    def stop(self, timeout: Optional[float] = None):
        """Stop sweeping and wait for the current pass to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Completion sweeper stopped")

    def sweep_once(self) -> SweepResult:
        """Run one pass and dispatch callbacks."""
        result = self.registry.sweep(self.staleness_seconds)

        for group in result.completed:
            self._dispatch(self.on_complete, group, "hand-off")

        for group in result.abandoned:
            logger.warning(
                f"Abandoning fragment group '{group.folder_name}': "
                f"{len(group.parts)}/{group.expected_part_count} parts received"
            )
            if self.on_abandoned is not None:
                self._dispatch(self.on_abandoned, group, "abandon")

        return result

    def promote(self, group_key: str) -> bool:
        """
        Hand off one complete group immediately.

        Returns:
            True if this call performed the hand-off
        """
        group = self.registry.claim_complete(group_key)
        if group is None:
            return False

        self._dispatch(self.on_complete, group, "hand-off")
        return True

    def _run(self):
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.sweep_once()
            except Exception as e:
                logger.error(f"Sweep pass failed: {e}")

    def _dispatch(self, callback: GroupCallback, group: GroupSnapshot, action: str):
        try:
            callback(group)
        except Exception as e:
            logger.error(f"Fragment group {group.group_key} {action} failed: {e}")
