"""
Event emitter for pipeline outcomes.

Fire-and-forget side channel: ``emit`` only validates and enqueues. A flush
thread sends batches to the analytics endpoint. Nothing here ever raises into
the grouping or classification code; delivery failures are logged and the
batch goes back on the queue for the next flush.
"""

from __future__ import annotations

import json
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Deque, List, Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from app.models.schemas import AnalyticsEvent
from app.utils.config import Settings

Listener = Callable[[AnalyticsEvent], None]


class EventEmitter:
    """Buffered analytics event emitter."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        recent_size: int = 200,
    ):
        """
        Initialize emitter.

        Args:
            settings: Analytics settings
            transport: Optional httpx transport (tests)
            recent_size: How many events to keep for inspection
        """
        self.enabled = settings.analytics_enabled
        self.url = settings.analytics_url
        self.api_key = settings.analytics_api_key
        self.anonymous_id = settings.analytics_anonymous_id
        self.app_version = settings.api_version
        self.locale = settings.locale
        self.batch_size = settings.analytics_batch_size
        self.flush_interval = settings.analytics_flush_interval
        self.max_queue = settings.analytics_max_queue
        self.queue_file: Optional[Path] = settings.get_analytics_queue_file() if self.enabled else None
        self.transport = transport

        self._lock = threading.Lock()
        self._queue: List[AnalyticsEvent] = []
        self._recent: Deque[AnalyticsEvent] = deque(maxlen=recent_size)
        self._listeners: List[Listener] = []
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._load_queue()

    # Public API -----------------------------------------------------------------

    def emit(self, event_type: str, **payload) -> Optional[AnalyticsEvent]:
        """
        Record an event. Never raises.

        Args:
            event_type: e.g. group_completed
            **payload: Flat scalar values (str, int, float, bool)

        Returns:
            The recorded event, or None if it was rejected
        """
        try:
            event = AnalyticsEvent(
                event_type=event_type,
                event_data={k: v for k, v in payload.items() if v is not None},
                app_version=self.app_version,
                locale=self.locale,
            )
        except ValidationError as e:
            logger.warning(f"Dropping malformed event {event_type}: {e.error_count()} invalid field(s)")
            return None

        with self._lock:
            self._recent.append(event)
            listeners = list(self._listeners)
            if self.enabled:
                self._queue.append(event)
                if len(self._queue) > self.max_queue:
                    del self._queue[: len(self._queue) - self.max_queue]
                if len(self._queue) >= self.batch_size:
                    self._wake.set()

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.debug(f"Event listener failed: {e}")

        logger.debug(f"Event {event_type}: {event.event_data}")
        return event

    def subscribe(self, listener: Listener):
        with self._lock:
            self._listeners.append(listener)

    def recent(self, limit: int = 50) -> List[AnalyticsEvent]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._recent)[-limit:]

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def start(self):
        """Start the background flush thread."""
        if not self.enabled or (self._thread is not None and self._thread.is_alive()):
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="event-flush", daemon=True)
        self._thread.start()
        logger.info(f"Analytics flush thread started (every {self.flush_interval}s)")

    def stop(self, timeout: Optional[float] = 10.0):
        """Stop the flush thread after a final flush."""
        self._stop_event.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._save_queue()

    def flush(self) -> bool:
        """
        Send everything queued.

        Returns:
            True if the queue was delivered (or empty)
        """
        with self._lock:
            if not self._queue:
                return True
            batch = self._queue
            self._queue = []

        delivered = self._send(batch)

        with self._lock:
            if not delivered:
                # Oldest first, capped so a dead endpoint cannot grow the queue forever
                self._queue = (batch + self._queue)[-self.max_queue:]
            queued = len(self._queue)

        if delivered:
            logger.debug(f"Delivered {len(batch)} analytics events")
        else:
            logger.warning(f"Analytics delivery failed, {queued} events queued")

        self._save_queue()
        return delivered

    # Helper routines -----------------------------------------------------------------

    def _run(self):
        while not self._stop_event.is_set():
            self._wake.wait(self.flush_interval)
            self._wake.clear()
            self.flush()

    def _send(self, batch: List[AnalyticsEvent]) -> bool:
        if not self.url:
            logger.debug("Analytics endpoint not configured, keeping events local")
            return True

        rows = [
            {
                "anonymous_id": self.anonymous_id,
                "event_type": event.event_type,
                "event_data": event.event_data,
                "app_version": event.app_version,
                "os_version": event.os_version,
                "locale": event.locale,
                "created_at": event.timestamp.isoformat(),
            }
            for event in batch
        ]
        headers = {"Prefer": "return=minimal"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            with httpx.Client(timeout=15.0, transport=self.transport) as client:
                response = client.post(self.url, json=rows, headers=headers)
            return response.is_success

        except httpx.HTTPError as e:
            logger.warning(f"Analytics endpoint unreachable: {e}")
            return False

    def _save_queue(self):
        if self.queue_file is None:
            return
        with self._lock:
            payload = [event.model_dump(mode="json") for event in self._queue]

        try:
            tmp_path = self.queue_file.with_name(self.queue_file.name + ".tmp")
            tmp_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload), encoding="utf-8")
            tmp_path.replace(self.queue_file)
        except OSError as e:
            logger.warning(f"Could not persist analytics queue: {e}")

    def _load_queue(self):
        if self.queue_file is None or not self.queue_file.exists():
            return

        try:
            raw = json.loads(self.queue_file.read_text(encoding="utf-8"))
            self._queue = [AnalyticsEvent.model_validate(item) for item in raw][-self.max_queue:]
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Discarding unreadable analytics queue {self.queue_file}: {e}")
            self._queue = []
            return

        if self._queue:
            logger.info(f"Loaded {len(self._queue)} queued analytics events")
