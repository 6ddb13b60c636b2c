"""
Routing collaborators.

A router receives one ClassificationResult per asset. The destination
application bridge reads the routing manifest; this process only records.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

from loguru import logger

from app.models.schemas import ClassificationResult
from app.utils.helpers import now_iso


class Router(Protocol):
    def route(self, result: ClassificationResult) -> None:
        ...


class LoggingRouter:
    """Router that only logs results."""

    def route(self, result: ClassificationResult) -> None:
        logger.info(
            f"Route: {result.asset_path} -> {result.asset_type.value} "
            f"(method={result.method}, confidence={result.confidence.value})"
        )


class ManifestRouter:
    """Keeps a JSON manifest of classified assets keyed by absolute path."""

    def __init__(self, manifest_path: Path):
        self.manifest_path = manifest_path
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, object]] = self._load()

    def route(self, result: ClassificationResult) -> None:
        if not result.asset_path:
            logger.warning(f"Not routing result without asset path ({result.asset_type.value})")
            return

        entry = result.model_dump(mode="json")
        entry["routed_at"] = now_iso()

        with self._lock:
            self._entries[result.asset_path] = entry
            self._dump()

        logger.debug(f"Manifest updated: {result.asset_path} -> {result.asset_type.value}")

    def get(self, asset_path: str) -> Optional[Dict[str, object]]:
        with self._lock:
            return self._entries.get(asset_path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _load(self) -> Dict[str, Dict[str, object]]:
        if not self.manifest_path.exists():
            return {}

        try:
            rows = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Starting a fresh routing manifest, could not read {self.manifest_path}: {e}")
            return {}

        return {row["asset_path"]: row for row in rows if isinstance(row, dict) and row.get("asset_path")}

    def _dump(self) -> None:
        # Caller holds the lock.
        ordered = sorted(self._entries.values(), key=lambda row: row["asset_path"])

        tmp_path = self.manifest_path.with_name(self.manifest_path.name + ".tmp")
        tmp_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(ordered, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.manifest_path)
