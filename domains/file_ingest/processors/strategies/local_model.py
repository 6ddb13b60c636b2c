"""
On-device model classification via the local inference daemon.

The daemon exposes ``GET /health`` and ``POST /classify`` on localhost and
answers with ``{"assetType": ..., "genre": ..., "mood": ..., "confidence": ...}``.
"""

from typing import Optional

import httpx
from loguru import logger

from app.models.schemas import AssetType, Confidence
from domains.file_ingest.processors.strategies.base import Answered, Asset, Declined, StrategyOutcome, detail_text


class LocalModelStrategy:
    """Strategy backed by the local model daemon."""

    name = "local_model"

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize strategy.

        Args:
            base_url: Daemon base URL, e.g. http://127.0.0.1:17891
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self.transport)

    async def is_available(self, timeout: float = 1.0) -> bool:
        """Check daemon health."""
        try:
            async with self._client(timeout) as client:
                response = await client.get("/health")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def attempt(self, asset: Asset, timeout: float) -> StrategyOutcome:
        body = {"filename": asset.filename, "max_tokens": 150, "metadata": {}}
        if asset.origin_url:
            body["metadata"]["originUrl"] = asset.origin_url

        try:
            async with self._client(timeout) as client:
                response = await client.post("/classify", json=body)
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPError as e:
            logger.warning(f"Local model daemon unavailable: {e}")
            return Declined(f"daemon unavailable: {e.__class__.__name__}")
        except ValueError:
            return Declined("daemon returned invalid JSON")

        if not isinstance(data, dict):
            return Declined("daemon returned unexpected payload")

        if data.get("error"):
            logger.warning(f"Local model daemon error: {data['error']}")
            return Declined(f"daemon error: {data['error']}")

        asset_type = AssetType.parse(data.get("assetType"))
        if asset_type is AssetType.UNKNOWN:
            return Declined("daemon returned Unknown")

        timing = data.get("processing_time_ms")
        logger.debug(f"Local model: {asset.filename} -> {asset_type.value} ({timing or 'N/A'}ms)")

        return Answered(
            asset_type=asset_type,
            confidence=Confidence.parse(data.get("confidence"), Confidence.MEDIUM),
            genre=detail_text(data.get("genre")),
            mood=detail_text(data.get("mood")),
        )
