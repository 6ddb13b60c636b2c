"""
Classification orchestrator.

Runs an ordered chain of strategies for one asset:

    local model -> remote LLM -> web lookup -> heuristic

Only strategies enabled in settings take part; the heuristic is always there.
Each attempt is bounded by the per-strategy timeout and by what is left of the
global budget. A timeout or an exception counts as a decline, and so does an
answer with the wrong shape. The first answer at or above the minimum
confidence ends the chain. Otherwise the best answer seen wins, and the
heuristic (computed up front) is the floor, so a result is always returned.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from app.models.schemas import AssetType, ClassificationResult, Confidence
from app.utils.config import Settings, get_settings
from domains.file_ingest.processors.events import EventEmitter
from domains.file_ingest.processors.strategies.base import Answered, Asset, ClassificationStrategy, Declined
from domains.file_ingest.processors.strategies.heuristic import HeuristicStrategy
from domains.file_ingest.processors.strategies.local_model import LocalModelStrategy
from domains.file_ingest.processors.strategies.remote_llm import RemoteLLMStrategy
from domains.file_ingest.processors.strategies.web_lookup import StockMetadataCache, WebLookupStrategy


@dataclass(frozen=True)
class ClassificationRequest:
    """One asset plus the chain and limits to classify it with."""

    asset: Asset
    strategies: Sequence[ClassificationStrategy]
    strategy_timeout: float
    budget: float
    min_confidence: Confidence = Confidence.MEDIUM
    detail: bool = True


def build_strategy_chain(settings: Settings) -> List[ClassificationStrategy]:
    """
    Ordered, enabled strategies from configuration.

    The heuristic is not part of the list; the orchestrator always adds it.
    """
    chain: List[ClassificationStrategy] = []

    if settings.use_local_model:
        chain.append(LocalModelStrategy(settings.local_model_url))

    if settings.use_remote_llm:
        chain.append(
            RemoteLLMStrategy(
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
                api_url=settings.anthropic_api_url,
            )
        )

    if settings.use_web_scraping and settings.use_genre_mood_detection:
        chain.append(WebLookupStrategy(StockMetadataCache(settings.get_stock_metadata_cache())))

    return chain


class ClassificationOrchestrator:
    """Fallback engine around the strategy chain."""

    def __init__(
        self,
        strategies: Optional[Sequence[ClassificationStrategy]] = None,
        settings: Optional[Settings] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            strategies: Ordered chain; derived from settings when omitted
            settings: Settings for timeouts, threshold and detail
            emitter: Event side channel
        """
        self.settings = settings or get_settings()
        self.strategies = list(strategies) if strategies is not None else build_strategy_chain(self.settings)
        self.fallback = HeuristicStrategy()
        self.emitter = emitter

        names = [s.name for s in self.strategies] + [self.fallback.name]
        logger.info(f"Classification chain: {' -> '.join(names)}")

    def build_request(self, path: Path, origin_url: Optional[str] = None, group_key: Optional[str] = None) -> ClassificationRequest:
        return ClassificationRequest(
            asset=Asset(path=Path(path), origin_url=origin_url, group_key=group_key),
            strategies=self.strategies,
            strategy_timeout=self.settings.strategy_timeout_seconds,
            budget=self.settings.classification_budget_seconds,
            min_confidence=Confidence(self.settings.min_confidence),
            detail=self.settings.use_genre_mood_detection,
        )

    async def classify_path(self, path: Path, origin_url: Optional[str] = None, group_key: Optional[str] = None) -> ClassificationResult:
        """Classify ``path`` with the configured chain."""
        return await self.classify(self.build_request(path, origin_url, group_key))

    async def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """
        Resolve one request. Never raises, always returns a result.

        Args:
            request: Asset, chain and limits

        Returns:
            ClassificationResult attributed to the strategy that answered
        """
        started = time.monotonic()
        deadline = started + request.budget
        asset = request.asset

        # Eager floor: pure and instantaneous.
        best: Tuple[str, Answered] = (self.fallback.name, self.fallback.evaluate(asset))
        accepted = False

        for strategy in request.strategies:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"Classification budget exhausted before {strategy.name} for {asset.filename}")
                break

            timeout = min(request.strategy_timeout, remaining)
            outcome = await self._attempt(strategy, asset, timeout)

            if isinstance(outcome, Declined):
                logger.debug(f"{strategy.name} declined {asset.filename}: {outcome.reason}")
                continue

            if outcome.confidence >= request.min_confidence:
                best = (strategy.name, outcome)
                accepted = True
                break

            logger.debug(
                f"{strategy.name} answered {outcome.asset_type.value} for {asset.filename} "
                f"below threshold ({outcome.confidence.value} < {request.min_confidence.value})"
            )
            if outcome.confidence > best[1].confidence:
                best = (strategy.name, outcome)

        method, answer = best
        duration_ms = int((time.monotonic() - started) * 1000)

        result = ClassificationResult(
            asset_type=answer.asset_type,
            confidence=answer.confidence,
            method=method,
            duration_ms=duration_ms,
            asset_path=str(asset.path),
            genre=answer.genre if request.detail else None,
            mood=answer.mood if request.detail else None,
            sfx_category=answer.sfx_category if request.detail else None,
        )

        logger.info(
            f"Classified {asset.filename}: {result.asset_type.value} "
            f"({result.confidence.value}, {result.method}, {duration_ms}ms"
            f"{'' if accepted else ', fallback'})"
        )
        self._emit(
            "classification_resolved",
            asset_type=result.asset_type.value,
            confidence=result.confidence.value,
            method=result.method,
            duration_ms=result.duration_ms,
        )
        return result

    def classify_sync(self, path: Path, origin_url: Optional[str] = None, group_key: Optional[str] = None) -> ClassificationResult:
        """Synchronous wrapper for worker threads."""
        return asyncio.run(self.classify_path(path, origin_url, group_key))

    async def _attempt(self, strategy: ClassificationStrategy, asset: Asset, timeout: float):
        try:
            # wait_for cancels the attempt on timeout, which closes its HTTP call
            outcome = await asyncio.wait_for(strategy.attempt(asset, timeout), timeout)

        except asyncio.TimeoutError:
            logger.warning(f"{strategy.name} timed out after {timeout:.1f}s on {asset.filename}")
            self._emit("classification_strategy_failed", method=strategy.name, reason="timeout")
            return Declined("timeout")

        except Exception as e:
            logger.warning(f"{strategy.name} failed on {asset.filename}: {e}")
            self._emit(
                "classification_strategy_failed",
                method=strategy.name,
                reason=e.__class__.__name__,
            )
            return Declined(f"error: {e.__class__.__name__}")

        if isinstance(outcome, Declined):
            return outcome
        if not _well_formed(outcome):
            logger.warning(f"{strategy.name} returned a malformed answer for {asset.filename}: {outcome!r}")
            self._emit("classification_strategy_failed", method=strategy.name, reason="malformed")
            return Declined("malformed answer")
        return outcome

    def _emit(self, event_type: str, **payload):
        if self.emitter is not None:
            self.emitter.emit(event_type, **payload)


def _well_formed(outcome) -> bool:
    if not isinstance(outcome, Answered):
        return False
    if not isinstance(outcome.asset_type, AssetType) or not isinstance(outcome.confidence, Confidence):
        return False
    details = (outcome.genre, outcome.mood, outcome.sfx_category)
    return all(value is None or isinstance(value, str) for value in details)
