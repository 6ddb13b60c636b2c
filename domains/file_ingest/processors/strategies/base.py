"""
Base classification strategy protocol.

Every strategy either declines or answers with an asset type and a confidence.
Strategies should not raise; the orchestrator treats an exception exactly like
a decline anyway.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from app.models.schemas import AssetType, Confidence
from app.utils.helpers import get_file_extension


@dataclass(frozen=True, slots=True)
class Asset:
    """An extracted (or directly downloaded) file to classify."""

    path: Path
    origin_url: Optional[str] = None
    group_key: Optional[str] = None

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return get_file_extension(self.path)


@dataclass(frozen=True, slots=True)
class Declined:
    """Strategy has no answer for this asset."""

    reason: str


@dataclass(frozen=True, slots=True)
class Answered:
    """Strategy answer."""

    asset_type: AssetType
    confidence: Confidence
    genre: Optional[str] = None
    mood: Optional[str] = None
    sfx_category: Optional[str] = None


StrategyOutcome = Union[Declined, Answered]


def detail_text(value) -> Optional[str]:
    """Keep a genre, mood or category label only if a model returned it as text."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class ClassificationStrategy(Protocol):
    """One technique in the fallback chain."""

    # Reported as ClassificationResult.method
    name: str

    async def attempt(self, asset: Asset, timeout: float) -> StrategyOutcome:
        """
        Classify ``asset`` within ``timeout`` seconds.

        Returns:
            Declined or Answered
        """
        ...
