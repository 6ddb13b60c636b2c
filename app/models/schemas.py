"""
Pydantic models for The Intake.

Shared data models across the application.
"""

import locale as _locale
import platform
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

from app.utils.helpers import generate_uuid


# =====================================================
# Classification Models
# =====================================================

class AssetType(str, Enum):
    """Media categories the router knows how to place."""
    MUSIC = "Music"
    SFX = "SFX"
    VO = "VO"
    MOTION_GRAPHIC = "MotionGraphic"
    GRAPHIC = "Graphic"
    STOCK_FOOTAGE = "StockFootage"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AssetType":
        """Lenient parse of labels returned by models and daemons."""
        if not isinstance(value, str) or not value:
            return cls.UNKNOWN
        key = value.strip().lower().replace("-", "").replace("_", "").replace(" ", "")
        aliases = {
            "music": cls.MUSIC,
            "sfx": cls.SFX,
            "soundeffect": cls.SFX,
            "vo": cls.VO,
            "voice": cls.VO,
            "voiceover": cls.VO,
            "motiongraphic": cls.MOTION_GRAPHIC,
            "graphic": cls.GRAPHIC,
            "stockfootage": cls.STOCK_FOOTAGE,
        }
        return aliases.get(key, cls.UNKNOWN)


class Confidence(str, Enum):
    """Ordered qualitative certainty: none < low < medium < high."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_ORDER.index(self)

    def __ge__(self, other):
        if isinstance(other, Confidence):
            return self.rank >= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, Confidence):
            return self.rank > other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, Confidence):
            return self.rank <= other.rank
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Confidence):
            return self.rank < other.rank
        return NotImplemented

    @classmethod
    def parse(cls, value: Optional[str], default: "Confidence") -> "Confidence":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


_CONFIDENCE_ORDER = [Confidence.NONE, Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]


class ClassificationResult(BaseModel):
    """Outcome of one classification request. Always produced."""
    model_config = ConfigDict(frozen=True)

    asset_type: AssetType
    confidence: Confidence
    method: str
    duration_ms: int
    asset_path: Optional[str] = None
    genre: Optional[str] = None
    mood: Optional[str] = None
    sfx_category: Optional[str] = None


# =====================================================
# Analytics Models
# =====================================================

ScalarValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


def _os_version() -> str:
    return f"{platform.system()} {platform.release()}".strip()


def _default_locale() -> str:
    return _locale.getlocale()[0] or "en_US"


class AnalyticsEvent(BaseModel):
    """Analytics event with a flat, scalar-only payload."""
    id: str = Field(default_factory=generate_uuid)
    event_type: str
    event_data: Dict[str, ScalarValue] = Field(default_factory=dict)
    app_version: str = "unknown"
    os_version: str = Field(default_factory=_os_version)
    locale: str = Field(default_factory=_default_locale)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =====================================================
# API Models
# =====================================================

class GroupInfo(BaseModel):
    """Pending fragment group as exposed over the API."""
    group_key: str
    folder_name: str
    expected_part_count: int
    received_parts: List[int]
    first_seen_at: datetime
    last_updated_at: datetime
    complete: bool
    origin_hint: Optional[str] = None


class SweepReport(BaseModel):
    """Result of a manual sweep."""
    completed: List[str] = []
    abandoned: List[str] = []


class ClassifyRequest(BaseModel):
    """On-demand classification request."""
    path: str
    origin_url: Optional[str] = None


class OperationStatus(BaseModel):
    """Generic operation status."""
    status: str
    message: str
    details: Optional[Dict[str, ScalarValue]] = None
