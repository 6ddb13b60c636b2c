"""
Web metadata lookup.

The browser extension scrapes the stock site's track page while the download
runs and appends what it found to a JSON cache file. This strategy matches an
asset to a cache entry by origin URL or filename and reads the asset type,
genre, mood or SFX category off the page URL and scraped tags.
"""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.models.schemas import AssetType, Confidence
from app.utils.helpers import prettify_slug, strip_url, url_query_value, url_segment_after
from domains.file_ingest.processors.strategies.base import Answered, Asset, Declined, StrategyOutcome

SFX_URL_MARKERS = ("/sound-effects/", "/sound-design/", "/sfx/")
SFX_GENRES = ("sound-design", "sfx", "sound effect", "sound effects", "foley", "ambience", "ambient")
NON_CATEGORY_SEGMENTS = {"sound-effects", "sound-design", "categories", "tracks", "search"}


class StockMetadata(BaseModel):
    """One scraped download, as written by the browser extension."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    download_url: Optional[str] = Field(default=None, alias="downloadUrl")
    final_url: Optional[str] = Field(default=None, alias="finalUrl")
    page_url: Optional[str] = Field(default=None, alias="pageUrl")
    filename: Optional[str] = None
    provider: Optional[str] = None
    title: Optional[str] = None
    artists: List[str] = []
    genres: List[str] = []
    moods: List[str] = []
    tags: List[str] = []

    @property
    def urls(self) -> List[str]:
        return [u for u in (self.download_url, self.final_url, self.page_url) if u]


def normalise_filename(name: str) -> str:
    """Lower-case stem without browser duplicate suffixes like `` (1)``."""
    stem = Path(name).stem.lower()
    stem = re.sub(r"\s*\(\d+\)$", "", stem)
    return re.sub(r"[\s_]+", " ", stem).strip()


def extract_sfx_category(page_url: str) -> Optional[str]:
    """
    SFX category from a track page URL.

    ``/sound-effects/categories/designed/riser/`` gives ``Riser`` (the most
    specific segment); ``/sound-design/tracks?soundTerm=Drone OR Rumble``
    gives ``Drone``.
    """
    sound_term = url_query_value(page_url, "soundTerm")
    if sound_term:
        return sound_term.split(" OR ")[0].strip().title()

    segments = [
        s for s in urlsplit(page_url).path.split("/")
        if s and s.lower() not in NON_CATEGORY_SEGMENTS
    ]
    if not segments:
        return None

    last = segments[-1]
    # Locale segments such as "en-nl"
    if "-" in last and len(last) <= 5:
        return None
    return prettify_slug(last)


def interpret(meta: StockMetadata) -> Answered:
    """Turn a cache entry into an answer."""
    page_url = meta.page_url or ""
    is_sfx_url = any(marker in page_url for marker in SFX_URL_MARKERS)
    has_sfx_genre = any(
        keyword in genre.lower() for genre in meta.genres for keyword in SFX_GENRES
    )

    if is_sfx_url or has_sfx_genre:
        category = extract_sfx_category(page_url) if page_url else None
        if category is None:
            other = [g for g in meta.genres if g.lower() not in SFX_GENRES]
            if other:
                category = prettify_slug(other[0])
            elif meta.title and "sound effect" not in meta.title.lower():
                category = meta.title
        return Answered(asset_type=AssetType.SFX, confidence=Confidence.HIGH, sfx_category=category)

    genre = meta.genres[0] if meta.genres else (url_segment_after(page_url, "genres") if page_url else None)
    mood = meta.moods[0] if meta.moods else (url_segment_after(page_url, "moods") if page_url else None)
    return Answered(asset_type=AssetType.MUSIC, confidence=Confidence.HIGH, genre=genre, mood=mood)


class StockMetadataCache:
    """Reads the extension's cache file, reloading when it changes."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        self._entries: List[StockMetadata] = []

    def entries(self) -> List[StockMetadata]:
        with self._lock:
            try:
                mtime = self.path.stat().st_mtime
            except OSError:
                self._entries, self._mtime = [], None
                return []

            if mtime != self._mtime:
                self._entries = self._load()
                self._mtime = mtime

            return list(self._entries)

    def _load(self) -> List[StockMetadata]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read stock metadata cache {self.path}: {e}")
            return []

        if isinstance(raw, dict):
            raw = raw.get("entries", [])

        entries = []
        for item in raw if isinstance(raw, list) else []:
            try:
                entries.append(StockMetadata.model_validate(item))
            except ValidationError as e:
                logger.debug(f"Skipping malformed cache entry: {e}")
        return entries

    def find(self, asset: Asset) -> Optional[StockMetadata]:
        """Match by origin URL first, then by filename, newest entry first."""
        entries = list(reversed(self.entries()))

        if asset.origin_url:
            origin = strip_url(asset.origin_url)
            for meta in entries:
                if any(strip_url(url) == origin for url in meta.urls):
                    return meta

        wanted = normalise_filename(asset.filename)
        for meta in entries:
            if meta.filename and normalise_filename(meta.filename) == wanted:
                return meta

        # Fuzzy: the scraped title appears in the filename
        for meta in entries:
            if meta.title and len(meta.title) > 3 and meta.title.lower() in wanted:
                return meta

        return None


class WebLookupStrategy:
    """Strategy backed by scraped stock-site metadata."""

    name = "web_lookup"

    def __init__(self, cache: StockMetadataCache):
        self.cache = cache

    async def attempt(self, asset: Asset, timeout: float) -> StrategyOutcome:
        meta = self.cache.find(asset)
        if meta is None:
            return Declined("no scraped metadata for asset")

        answer = interpret(meta)
        logger.debug(
            f"Web lookup: {asset.filename} -> {answer.asset_type.value} "
            f"(genre={answer.genre}, mood={answer.mood}, sfx={answer.sfx_category})"
        )
        return answer
