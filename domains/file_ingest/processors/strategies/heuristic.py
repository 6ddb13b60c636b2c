"""
Deterministic heuristic classification.

Extension and keyword rules over the filename and origin URL. This is the last
link in the chain: it never declines, and because it is only a guess it always
reports the lowest confidence.
"""

from __future__ import annotations

import zipfile
from collections import Counter
from pathlib import Path
from typing import Iterable

from loguru import logger

from app.models.schemas import AssetType, Confidence
from app.utils.helpers import get_file_extension
from domains.file_ingest.processors.strategies.base import Answered, Asset

AUDIO_EXTENSIONS = {"wav", "aiff", "aif", "mp3", "m4a", "aac", "flac", "ogg"}
VIDEO_EXTENSIONS = {"mp4", "mov", "avi", "mxf", "mkv", "webm", "m4v", "prores"}
IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "svg", "psd", "gif", "webp", "tiff", "tif"}
MOTION_GRAPHIC_EXTENSIONS = {"mogrt", "aep", "aet"}

MEDIA_EXTENSIONS = AUDIO_EXTENSIONS | VIDEO_EXTENSIONS | IMAGE_EXTENSIONS | MOTION_GRAPHIC_EXTENSIONS

STEMS_KEYWORDS = ["stems", "stem", "bass", "drums", "instruments", "melody", "vocals"]

SFX_KEYWORDS = [
    "sfx", "sound-effect", "sound effect", "effect", "impact", "whoosh", "swoosh",
    "hit", "crash", "bang", "explosion", "ambience", "ambient", "foley",
    "transition", "riser", "downer", "swish", "click", "beep",
    "notification", "button", "interface", "glitch", "noise",
    "wind", "rain", "thunder", "water", "fire", "wave",
    "organic", "nature", "bird", "animal", "door",
    "footstep", "buzz", "alarm", "siren", "horn", "bell", "knock", "creak",
    "rumble", "static", "hum", "drone", "texture", "stinger", "sweep",
]

VO_KEYWORDS = [
    "voice", "narration", "dialogue", "dialog", "speech", "spoken",
    "narrator", "announcer", "commentary", "voiceover", "voice-over",
    "elevenlabs", "text-to-speech", "tts",
]

MUSIC_KEYWORDS = [
    "music", "track", "song", "beat", "score", "soundtrack", "theme",
    "remix", "mix", "album", "single", "instrumental",
]

STOCK_FOOTAGE_KEYWORDS = [
    "stock", "footage", "b-roll", "broll", "clip", "scene", "shot",
    "_hd", "_4k", "_uhd", "_1080", "_720", "_by_",
]

MOTION_GRAPHIC_KEYWORDS = [
    "mogrt", "motion", "graphic", "title", "lower third", "lower-third",
    "bumper", "intro", "outro", "overlay", "template",
    "promo", "opener", "end screen", "subscribe",
]

STOCK_FOOTAGE_PLATFORMS = [
    "artgrid", "artlist", "shutterstock", "gettyimages", "pond5",
    "storyblocks", "videoblocks", "envato", "videohive", "adobe.com/stock",
    "istockphoto", "depositphotos", "pexels", "pixabay",
]

VO_PLATFORMS = ["elevenlabs", "murf.ai", "play.ht"]
SFX_PLATFORMS = ["freesound", "zapsplat", "soundsnap"]

# "Title - Epidemic Sound" is a platform suffix, not "Song - Artist"
PLATFORM_SUFFIXES = ["epidemic sound", "artlist", "freesound", "pond5", "shutterstock"]


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _has_vo_token(name: str) -> bool:
    # "vo" only as a whole token; as a substring it hits "volume", "vocal", ...
    tokens = name.replace("-", " ").replace("_", " ").replace(".", " ").split()
    return "vo" in tokens


def classify_video(name: str, origin: str) -> AssetType:
    if _contains_any(origin, STOCK_FOOTAGE_PLATFORMS):
        return AssetType.STOCK_FOOTAGE
    if _contains_any(name, STOCK_FOOTAGE_PLATFORMS) or _contains_any(name, STOCK_FOOTAGE_KEYWORDS):
        return AssetType.STOCK_FOOTAGE
    if _contains_any(name, MOTION_GRAPHIC_KEYWORDS):
        return AssetType.MOTION_GRAPHIC
    # Default: stock footage is by far the most common video download
    return AssetType.STOCK_FOOTAGE


def classify_audio(name: str, origin: str) -> AssetType:
    if _contains_any(name, STEMS_KEYWORDS):
        return AssetType.MUSIC
    if _has_vo_token(name) or _contains_any(name, VO_KEYWORDS):
        return AssetType.VO
    if _contains_any(origin, VO_PLATFORMS):
        return AssetType.VO
    if _contains_any(origin, SFX_PLATFORMS):
        return AssetType.SFX

    has_sfx = _contains_any(name, SFX_KEYWORDS)
    has_music = _contains_any(name, MUSIC_KEYWORDS)
    if has_sfx and not has_music:
        return AssetType.SFX

    has_platform_suffix = any(f"- {suffix}" in name for suffix in PLATFORM_SUFFIXES)
    if " - " in name and not has_sfx and not has_platform_suffix:
        return AssetType.MUSIC

    # Default: music is the most common audio download
    return AssetType.MUSIC


def classify_archive_listing(names: Iterable[str], archive_name: str) -> AssetType:
    """Classify a plain (non-fragment) ZIP by the extensions it contains."""
    counts: Counter = Counter()
    for entry in names:
        ext = entry.rsplit(".", 1)[-1].lower() if "." in entry else ""
        if ext in MOTION_GRAPHIC_EXTENSIONS:
            counts["motion"] += 1
        elif ext in VIDEO_EXTENSIONS:
            counts["video"] += 1
        elif ext in IMAGE_EXTENSIONS:
            counts["image"] += 1
        elif ext in AUDIO_EXTENSIONS:
            counts["audio"] += 1

    if counts["motion"]:
        return AssetType.MOTION_GRAPHIC
    if counts["video"]:
        if _contains_any(archive_name, ["motion", "graphic", "template"]):
            return AssetType.MOTION_GRAPHIC
        return AssetType.STOCK_FOOTAGE
    if counts["image"] and not counts["audio"]:
        return AssetType.GRAPHIC
    if counts["audio"]:
        return AssetType.MUSIC
    return AssetType.UNKNOWN


def guess_asset_type(asset: Asset) -> AssetType:
    name = asset.filename.lower()
    origin = (asset.origin_url or "").lower()
    ext = asset.extension

    if ext in VIDEO_EXTENSIONS:
        return classify_video(name, origin)
    if ext in AUDIO_EXTENSIONS:
        return classify_audio(name, origin)
    if ext in IMAGE_EXTENSIONS:
        return AssetType.GRAPHIC
    if ext in MOTION_GRAPHIC_EXTENSIONS:
        return AssetType.MOTION_GRAPHIC
    if ext == "zip":
        return _inspect_archive(asset)
    return AssetType.UNKNOWN


def _inspect_archive(asset: Asset) -> AssetType:
    try:
        with zipfile.ZipFile(asset.path) as archive:
            names = archive.namelist()
    except (OSError, zipfile.BadZipFile) as e:
        logger.debug(f"Could not list archive {asset.path}: {e}")
        return AssetType.UNKNOWN
    return classify_archive_listing(names, asset.filename.lower())


class HeuristicStrategy:
    """Always-answering terminal strategy."""

    name = "heuristic"

    def evaluate(self, asset: Asset) -> Answered:
        asset_type = guess_asset_type(asset)
        logger.debug(f"Heuristic: {asset.filename} -> {asset_type.value}")
        return Answered(asset_type=asset_type, confidence=Confidence.NONE)

    async def attempt(self, asset: Asset, timeout: float) -> Answered:
        return self.evaluate(asset)


def is_media_file(filename: str) -> bool:
    """True for extensions the pipeline classifies on arrival."""
    return get_file_extension(Path(filename)) in MEDIA_EXTENSIONS
