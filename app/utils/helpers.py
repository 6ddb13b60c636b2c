"""
Helper utilities for The Intake.

Common functions used across domains.
"""

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit
from uuid import uuid4


# Browsers write these while a download is still in flight
PARTIAL_DOWNLOAD_SUFFIXES = {".crdownload", ".part", ".download", ".partial", ".tmp"}

# Extended attributes that may carry the page a file was downloaded from
ORIGIN_XATTRS = ("user.xdg.origin.url", "user.xdg.referrer.url")


def generate_uuid() -> str:
    """Generate a unique identifier."""
    return str(uuid4())


def now_iso() -> str:
    """Get current timestamp as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def get_file_extension(path: Path) -> str:
    """Get lower-cased file extension without dot."""
    return path.suffix.lstrip('.').lower()


def is_hidden(path: Path) -> bool:
    """Check if path is hidden (starts with dot)."""
    return path.name.startswith('.')


def is_partial_download(path: Path) -> bool:
    """Check if path is a browser's in-progress download."""
    return path.suffix.lower() in PARTIAL_DOWNLOAD_SUFFIXES


def should_exclude_path(path: Path, exclude_patterns: List[str] = None) -> bool:
    """
    Check if path should be excluded based on patterns.

    Args:
        path: Path to check
        exclude_patterns: List of glob patterns to exclude

    Returns:
        True if should exclude, False otherwise
    """
    if exclude_patterns is None:
        exclude_patterns = [
            '.DS_Store',
            '__MACOSX',
            '_intake_tmp_*',
        ]

    if is_hidden(path) or is_partial_download(path):
        return True

    for pattern in exclude_patterns:
        if any(Path(part).match(pattern) for part in path.parts if part != path.anchor):
            return True

    return False


def unique_destination(destination: Path) -> Path:
    """
    Return ``destination`` or, if taken, the first free ``name_N.ext`` sibling.

    Args:
        destination: Desired target path

    Returns:
        Path that does not exist yet
    """
    if not destination.exists():
        return destination

    stem = destination.stem
    suffix = destination.suffix
    counter = 1
    while True:
        candidate = destination.with_name(f"{stem}_{counter}{suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def read_origin_url(path: Path) -> Optional[str]:
    """
    Read the download origin URL from extended attributes when available.

    Args:
        path: Downloaded file

    Returns:
        Origin URL or None
    """
    getxattr = getattr(os, "getxattr", None)
    if getxattr is None:
        return None

    for attr in ORIGIN_XATTRS:
        try:
            value = getxattr(str(path), attr)
        except OSError:
            continue
        text = value.decode("utf-8", errors="ignore").strip().strip("\x00")
        if text:
            return text

    return None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Extract the first JSON object from free text.

    Model replies sometimes wrap the JSON in prose, so fall back to the
    outermost pair of braces.

    Args:
        text: Reply text

    Returns:
        Parsed dict or None
    """
    if not text:
        return None

    candidates = [text.strip()]
    start = text.find('{')
    end = text.rfind('}')
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed

    return None


def prettify_slug(slug: str) -> str:
    """Turn a URL slug like ``low-frequency`` into ``Low Frequency``."""
    return re.sub(r'[-_]+', ' ', slug).strip().title()


def url_segment_after(url: str, marker: str) -> Optional[str]:
    """
    Return the path segment following ``marker`` in ``url``.

    Example: ``url_segment_after("https://x/music/genres/jazz/", "genres")``
    returns ``"Jazz"``.
    """
    try:
        parts = [p for p in urlsplit(url).path.split('/') if p]
    except ValueError:
        return None

    lowered = [p.lower() for p in parts]
    if marker not in lowered:
        return None

    index = lowered.index(marker)
    if index + 1 >= len(parts):
        return None

    return prettify_slug(parts[index + 1])


def url_query_value(url: str, name: str) -> Optional[str]:
    """Return the first value of query parameter ``name`` in ``url``."""
    try:
        values = parse_qs(urlsplit(url).query).get(name)
    except ValueError:
        return None
    return values[0] if values else None


def strip_url(url: str) -> str:
    """Drop query string and fragment so URLs compare by location."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path}".rstrip('/')
