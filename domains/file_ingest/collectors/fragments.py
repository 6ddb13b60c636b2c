"""
Filename grammar for multi-part cloud archive downloads.

Cloud storage splits one large folder download into numbered ZIP parts named
``<folder>-<YYYYMMDD>T<HHMMSS>Z-<total>-<NNN>.zip``, e.g.
``ROAD TO EWC-20260205T124843Z-3-001.zip`` is part 1 of 3. All parts of one
archive share a group key: the name without the part-number suffix.

The grammar alone would accept a part number above the declared total
(``-3-004.zip``). Such names are deliberately rejected here: counting one
toward its group would let the group complete with a real part still missing.
Zero totals and part ``000`` are rejected for the same reason.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

FRAGMENT_PATTERN = re.compile(
    r"^(?P<folder>.+)-(?P<timestamp>\d{8}T\d{6}Z)-(?P<total>\d+)-(?P<part>\d{3})\.zip$",
    re.ASCII,
)


@dataclass(frozen=True, slots=True)
class FragmentDescriptor:
    """One accepted fragment filename."""

    group_key: str
    folder_name: str
    timestamp: str
    declared_total_parts: int
    part_number: int
    source_path: Optional[Path] = None


def _positive_int(raw: str) -> Optional[int]:
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def parse_fragment_name(filename: str, source_path: Optional[Path] = None) -> Optional[FragmentDescriptor]:
    """
    Parse a bare filename into a fragment descriptor.

    Args:
        filename: File name (no directory part)
        source_path: Where the file lives, carried through unchanged

    Returns:
        FragmentDescriptor, or None if the name is not a fragment
    """
    match = FRAGMENT_PATTERN.match(filename)
    if match is None:
        return None

    total = _positive_int(match.group("total"))
    part = _positive_int(match.group("part"))
    if total is None or part is None or part > total:
        return None

    folder = match.group("folder")
    timestamp = match.group("timestamp")

    return FragmentDescriptor(
        group_key=f"{folder}-{timestamp}-{total}",
        folder_name=folder,
        timestamp=timestamp,
        declared_total_parts=total,
        part_number=part,
        source_path=source_path,
    )


def parse_fragment_path(path: Path) -> Optional[FragmentDescriptor]:
    """Parse the base name of ``path``."""
    return parse_fragment_name(path.name, source_path=path)


def is_fragment(path: Path) -> bool:
    return parse_fragment_path(path) is not None
