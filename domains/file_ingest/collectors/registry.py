"""
Group registry for multi-part archive downloads.

Keeps one in-progress group per group key and decides when a group is
complete. Locking is per group key: a short table lock guards the key → entry
mapping, and every read or mutation of a group happens under that entry's own
lock. Entries removed by a claim or a sweep are marked retired under their
lock, so an add that raced the removal retries against a fresh entry instead
of writing into a group nobody will ever look at again.

Keys of groups that were handed off are remembered until they have been idle
for the staleness period. Late events for parts of an archive that is already
being extracted report ALREADY_COMPLETE_DUPLICATE rather than rebuilding the
group from the fragments still on disk.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from domains.file_ingest.collectors.fragments import FragmentDescriptor


class GroupStatus(str, Enum):
    """Outcome of adding one fragment."""
    NEWLY_CREATED = "newly_created"
    UPDATED_INCOMPLETE = "updated_incomplete"
    BECAME_COMPLETE = "became_complete"
    ALREADY_COMPLETE_DUPLICATE = "already_complete_duplicate"


@dataclass(frozen=True, slots=True)
class GroupSnapshot:
    """Read-only view of a group, safe to hand to other threads."""

    group_key: str
    folder_name: str
    expected_part_count: int
    parts: Tuple[Tuple[int, Optional[Path]], ...]
    first_seen_at: float
    last_updated_at: float
    origin_hint: Optional[str]
    complete: bool

    @property
    def part_numbers(self) -> List[int]:
        return [number for number, _ in self.parts]

    @property
    def part_paths(self) -> List[Path]:
        """Fragment paths in part order."""
        return [path for _, path in self.parts if path is not None]


@dataclass(slots=True)
class FragmentGroup:
    """Mutable group state. Only the registry touches it."""

    group_key: str
    folder_name: str
    expected_part_count: int
    received_parts: Dict[int, Optional[Path]]
    first_seen_at: float
    last_updated_at: float
    origin_hint: Optional[str] = None
    completed: bool = False

    @property
    def is_complete(self) -> bool:
        return len(self.received_parts) >= self.expected_part_count

    def snapshot(self) -> GroupSnapshot:
        return GroupSnapshot(
            group_key=self.group_key,
            folder_name=self.folder_name,
            expected_part_count=self.expected_part_count,
            parts=tuple(sorted(self.received_parts.items())),
            first_seen_at=self.first_seen_at,
            last_updated_at=self.last_updated_at,
            origin_hint=self.origin_hint,
            complete=self.completed,
        )


@dataclass(slots=True)
class SweepResult:
    """Groups removed by one sweep pass."""

    completed: List[GroupSnapshot] = field(default_factory=list)
    abandoned: List[GroupSnapshot] = field(default_factory=list)


class _Entry:
    __slots__ = ("lock", "group", "retired")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.group: Optional[FragmentGroup] = None
        self.retired = False


class GroupRegistry:
    """Concurrency-safe store of in-progress fragment groups."""

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize registry.

        Args:
            clock: Source of "now" in epoch seconds
        """
        self._clock = clock
        self._table_lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}
        # group key -> last time a fragment of the handed-off group was seen
        self._handed_off: Dict[str, float] = {}

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._entries)

    def __contains__(self, group_key: str) -> bool:
        return self.get(group_key) is not None

    # Public API -----------------------------------------------------------------

    def add_fragment(
        self,
        descriptor: FragmentDescriptor,
        origin_hint: Optional[str] = None,
    ) -> GroupStatus:
        """
        Record one fragment.

        Args:
            descriptor: Parsed fragment
            origin_hint: URL the fragment was downloaded from, if known

        Returns:
            What the fragment did to its group
        """
        while True:
            entry = self._entry_for(descriptor.group_key, create=True)
            if entry is None:
                logger.debug(
                    f"Fragment group {descriptor.group_key}: part {descriptor.part_number} "
                    f"arrived after hand-off"
                )
                return GroupStatus.ALREADY_COMPLETE_DUPLICATE

            with entry.lock:
                if entry.retired:
                    # Claimed or swept between lookup and lock; start over.
                    continue
                return self._apply(entry, descriptor, origin_hint)

    def claim_complete(self, group_key: str) -> Optional[GroupSnapshot]:
        """
        Remove and return ``group_key`` if it is complete.

        Only one caller ever receives a given group, which is what makes the
        extraction hand-off exactly-once.
        """
        entry = self._entry_for(group_key, create=False)
        if entry is None:
            return None

        with entry.lock:
            group = entry.group
            if entry.retired or group is None or not group.completed:
                return None
            snapshot = group.snapshot()
            self._retire(group_key, entry)

        return snapshot

    def sweep(self, staleness_seconds: float) -> SweepResult:
        """
        Remove complete groups and groups idle for longer than ``staleness_seconds``.

        Hand-off records idle for that long are forgotten in the same pass.

        Returns:
            The removed groups, split into completed and abandoned
        """
        result = SweepResult()
        now = self._clock()

        with self._table_lock:
            items = list(self._entries.items())
            expired = [key for key, seen in self._handed_off.items() if now - seen > staleness_seconds]
            for key in expired:
                del self._handed_off[key]

        for group_key, entry in items:
            with entry.lock:
                group = entry.group
                if entry.retired or group is None:
                    continue

                if group.completed:
                    result.completed.append(group.snapshot())
                    self._retire(group_key, entry)
                elif now - group.last_updated_at > staleness_seconds:
                    result.abandoned.append(group.snapshot())
                    self._retire(group_key, entry)

        return result

    def get(self, group_key: str) -> Optional[GroupSnapshot]:
        entry = self._entry_for(group_key, create=False)
        if entry is None:
            return None
        with entry.lock:
            if entry.retired or entry.group is None:
                return None
            return entry.group.snapshot()

    def snapshot(self) -> List[GroupSnapshot]:
        """Snapshots of every live group, oldest first."""
        with self._table_lock:
            entries = list(self._entries.values())

        snapshots = []
        for entry in entries:
            with entry.lock:
                if not entry.retired and entry.group is not None:
                    snapshots.append(entry.group.snapshot())

        return sorted(snapshots, key=lambda s: s.first_seen_at)

    def was_handed_off(self, group_key: str) -> bool:
        with self._table_lock:
            return group_key in self._handed_off

    # Helper routines -----------------------------------------------------------------

    def _entry_for(self, group_key: str, create: bool) -> Optional[_Entry]:
        # With create=True, None means the group was already handed off.
        with self._table_lock:
            entry = self._entries.get(group_key)
            if entry is None and create:
                if group_key in self._handed_off:
                    self._handed_off[group_key] = self._clock()
                    return None
                entry = _Entry()
                self._entries[group_key] = entry
            return entry

    def _retire(self, group_key: str, entry: _Entry) -> None:
        # Caller holds entry.lock.
        entry.retired = True
        with self._table_lock:
            if self._entries.get(group_key) is entry:
                del self._entries[group_key]
            if entry.group is not None and entry.group.completed:
                self._handed_off[group_key] = self._clock()

    def _apply(
        self,
        entry: _Entry,
        descriptor: FragmentDescriptor,
        origin_hint: Optional[str],
    ) -> GroupStatus:
        now = self._clock()
        group = entry.group

        if group is None:
            group = FragmentGroup(
                group_key=descriptor.group_key,
                folder_name=descriptor.folder_name,
                expected_part_count=descriptor.declared_total_parts,
                received_parts={descriptor.part_number: descriptor.source_path},
                first_seen_at=now,
                last_updated_at=now,
                origin_hint=origin_hint,
            )
            entry.group = group
            logger.info(
                f"New fragment group '{group.folder_name}' "
                f"(part {descriptor.part_number}, expecting {group.expected_part_count})"
            )
            if group.is_complete:
                group.completed = True
                return GroupStatus.BECAME_COMPLETE
            return GroupStatus.NEWLY_CREATED

        group.last_updated_at = now
        if origin_hint and not group.origin_hint:
            group.origin_hint = origin_hint

        if descriptor.declared_total_parts != group.expected_part_count:
            logger.warning(
                f"Fragment group {group.group_key}: part {descriptor.part_number} declares "
                f"{descriptor.declared_total_parts} parts, group expects {group.expected_part_count}"
            )
            if descriptor.declared_total_parts > group.expected_part_count and not group.completed:
                group.expected_part_count = descriptor.declared_total_parts

        if descriptor.part_number not in group.received_parts:
            group.received_parts[descriptor.part_number] = descriptor.source_path

        if group.completed:
            logger.debug(f"Fragment group {group.group_key}: duplicate part {descriptor.part_number}")
            return GroupStatus.ALREADY_COMPLETE_DUPLICATE

        if group.is_complete:
            group.completed = True
            logger.info(
                f"Fragment group '{group.folder_name}' complete "
                f"({len(group.received_parts)}/{group.expected_part_count})"
            )
            return GroupStatus.BECAME_COMPLETE

        logger.debug(
            f"Fragment group '{group.folder_name}': "
            f"{len(group.received_parts)}/{group.expected_part_count} parts"
        )
        return GroupStatus.UPDATED_INCOMPLETE
