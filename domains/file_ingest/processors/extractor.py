"""
Archive extractor for completed fragment groups.

Every part of a group is a standalone ZIP holding a slice of the original
folder. Parts are extracted in order into a scratch folder next to the output
location, then merged into ``<output>/<folder name>``.
"""

from __future__ import annotations

import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import List

from loguru import logger

from app.utils.helpers import should_exclude_path, unique_destination
from domains.file_ingest.collectors.registry import GroupSnapshot
from domains.file_ingest.errors import ExtractionError

TEMP_PREFIX = "_intake_tmp_"


class ArchiveExtractor:
    """Merges the parts of a group into one folder."""

    def __init__(self, output_dir: Path, remove_parts: bool = True):
        """
        Initialize extractor.

        Args:
            output_dir: Where merged folders are created
            remove_parts: Remove the part files after a successful merge
        """
        self.output_dir = output_dir
        self.remove_parts = remove_parts

    def target_folder(self, group: GroupSnapshot) -> Path:
        return self.output_dir / group.folder_name

    def extract(self, group: GroupSnapshot) -> List[Path]:
        """
        Extract and merge every part of ``group``.

        Args:
            group: Complete group, parts in order

        Returns:
            Extracted files, in the order they were written

        Raises:
            ExtractionError: No part produced any file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.target_folder(group)
        extracted: List[Path] = []

        logger.info(f"Extracting {len(group.part_paths)} part(s) of '{group.folder_name}' into {target}")

        for part_path in group.part_paths:
            with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX, dir=self.output_dir) as scratch:
                try:
                    with zipfile.ZipFile(part_path) as archive:
                        archive.extractall(scratch)
                except (OSError, zipfile.BadZipFile) as e:
                    logger.error(f"Skipping unreadable part {part_path.name}: {e}")
                    continue

                root = self._content_root(Path(scratch), {part_path.stem, group.folder_name})
                extracted.extend(self._merge(root, target))

        if not extracted:
            raise ExtractionError(f"No files extracted for group {group.group_key}")

        if self.remove_parts:
            delete_fragments(group)

        logger.success(f"Merged '{group.folder_name}': {len(extracted)} file(s)")
        return extracted

    # Helper routines -----------------------------------------------------------------

    def _content_root(self, scratch: Path, wrapper_names) -> Path:
        # Parts often wrap everything in a folder named after the archive or the original folder
        children = [c for c in scratch.iterdir() if not should_exclude_path(c.relative_to(scratch))]
        if len(children) == 1 and children[0].is_dir() and children[0].name in wrapper_names:
            return children[0]
        return scratch

    def _merge(self, root: Path, target: Path) -> List[Path]:
        moved: List[Path] = []

        for source in sorted(root.rglob("*")):
            relative = source.relative_to(root)
            if source.is_dir() or self._skip(relative):
                continue

            destination = unique_destination(target / relative)
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(destination))
            moved.append(destination)

        return moved

    def _skip(self, relative: Path) -> bool:
        return should_exclude_path(relative)


def delete_fragments(group: GroupSnapshot) -> int:
    """Delete every part file of ``group``; returns how many were removed."""
    removed = 0
    for part_path in group.part_paths:
        try:
            part_path.unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Could not delete fragment {part_path.name}: {e}")
    return removed


def find_leftover_scratch(output_dir: Path) -> List[Path]:
    """Scratch folders left behind by an interrupted extraction."""
    if not output_dir.exists():
        return []
    return [p for p in output_dir.iterdir() if p.is_dir() and p.name.startswith(TEMP_PREFIX)]


def cleanup_leftover_scratch(output_dir: Path) -> int:
    leftovers = find_leftover_scratch(output_dir)
    for folder in leftovers:
        shutil.rmtree(folder, ignore_errors=True)
    if leftovers:
        logger.info(f"Removed {len(leftovers)} leftover extraction folder(s)")
    return len(leftovers)
