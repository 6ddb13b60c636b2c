import time
from pathlib import Path

import pytest

from domains.file_ingest.collectors.downloads import DownloadsEventHandler, DownloadsWatcher
from domains.file_ingest.collectors.registry import GroupStatus
from domains.file_ingest.errors import ConfigError
from domains.file_ingest.pipeline import IngestPipeline
from domains.file_ingest.processors.extractor import ArchiveExtractor
from tests.helpers import write_zip

STAMP = "20260205T124843Z"


class Event:
    def __init__(self, src: Path, dest: Path = None, is_directory: bool = False):
        self.src_path = str(src)
        self.dest_path = str(dest) if dest else None
        self.is_directory = is_directory


def fragment(downloads: Path, folder: str, number: int, total: int) -> Path:
    return write_zip(downloads / f"{folder}-{STAMP}-{total}-{number:03d}.zip", {f"{folder}_{number}.wav": b"x"})


class RecordingExtractor(ArchiveExtractor):
    """Leaves the fragments on disk, like a worker that is still extracting."""

    def __init__(self, output_dir: Path):
        super().__init__(output_dir, remove_parts=False)
        self.extracted = []

    def extract(self, group):
        self.extracted.append(group.group_key)
        return super().extract(group)


def test_fragment_is_registered(settings):
    pipeline = IngestPipeline(settings)
    handler = DownloadsEventHandler(pipeline)
    path = fragment(settings.get_downloads_dir(), "Shoot", 1, 3)

    assert handler.handle_path(path) is GroupStatus.NEWLY_CREATED
    assert pipeline.registry.get(f"Shoot-{STAMP}-3").part_numbers == [1]


def test_siblings_already_on_disk_complete_the_group(settings):
    pipeline = IngestPipeline(settings)
    handler = DownloadsEventHandler(pipeline)
    downloads = settings.get_downloads_dir()
    first = fragment(downloads, "Shoot", 1, 2)
    fragment(downloads, "Shoot", 2, 2)

    handler.on_created(Event(first))

    assert len(pipeline.registry) == 0
    assert (settings.get_output_dir() / "Shoot" / "Shoot_2.wav").exists()


def test_moved_event_uses_destination(settings):
    pipeline = IngestPipeline(settings)
    handler = DownloadsEventHandler(pipeline)
    downloads = settings.get_downloads_dir()
    final = fragment(downloads, "Renamed", 1, 2)

    handler.on_moved(Event(downloads / (final.name + ".crdownload"), final))

    assert f"Renamed-{STAMP}-2" in pipeline.registry


def test_ignored_paths(settings):
    pipeline = IngestPipeline(settings)
    handler = DownloadsEventHandler(pipeline)
    downloads = settings.get_downloads_dir()

    partial = downloads / f"Shoot-{STAMP}-2-001.zip.crdownload"
    partial.write_bytes(b"")
    hidden = downloads / ".Shoot.wav"
    hidden.write_bytes(b"")
    scratch = downloads / "_intake_tmp_x" / f"Shoot-{STAMP}-2-001.zip"
    write_zip(scratch, {"a.wav": b""})

    for path in (partial, hidden, scratch, downloads / "missing.wav"):
        assert handler.handle_path(path) is None
    handler.on_created(Event(downloads, is_directory=True))

    assert len(pipeline.registry) == 0
    assert len(pipeline.router) == 0


def test_media_file_goes_straight_to_classification(settings):
    pipeline = IngestPipeline(settings)
    handler = DownloadsEventHandler(pipeline)
    clip = settings.get_downloads_dir() / "Narration Take 3.wav"
    clip.write_bytes(b"RIFF")

    handler.on_created(Event(clip))

    assert pipeline.router.get(str(clip))["asset_type"] == "VO"


def test_scan_existing_recovers_fragments(settings):
    downloads = settings.get_downloads_dir()
    fragment(downloads, "Interrupted", 1, 3)
    fragment(downloads, "Interrupted", 3, 3)
    fragment(downloads, "Done", 1, 1)
    (downloads / "unrelated.zip").write_bytes(b"")

    pipeline = IngestPipeline(settings)
    watcher = DownloadsWatcher(pipeline)

    assert watcher.scan_existing() == 3
    assert pipeline.registry.get(f"Interrupted-{STAMP}-3").part_numbers == [1, 3]
    assert (settings.get_output_dir() / "Done" / "Done_1.wav").exists()


def test_observer_picks_up_new_fragment(settings):
    pipeline = IngestPipeline(settings)
    watcher = DownloadsWatcher(pipeline)
    watcher.start_watching()
    try:
        assert watcher.running
        # Browsers download under a temporary name and rename when done
        downloads = settings.get_downloads_dir()
        final = downloads / f"Live-{STAMP}-1-001.zip"
        in_flight = write_zip(final.with_name(final.name + ".crdownload"), {"Live_1.wav": b"x"})
        in_flight.rename(final)

        target = settings.get_output_dir() / "Live" / "Live_1.wav"
        deadline = time.monotonic() + 5.0
        while not target.exists() and time.monotonic() < deadline:
            time.sleep(0.05)
    finally:
        watcher.stop_watching()

    assert target.exists()
    assert not watcher.running


def test_downloads_path_must_be_a_directory(settings, tmp_path):
    not_a_dir = tmp_path / "file"
    not_a_dir.write_text("")
    watcher = DownloadsWatcher(IngestPipeline(settings), directory=not_a_dir)

    with pytest.raises(ConfigError):
        watcher.start_watching()

    assert not watcher.running


def test_late_events_for_a_handed_off_group_are_duplicates(settings):
    extractor = RecordingExtractor(settings.get_output_dir())
    pipeline = IngestPipeline(settings, extractor=extractor)
    handler = DownloadsEventHandler(pipeline)
    downloads = settings.get_downloads_dir()
    parts = [fragment(downloads, "Shoot", number, 3) for number in (1, 2, 3)]

    statuses = [handler.handle_path(path) for path in parts]

    assert extractor.extracted == [f"Shoot-{STAMP}-3"]
    assert statuses == [
        GroupStatus.NEWLY_CREATED,
        GroupStatus.ALREADY_COMPLETE_DUPLICATE,
        GroupStatus.ALREADY_COMPLETE_DUPLICATE,
    ]
    assert not (settings.get_output_dir() / "Shoot" / "Shoot_1_1.wav").exists()


def test_merged_files_are_not_classified_twice(settings):
    downloads = settings.get_downloads_dir()
    settings = settings.model_copy(update={"output_dir": downloads, "watch_recursive": True})
    pipeline = IngestPipeline(settings)
    handler = DownloadsEventHandler(pipeline)
    first = fragment(downloads, "Merged", 1, 1)

    handler.handle_path(first)
    merged = downloads / "Merged" / "Merged_1.wav"
    assert merged.exists()

    # What a recursive observer reports when the merge moves the file in
    handler.on_moved(Event(downloads / "_intake_tmp_abc" / "Merged_1.wav", merged))
    handler.on_created(Event(merged))

    resolved = [e for e in pipeline.emitter.recent() if e.event_type == "classification_resolved"]
    assert len(resolved) == 1
    assert pipeline.owns_path(merged)
    assert not pipeline.owns_path(downloads / "Other.wav")
