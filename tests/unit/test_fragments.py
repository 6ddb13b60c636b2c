from pathlib import Path

import pytest

from domains.file_ingest.collectors.fragments import is_fragment, parse_fragment_name, parse_fragment_path


def test_parse_well_formed_fragment():
    descriptor = parse_fragment_name("ROAD TO EWC-20260205T124843Z-3-001.zip")

    assert descriptor is not None
    assert descriptor.group_key == "ROAD TO EWC-20260205T124843Z-3"
    assert descriptor.folder_name == "ROAD TO EWC"
    assert descriptor.timestamp == "20260205T124843Z"
    assert descriptor.declared_total_parts == 3
    assert descriptor.part_number == 1


def test_parts_of_one_archive_share_a_key():
    first = parse_fragment_name("Footage-20260205T124843Z-2-001.zip")
    second = parse_fragment_name("Footage-20260205T124843Z-2-002.zip")

    assert first.group_key == second.group_key
    assert {first.part_number, second.part_number} == {1, 2}


def test_folder_name_may_contain_dashes():
    descriptor = parse_fragment_name("my-cool-project-20251231T235959Z-12-010.zip")

    assert descriptor.folder_name == "my-cool-project"
    assert descriptor.declared_total_parts == 12
    assert descriptor.part_number == 10


@pytest.mark.parametrize(
    "filename",
    [
        "photo.jpg",
        "Footage.zip",
        "Footage-20260205T124843Z-3-1.zip",  # part must be three digits
        "Footage-20260205T124843Z-3-001.ZIP",
        "Footage-20260205-3-001.zip",
        "Footage-20260205T124843Z-3-001.zip.crdownload",
        "-20260205T124843Z-3-001.zip",
        "",
    ],
)
def test_non_matching_names_are_rejected(filename):
    assert parse_fragment_name(filename) is None


@pytest.mark.parametrize(
    "filename",
    [
        "Footage-20260205T124843Z-0-001.zip",
        "Footage-20260205T124843Z-3-000.zip",
        "Footage-20260205T124843Z-2-003.zip",
    ],
)
def test_zero_or_out_of_range_numbers_are_rejected(filename):
    assert parse_fragment_name(filename) is None


def test_non_ascii_digits_are_rejected():
    # Arabic-Indic digits would satisfy a Unicode-aware \d
    assert parse_fragment_name("Footage-20260205T124843Z-٣-001.zip") is None


def test_parse_path_uses_base_name(tmp_path):
    path = tmp_path / "nested" / "Clips-20260101T000000Z-1-001.zip"

    descriptor = parse_fragment_path(path)

    assert descriptor.source_path == path
    assert descriptor.declared_total_parts == 1
    assert is_fragment(path)
    assert not is_fragment(Path("Clips.zip"))
