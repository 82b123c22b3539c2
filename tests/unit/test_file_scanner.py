import pytest
from pathlib import Path
from autoenc.infrastructure.file_scanner import FileScanner


@pytest.fixture
def scanner():
    return FileScanner(source_extension=".MOV", archive_dir_name="originals")


def test_file_scanner_walk(camera_tree, scanner):
    walked = list(scanner.walk(camera_tree))

    dirs = [d for d, _ in walked]
    assert dirs == [camera_tree, camera_tree / "trip"]
    assert walked[0][1] == [camera_tree / "clip.MOV"]
    assert walked[1][1] == [camera_tree / "trip" / "a.mov"]


def test_file_scanner_never_enters_archive(camera_tree, scanner):
    (camera_tree / "trip" / "originals").mkdir()
    (camera_tree / "trip" / "originals" / "b.MOV").write_text("x")

    all_dirs = [d for d, _ in scanner.walk(camera_tree)]
    all_files = [f for _, files in scanner.walk(camera_tree) for f in files]

    assert not any(d.name == "originals" for d in all_dirs)
    assert all("originals" not in f.parts for f in all_files)


def test_walk_of_archive_root_yields_nothing(camera_tree, scanner):
    assert list(scanner.walk(camera_tree / "originals")) == []


def test_walk_missing_root_raises(tmp_path, scanner):
    with pytest.raises(FileNotFoundError):
        list(scanner.walk(tmp_path / "missing"))


def test_walk_is_sorted(source_root, scanner):
    for name in ["c", "a", "b"]:
        (source_root / name).mkdir()
        (source_root / f"{name}.MOV").write_text(name)

    walked = list(scanner.walk(source_root))

    assert [d.name for d, _ in walked[1:]] == ["a", "b", "c"]
    assert [f.name for f in walked[0][1]] == ["a.MOV", "b.MOV", "c.MOV"]


@pytest.mark.parametrize("name,expected", [
    ("clip.MOV", True),
    ("clip.mov", True),
    ("clip.MoV", True),
    (".MOV", False),
    ("clip.MOV.encoding.tmp", False),
    ("clip.m4v", False),
    ("clipMOV", False),
])
def test_is_candidate_by_name(scanner, name, expected):
    assert scanner.is_candidate(Path("/v") / name) is expected


def test_is_candidate_rejects_archived_files(scanner):
    assert not scanner.is_candidate(Path("/v/originals/clip.MOV"))
    assert not scanner.is_candidate(Path("/v/originals/deeper/clip.MOV"))


def test_extension_without_dot(tmp_path):
    scanner = FileScanner(source_extension="mts", archive_dir_name="done")
    assert scanner.source_extension == ".mts"
    assert scanner.is_candidate(tmp_path / "00001.MTS")


def test_is_archive_dir(scanner):
    assert scanner.is_archive_dir(Path("/v/originals"))
    assert not scanner.is_archive_dir(Path("/v/originals2"))
