"""Tests for music directory scanning."""

from __future__ import annotations

from pathlib import Path

import tunecli.services.library_scanner as scanner


def _touch(path: Path, payload: bytes = b"\x00") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    return path


def test_scan_finds_audio_recursively_and_ignores_other_files(tmp_path) -> None:
    root = tmp_path / "music"
    _touch(root / "b.mp3")
    _touch(root / "A.FLAC", b"\x00" * 4)
    _touch(root / "album" / "01 - intro.opus")
    _touch(root / "album" / "cover.jpg")
    _touch(root / "notes.txt")
    (root / "empty.ogg").mkdir()

    files = scanner.scan_directories([str(root)])

    assert [item.path.relative_to(root).as_posix() for item in files] == [
        "A.FLAC",
        "album/01 - intro.opus",
        "b.mp3",
    ]
    flac = files[0]
    assert flac.name == "A.FLAC"
    assert flac.directory == root
    assert flac.size == 4
    assert flac.modified > 0


def test_scan_skips_missing_dirs_and_keeps_configured_order(tmp_path) -> None:
    first = tmp_path / "z-first"
    second = tmp_path / "a-second"
    _touch(first / "one.wav")
    _touch(second / "two.m4a")

    files = scanner.scan_directories(
        [str(tmp_path / "missing"), str(first), str(second)]
    )

    assert [item.name for item in files] == ["one.wav", "two.m4a"]


def test_overlapping_dirs_do_not_duplicate_files(tmp_path) -> None:
    root = tmp_path / "music"
    _touch(root / "sub" / "song.aac")

    files = scanner.scan_directories([str(root), str(root / "sub")])

    assert [item.name for item in files] == ["song.aac"]


def test_expand_music_dir_expands_home(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert scanner.expand_music_dir(" ~/Music ") == tmp_path / "Music"
    assert scanner.expand_music_dir("/srv/audio") == Path("/srv/audio")


def test_scan_expands_tilde_dirs(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    _touch(tmp_path / "Music" / "track.wma")

    files = scanner.scan_directories(["~/Music"])

    assert [item.path for item in files] == [tmp_path / "Music" / "track.wma"]


def test_audio_extension_set() -> None:
    assert scanner.is_audio_file(Path("x.OGG"))
    assert not scanner.is_audio_file(Path("x.m3u"))
    assert scanner.AUDIO_EXTENSIONS == {
        ".mp3",
        ".flac",
        ".ogg",
        ".wav",
        ".m4a",
        ".aac",
        ".wma",
        ".opus",
    }
