"""Unit tests for Gerber archive ingestion."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from silkscan.io import read_gerber_archive, read_gerber_files
from silkscan.io.archive import is_fabrication_file

from conftest import SILKSCREEN_GERBER


def _make_zip(path: Path, entries: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("gerbers/", b"")
        for name, data in entries.items():
            archive.writestr(name, data)
    return path


def test_reads_fabrication_files_only(tmp_path: Path):
    """ファブリケーションファイルのみ読み込み、ディレクトリと対象外ファイルは無視する。"""

    archive_path = _make_zip(
        tmp_path / "board.zip",
        {
            "gerbers/board.GTO": SILKSCREEN_GERBER.encode(),
            "gerbers/board.drl": b"M48\nINCH\nM30\n",
            "readme.md": b"# notes",
            "gerbers/board.pdf": b"%PDF",
        },
    )

    inputs = read_gerber_archive(archive_path)

    assert [raw.filename for raw in inputs] == ["gerbers/board.GTO", "gerbers/board.drl"]
    assert inputs[0].extension == "gto"
    assert inputs[0].text == SILKSCREEN_GERBER


def test_undecodable_bytes_are_replaced(tmp_path: Path):
    """デコードできないバイトは置換文字になる。"""

    archive_path = _make_zip(tmp_path / "board.zip", {"board.gbo": b"G04 \xff\xfe*\nM02*\n"})

    inputs = read_gerber_archive(archive_path)
    assert "\ufffd" in inputs[0].text


def test_missing_archive(tmp_path: Path):
    """存在しないファイルは FileNotFoundError。"""

    with pytest.raises(FileNotFoundError):
        read_gerber_archive(tmp_path / "missing.zip")


def test_not_a_zip(tmp_path: Path):
    """ZIPでないファイルは ValueError。"""

    path = tmp_path / "board.zip"
    path.write_text("not a zip", encoding="utf-8")

    with pytest.raises(ValueError):
        read_gerber_archive(path)


@pytest.mark.parametrize(
    ("filename", "expected"),
    [("a.GTL", True), ("a.txt", True), ("a.nc", True), ("a.pdf", False), ("Makefile", False)],
)
def test_is_fabrication_file(filename: str, expected: bool):
    """拡張子による判定。"""

    assert is_fabrication_file(filename) is expected


def test_read_gerber_files(tmp_path: Path):
    """個別ファイルを読み込める。"""

    path = tmp_path / "board.gto"
    path.write_text(SILKSCREEN_GERBER, encoding="utf-8")

    inputs = read_gerber_files([path])
    assert inputs[0].filename == "board.gto"
    assert inputs[0].text == SILKSCREEN_GERBER
