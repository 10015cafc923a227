"""Gerber archive ingestion."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from silkscan.models import RawLayerInput

logger = logging.getLogger(__name__)

FABRICATION_EXTENSIONS = frozenset(
    {"gtl", "gbl", "gto", "gbo", "gts", "gbs", "txt", "dri", "drl", "xln", "ger", "gbr", "gbp", "gtp", "gko", "nc"}
)


def is_fabrication_file(filename: str) -> bool:
    """拡張子がファブリケーションデータか判定する"""
    if "." not in filename:
        return False
    return filename.rsplit(".", 1)[-1].lower() in FABRICATION_EXTENSIONS


def read_gerber_archive(path: str | Path) -> list[RawLayerInput]:
    """ZIPアーカイブからファブリケーションファイルを読み込む

    ディレクトリと対象外の拡張子はスキップする。デコードできないバイトは置換する。

    Args:
        path: ZIPファイルのパス

    Returns:
        アーカイブ内の順序でのファイル一覧

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: ZIPとして読み込めない場合
    """
    archive_path = Path(path)
    if not archive_path.exists():
        raise FileNotFoundError(f"Gerberアーカイブが見つかりません: {archive_path}")

    try:
        archive = zipfile.ZipFile(archive_path)
    except zipfile.BadZipFile as e:
        raise ValueError(f"ZIPファイルとして読み込めません: {archive_path}") from e

    inputs: list[RawLayerInput] = []
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            if not is_fabrication_file(info.filename):
                logger.debug(f"対象外のファイルをスキップします: {info.filename}")
                continue
            text = archive.read(info).decode("utf-8", errors="replace")
            inputs.append(RawLayerInput(filename=info.filename, text=text))

    logger.info(f"Gerberアーカイブから{len(inputs)}ファイルを読み込みました: {archive_path.name}")
    return inputs


def read_gerber_files(paths: list[str | Path]) -> list[RawLayerInput]:
    """個別のファブリケーションファイルを読み込む"""
    inputs = []
    for path in paths:
        file_path = Path(path)
        text = file_path.read_text(encoding="utf-8", errors="replace")
        inputs.append(RawLayerInput(filename=file_path.name, text=text))
    return inputs
