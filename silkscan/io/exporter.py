"""Component placement list (CPL) export."""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Mapping, Sequence
from datetime import date
from pathlib import Path

from silkscan.models import BomItem, PlacementRecord

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4
SUPPORTED_UNITS = ("mm", "in")
CPL_HEADER = ["Designator", "Value", "Mid X", "Mid Y", "Layer", "Rotation"]


def convert_units(value: float, native_units: str = "in", display_units: str = "mm") -> float:
    """ネイティブ単位の値を表示単位に変換する"""
    if native_units == "in" and display_units == "mm":
        return value * MM_PER_INCH
    if native_units == "mm" and display_units == "in":
        return value / MM_PER_INCH
    return value


def format_coordinate(value: float | None, native_units: str = "in", display_units: str = "mm") -> str:
    """座標を表示単位の文字列にする（mm は小数2桁、in は小数3桁）"""
    if value is None:
        return ""
    digits = 2 if display_units == "mm" else 3
    return f"{convert_units(value, native_units, display_units):.{digits}f}"


def cpl_filename(bom_filename: str = "", today: date | None = None) -> str:
    """BOMファイル名からCPLファイル名を作る

    "BOM" を "CPL" に置き換え（大文字小文字を区別しない）、含まれない場合は
    "_CPL" を付加する。BOMファイル名がない場合は日付入りの既定名を使う。
    """
    if bom_filename:
        stem = re.sub(r"\.[^/.]+$", "", Path(bom_filename).name)
        name = re.sub(r"BOM", "CPL", stem, count=1, flags=re.IGNORECASE)
        if name == stem:
            name += "_CPL"
    else:
        name = f"component_placement_{(today or date.today()).isoformat()}"
    return name.replace(".", "_") + ".csv"


def export_cpl(
    placements: Mapping[str, PlacementRecord],
    bom: Sequence[BomItem],
    output_path: str | Path,
    display_units: str = "mm",
    native_units: str = "in",
) -> Path:
    """配置レコードをCPL CSVとして書き出す

    BOMの行順で出力し、未配置の部品は座標・面・回転を空欄にする。
    表計算ソフトで文字化けしないよう UTF-8 BOM 付きで保存する。

    Args:
        placements: BOMの部品記号 -> 配置レコード
        bom: BOM行
        output_path: 出力先
        display_units: 出力単位（"mm" または "in"）
        native_units: 配置レコードの単位

    Returns:
        出力ファイルのパス

    Raises:
        ValueError: 単位が不正な場合
    """
    for units in (display_units, native_units):
        if units not in SUPPORTED_UNITS:
            raise ValueError(f"サポートされていない単位です: {units}")

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    placed = 0
    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.writer(f)
        writer.writerow(CPL_HEADER)
        for item in bom:
            record = placements.get(item.designator)
            if record is None:
                writer.writerow([item.designator, item.comment, "", "", "", ""])
                continue
            placed += 1
            writer.writerow(
                [
                    item.designator,
                    item.comment,
                    format_coordinate(record.x, native_units, display_units),
                    format_coordinate(record.y, native_units, display_units),
                    record.side.value,
                    record.rotation,
                ]
            )

    logger.info(f"CPLを書き出しました: {path} ({placed}/{len(bom)}部品配置済み)")
    return path
