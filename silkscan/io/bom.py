"""BOM CSV loading."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from silkscan.localization.designator_filter import normalize_designator
from silkscan.models import BomItem

logger = logging.getLogger(__name__)


def load_bom(path: str | Path) -> list[BomItem]:
    """BOM CSVを読み込む

    ヘッダーは小文字化・前後空白除去して照合する。designator 列は必須で、
    comment / footprint / part number（または partnumber）列は任意。

    Args:
        path: CSVファイルのパス

    Returns:
        BOM行のリスト（ファイル順、designator が空の行は除外）

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: designator 列がない場合
    """
    bom_path = Path(path)
    if not bom_path.exists():
        raise FileNotFoundError(f"BOMファイルが見つかりません: {bom_path}")

    df = pd.read_csv(bom_path, dtype=str, keep_default_na=False, skip_blank_lines=True, encoding="utf-8-sig")
    df.columns = [str(c).strip().lower() for c in df.columns]

    if "designator" not in df.columns:
        raise ValueError(f"BOMに designator 列がありません: {list(df.columns)}")

    part_number_column = "part number" if "part number" in df.columns else "partnumber"
    items = []
    for _, row in df.iterrows():
        designator = str(row.get("designator", "")).strip()
        if not designator:
            continue
        items.append(
            BomItem(
                designator=designator,
                comment=str(row.get("comment", "")),
                footprint=str(row.get("footprint", "")),
                part_number=str(row.get(part_number_column, "")),
            )
        )

    logger.info(f"BOMを読み込みました: {len(items)}行 ({bom_path.name})")
    return items


def designator_set(items: Iterable[BomItem]) -> set[str]:
    """BOMから正規化済みの部品記号集合を作る"""
    return {d for d in (normalize_designator(item.designator) for item in items) if d}
