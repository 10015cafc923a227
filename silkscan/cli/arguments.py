"""Command-line argument parsing."""

import argparse
from typing import Optional, Sequence


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """コマンドライン引数をパースする

    Args:
        argv: 引数リスト（None の場合は sys.argv）

    Returns:
        パース済み引数
    """
    parser = argparse.ArgumentParser(
        description="Gerber to CPL - シルクスクリーンのOCRで部品位置を探索し、部品配置リストを出力する"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="設定ファイルのパス（デフォルト: config.yaml）",
    )

    parser.add_argument("--gerber", type=str, help="GerberのZIPアーカイブ（設定の input.gerber_path を上書き）")

    parser.add_argument("--bom", type=str, help="BOM CSVファイル（設定の input.bom_path を上書き）")

    parser.add_argument(
        "--engine",
        type=str,
        choices=["tesseract", "easyocr", "paddleocr"],
        help="OCRエンジン（設定の ocr.engine を上書き）",
    )

    parser.add_argument("--output", type=str, help="出力CPLファイルのパス（指定しない場合はBOM名から生成）")

    parser.add_argument("--units", type=str, choices=["mm", "in"], help="出力単位（設定の units.display を上書き）")

    parser.add_argument("--workers", type=int, help="OCRワーカースレッド数")

    parser.add_argument("--debug", action="store_true", help="デバッグモードで実行（詳細ログ）")

    return parser.parse_args(argv)
