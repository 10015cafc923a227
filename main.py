#!/usr/bin/env python
"""
Gerber to CPL - メインエントリーポイント

GerberアーカイブのシルクスクリーンをOCRで読み取り、BOMの部品記号の
位置を探索して、部品配置リスト（CPL）をCSVで出力します。
"""

import logging
import sys
from pathlib import Path

from silkscan.cli import TqdmProgress, parse_arguments
from silkscan.config import ConfigManager
from silkscan.core.errors import ConfigurationError
from silkscan.io import cpl_filename
from silkscan.localization import LocalizationOptions
from silkscan.models import LocalizationStatus
from silkscan.ocr import create_recognizer
from silkscan.session import BoardSession
from silkscan.utils import PerformanceMonitor, setup_logging


def main(argv=None):
    """メイン処理"""
    args = parse_arguments(argv)

    # 初期ロギング設定（設定ファイル読み込み前）
    setup_logging(args.debug)
    logger = logging.getLogger(__name__)

    logger.info("=" * 80)
    logger.info("Gerber to CPL 起動")
    logger.info("=" * 80)

    progress = TqdmProgress()

    try:
        logger.info(f"設定ファイルを読み込んでいます: {args.config}")
        config = ConfigManager(args.config)

        # コマンドライン引数で設定を上書き
        if args.gerber:
            config.set("input.gerber_path", args.gerber)
        if args.bom:
            config.set("input.bom_path", args.bom)
        if args.engine:
            config.set("ocr.engine", args.engine)
        if args.units:
            config.set("units.display", args.units)
        if args.workers is not None:
            config.set("localization.max_workers", args.workers)
        if args.debug:
            config.set("output.debug_mode", True)
            logger.info("デバッグモードが有効になりました")

        config.validate()

        # ロギングを再設定（出力ディレクトリを反映）
        output_dir = config.get("output.directory", "output")
        debug_mode = config.get("output.debug_mode", False)
        setup_logging(debug_mode, output_dir)
        logger = logging.getLogger(__name__)

        gerber_path = config.get("input.gerber_path")
        bom_path = config.get("input.bom_path")
        if not gerber_path or not bom_path:
            logger.error("Gerberアーカイブ（--gerber）とBOM（--bom）の両方を指定してください")
            return 1

        ocr_options = config.ocr_options()
        engine = ocr_options.pop("engine")
        options: LocalizationOptions = config.localization_options()

        session = BoardSession(
            recognizer_factory=lambda: create_recognizer(engine, **ocr_options),
            options=options,
            native_units=config.get("units.native", "in"),
        )
        monitor = PerformanceMonitor()
        session.localizer.monitor = monitor

        board = session.load_gerber_archive(gerber_path)
        if board.is_empty:
            logger.error("読み込めるレイヤーがありませんでした")
            return 1
        for layer in board.layers:
            logger.info(f"  {layer.filename}: {layer.layer_type}")

        bom = session.load_bom(bom_path)
        if not bom:
            logger.error("BOMに部品がありません")
            return 1

        result = session.locate_designators(on_progress=progress)
        progress.close()

        if result.status is LocalizationStatus.EMPTY:
            logger.warning("シルクスクリーンレイヤーがないため、部品記号を探索できませんでした")
        for failure in result.failed_layers:
            logger.warning(f"失敗したレイヤー: {failure}")
        if result.status is LocalizationStatus.DONE and not result.matches:
            logger.warning("シルクスクリーン上に一致する部品記号が見つかりませんでした")

        session.apply_matches()

        output_path = args.output or config.get("output.cpl_filename")
        if not output_path:
            output_path = Path(output_dir) / cpl_filename(session.bom_filename)
        exported = session.export_cpl(output_path, display_units=config.get("units.display", "mm"))

        if debug_mode:
            monitor.log_summary()

        unplaced = [item.designator for item in bom if item.designator not in session.placements]
        logger.info("=" * 80)
        logger.info("処理が正常に完了しました")
        logger.info(f"配置済み: {len(bom) - len(unplaced)}/{len(bom)}部品")
        if unplaced:
            logger.info(f"未配置: {', '.join(unplaced)}")
        logger.info(f"出力ファイル: {exported.absolute()}")
        logger.info("=" * 80)

        return 0

    except FileNotFoundError as e:
        logger.error(f"ファイルが見つかりません: {e}")
        return 1
    except ConfigurationError as e:
        logger.error(f"設定エラー: {e}")
        return 1
    except ValueError as e:
        logger.error(f"入力エラー: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("処理が中断されました")
        return 130
    except Exception as e:
        logger.error(f"予期しないエラーが発生しました: {e}", exc_info=True)
        return 1
    finally:
        progress.close()


if __name__ == "__main__":
    sys.exit(main())
