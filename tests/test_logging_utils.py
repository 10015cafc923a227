"""Test cases for logging_utils."""

from __future__ import annotations

import logging
from pathlib import Path

from silkscan.utils.logging_utils import setup_logging


def test_setup_logging_debug_mode(tmp_path: Path):
    """デバッグモードでのロギング設定"""
    output_dir = str(tmp_path / "output")

    setup_logging(debug_mode=True, output_dir=output_dir)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG

    file_handlers = [h for h in root_logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert Path(file_handlers[0].baseFilename) == (Path(output_dir) / "silkscan.log").resolve()


def test_setup_logging_info_mode(tmp_path: Path):
    """INFOモードでのロギング設定"""
    setup_logging(debug_mode=False, output_dir=str(tmp_path / "output"))

    assert logging.getLogger().level == logging.INFO


def test_setup_logging_creates_directory(tmp_path: Path):
    """存在しないディレクトリが自動作成される"""
    output_dir = tmp_path / "new" / "output"

    setup_logging(debug_mode=False, output_dir=str(output_dir))

    assert output_dir.exists()


def test_setup_logging_replaces_existing_handlers(tmp_path: Path):
    """再設定しても既存のハンドラーは置き換えられる"""
    setup_logging(debug_mode=False, output_dir=str(tmp_path / "first"))
    setup_logging(debug_mode=False, output_dir=str(tmp_path / "second"))

    file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert "second" in file_handlers[0].baseFilename


def test_log_messages_are_written_to_file(tmp_path: Path):
    """ログメッセージがファイルに書き込まれる"""
    output_dir = tmp_path / "output"
    setup_logging(debug_mode=False, output_dir=str(output_dir))

    logging.getLogger("silkscan.test").info("部品記号の探索が完了しました")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = (output_dir / "silkscan.log").read_text(encoding="utf-8")
    assert "silkscan.test - INFO - 部品記号の探索が完了しました" in content
