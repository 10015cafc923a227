"""Unit tests for command-line argument parsing."""

from __future__ import annotations

import pytest

from silkscan.cli import parse_arguments


def test_defaults():
    """引数なしの既定値。"""

    args = parse_arguments([])

    assert args.config == "config.yaml"
    assert args.gerber is None
    assert args.bom is None
    assert args.engine is None
    assert not args.debug


def test_all_options():
    """全オプションを指定できる。"""

    args = parse_arguments(
        [
            "--gerber", "board.zip",
            "--bom", "bom.csv",
            "--config", "custom.yaml",
            "--engine", "easyocr",
            "--output", "out.csv",
            "--units", "in",
            "--workers", "3",
            "--debug",
        ]
    )

    assert args.gerber == "board.zip"
    assert args.bom == "bom.csv"
    assert args.config == "custom.yaml"
    assert args.engine == "easyocr"
    assert args.output == "out.csv"
    assert args.units == "in"
    assert args.workers == 3
    assert args.debug


def test_invalid_engine_exits():
    """未知のエンジン名はエラー終了する。"""

    with pytest.raises(SystemExit):
        parse_arguments(["--engine", "unknown"])
