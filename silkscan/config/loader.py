"""設定ファイルの読み込み専用モジュール。"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

SUPPORTED_SUFFIXES = {".yaml", ".yml", ".json"}


def load_config_file(path: str | Path) -> dict[str, Any]:
    """YAML/JSON設定を辞書として読み込む。

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: 形式が不正な場合
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"設定ファイルが見つかりません: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"サポートされない設定形式です: {suffix}")

    with config_path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) if suffix in {".yaml", ".yml"} else json.load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"YAML解析エラー: {e}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"JSON解析エラー: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("設定ファイルは辞書形式である必要があります")
    return data


def dump_config_file(config: dict[str, Any], path: str | Path) -> None:
    """設定をYAML/JSONとして書き出す。"""
    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"サポートされない設定形式です: {suffix}")

    with config_path.open("w", encoding="utf-8") as f:
        if suffix == ".json":
            json.dump(config, f, indent=2, ensure_ascii=False)
        else:
            yaml.dump(config, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
