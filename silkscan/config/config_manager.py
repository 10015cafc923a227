"""Configuration management for the silkscan placement tool."""

import copy
import logging
import os
from typing import Any, Dict, Optional

from silkscan.config.loader import dump_config_file, load_config_file
from silkscan.core.errors import ConfigurationError
from silkscan.localization.engine import LocalizationOptions

logger = logging.getLogger(__name__)

SUPPORTED_ENGINES = ("tesseract", "easyocr", "paddleocr")
SUPPORTED_UNITS = ("in", "mm")


class ConfigManager:
    """設定ファイル管理クラス

    YAML/JSON形式の設定ファイルを読み込み、検証し、設定値を提供する。

    Attributes:
        config_path: 設定ファイルのパス
        config: 読み込まれた設定データ
    """

    # 必須項目の定義
    REQUIRED_KEYS = {
        "input": [],
        "ocr": ["engine"],
        "localization": ["target_resolution", "max_scale", "binarize_threshold"],
        "units": ["native", "display"],
        "output": ["directory"],
    }

    # デフォルト設定値
    DEFAULT_CONFIG = {
        "input": {
            "gerber_path": None,
            "bom_path": None,
        },
        "ocr": {
            "engine": "tesseract",
            "lang": "eng",
            "psm": 6,
            "oem": 3,
            "dpi": 300,
        },
        "localization": {
            "target_resolution": 2500,
            "max_scale": 5.0,
            "binarize_threshold": 128,
            "min_token_length": 2,
            "max_workers": None,
            "rotated_pass": True,
        },
        "units": {
            "native": "in",
            "display": "mm",
        },
        "output": {
            "directory": "output",
            "cpl_filename": None,
            "debug_mode": False,
        },
    }

    def __init__(self, config_path: str = "config.yaml"):
        """ConfigManagerを初期化する

        Args:
            config_path: 設定ファイルのパス（デフォルト: config.yaml）
        """
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """設定ファイルを読み込む

        存在しないセクション・項目はデフォルト値で補う。

        Raises:
            ValueError: 設定ファイルの形式が不正な場合
        """
        if not os.path.exists(self.config_path):
            logger.warning(f"設定ファイル '{self.config_path}' が見つかりません。デフォルト設定を使用します。")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        loaded = load_config_file(self.config_path)
        if not loaded:
            logger.warning("設定ファイルが空です。デフォルト設定を使用します。")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        config = copy.deepcopy(self.DEFAULT_CONFIG)
        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

        logger.info(f"設定ファイル '{self.config_path}' を読み込みました。")
        return config

    def validate(self) -> bool:
        """設定値の妥当性を検証する

        必須項目の存在チェック、型チェック、値の範囲チェックを実行する。

        Returns:
            検証が成功した場合True

        Raises:
            ConfigurationError: 設定値が不正な場合（ValueError のサブクラス）
        """
        for section, required_keys in self.REQUIRED_KEYS.items():
            if section not in self.config:
                raise ConfigurationError(f"必須セクション '{section}' が設定ファイルに存在しません。")
            section_config = self.config[section]
            if not isinstance(section_config, dict):
                raise ConfigurationError(f"セクション '{section}' は辞書型である必要があります。")
            for key in required_keys:
                if key not in section_config:
                    raise ConfigurationError(f"必須項目 '{section}.{key}' が設定ファイルに存在しません。")

        self._validate_input_config()
        self._validate_ocr_config()
        self._validate_localization_config()
        self._validate_units_config()
        self._validate_output_config()

        logger.info("設定ファイルの検証が完了しました。")
        return True

    def _validate_input_config(self):
        """input セクションの検証"""
        input_config = self.config.get("input", {})
        for key in ("gerber_path", "bom_path"):
            value = input_config.get(key)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(f"input.{key} は文字列である必要があります。")

    def _validate_ocr_config(self):
        """ocr セクションの検証"""
        ocr_config = self.config.get("ocr", {})

        engine = ocr_config.get("engine")
        if not isinstance(engine, str) or engine not in SUPPORTED_ENGINES:
            raise ConfigurationError(f"ocr.engine は {SUPPORTED_ENGINES} のいずれかである必要があります。")

        if "lang" in ocr_config and not isinstance(ocr_config["lang"], str):
            raise ConfigurationError("ocr.lang は文字列である必要があります。")

        for key in ("psm", "oem"):
            if key in ocr_config:
                value = ocr_config[key]
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise ConfigurationError(f"ocr.{key} は非負の整数である必要があります。")

        if "dpi" in ocr_config:
            dpi = ocr_config["dpi"]
            if not isinstance(dpi, int) or isinstance(dpi, bool) or dpi <= 0:
                raise ConfigurationError("ocr.dpi は正の整数である必要があります。")

    def _validate_localization_config(self):
        """localization セクションの検証"""
        loc_config = self.config.get("localization", {})

        resolution = loc_config.get("target_resolution")
        if not isinstance(resolution, int) or isinstance(resolution, bool) or resolution <= 0:
            raise ConfigurationError("localization.target_resolution は正の整数である必要があります。")

        max_scale = loc_config.get("max_scale")
        if not isinstance(max_scale, (int, float)) or isinstance(max_scale, bool) or max_scale <= 0:
            raise ConfigurationError("localization.max_scale は正の数値である必要があります。")

        threshold = loc_config.get("binarize_threshold")
        if not isinstance(threshold, int) or isinstance(threshold, bool) or not (0 <= threshold <= 255):
            raise ConfigurationError("localization.binarize_threshold は 0 から 255 の範囲である必要があります。")

        if "min_token_length" in loc_config:
            length = loc_config["min_token_length"]
            if not isinstance(length, int) or isinstance(length, bool) or length < 1:
                raise ConfigurationError("localization.min_token_length は1以上の整数である必要があります。")

        workers = loc_config.get("max_workers")
        if workers is not None and (not isinstance(workers, int) or isinstance(workers, bool) or workers <= 0):
            raise ConfigurationError("localization.max_workers は正の整数または null である必要があります。")

        if "rotated_pass" in loc_config and not isinstance(loc_config["rotated_pass"], bool):
            raise ConfigurationError("localization.rotated_pass はブール値である必要があります。")

    def _validate_units_config(self):
        """units セクションの検証"""
        units_config = self.config.get("units", {})
        for key in ("native", "display"):
            if units_config.get(key) not in SUPPORTED_UNITS:
                raise ConfigurationError(f"units.{key} は 'in' または 'mm' である必要があります。")

    def _validate_output_config(self):
        """output セクションの検証"""
        output_config = self.config.get("output", {})

        if not isinstance(output_config.get("directory"), str):
            raise ConfigurationError("output.directory は文字列である必要があります。")

        filename = output_config.get("cpl_filename")
        if filename is not None and not isinstance(filename, str):
            raise ConfigurationError("output.cpl_filename は文字列である必要があります。")

        if "debug_mode" in output_config and not isinstance(output_config["debug_mode"], bool):
            raise ConfigurationError("output.debug_mode はブール値である必要があります。")

    def get(self, key: str, default: Any = None) -> Any:
        """設定値を取得する

        ドット記法（例: 'ocr.engine'）で階層的な設定値にアクセスできる。

        Args:
            key: 設定キー（ドット記法をサポート）
            default: キーが存在しない場合のデフォルト値

        Returns:
            設定値、またはデフォルト値
        """
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """設定セクション全体を取得する"""
        return self.config.get(section, {})

    def set(self, key: str, value: Any):
        """設定値を動的に変更する

        Args:
            key: 設定キー（ドット記法をサポート）
            value: 設定する値
        """
        keys = key.split(".")
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        logger.debug(f"設定値を変更しました: {key} = {value}")

    def localization_options(self) -> LocalizationOptions:
        """localization セクションから探索設定を作る"""
        section = self.get_section("localization")
        defaults = LocalizationOptions()
        return LocalizationOptions(
            target_resolution=section.get("target_resolution", defaults.target_resolution),
            max_scale=float(section.get("max_scale", defaults.max_scale)),
            binarize_threshold=section.get("binarize_threshold", defaults.binarize_threshold),
            min_token_length=section.get("min_token_length", defaults.min_token_length),
            max_workers=section.get("max_workers", defaults.max_workers),
            rotated_pass=section.get("rotated_pass", defaults.rotated_pass),
        )

    def ocr_options(self) -> Dict[str, Any]:
        """ocr セクションから create_recognizer の引数を作る"""
        options = dict(self.get_section("ocr"))
        options.setdefault("engine", "tesseract")
        return options

    def save(self, output_path: Optional[str] = None):
        """設定をファイルに保存する

        Args:
            output_path: 保存先パス（指定しない場合は元のパスに上書き）
        """
        save_path = output_path or self.config_path
        try:
            dump_config_file(self.config, save_path)
            logger.info(f"設定ファイルを保存しました: {save_path}")
        except Exception as e:
            logger.error(f"設定ファイルの保存に失敗しました: {e}")
            raise
