"""Exception types shared across the silkscan pipeline."""

from __future__ import annotations


class SilkscanError(Exception):
    """silkscan 共通の基底例外"""


class ConfigurationError(SilkscanError, ValueError):
    """不正な BoardCoordinateSpace や設定値"""


class RecoverableLayerError(SilkscanError):
    """1レイヤー分の処理（parse/plot/raster/OCR）の失敗

    呼び出し側はログに記録してスキップし、処理を継続する。

    Attributes:
        filename: 失敗したレイヤーのファイル名
        stage: 失敗した処理段階（"plot", "raster", "ocr" など）
        cause: 元の例外（存在する場合）
    """

    def __init__(self, filename: str, stage: str, message: str = "", cause: BaseException | None = None):
        self.filename = filename
        self.stage = stage
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "unknown error")
        super().__init__(f"{filename} [{stage}]: {detail}")


class SessionBusyError(SilkscanError, RuntimeError):
    """同一セッションで別の認識処理が実行中"""
