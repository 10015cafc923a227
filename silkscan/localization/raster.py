"""Raster geometry for silkscreen OCR.

A layer is rasterized at `scale` pixels per plotter unit, binarized, and
recognized twice: as rendered, and rotated 90 degrees clockwise for
vertical text. Recognized boxes are mapped back to board coordinates
through the same Y-flipped inverse used for pointer clicks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2
import numpy as np

from silkscan.core.errors import ConfigurationError
from silkscan.transform import PLOTTER_UNITS_PER_PIXEL, pixel_to_board

if TYPE_CHECKING:
    from silkscan.core.interfaces import VectorGraphic
    from silkscan.models import BoardCoordinateSpace

DEFAULT_TARGET_RESOLUTION = 2500
DEFAULT_MAX_SCALE = 5.0
DEFAULT_BINARIZE_THRESHOLD = 128


@dataclass(frozen=True)
class RasterGeometry:
    """ラスタのサイズと倍率

    Attributes:
        scale: 1プロッタ単位あたりのピクセル数
        width: 画像幅（ピクセル）
        height: 画像高さ（ピクセル）
    """

    scale: float
    width: int
    height: int

    @classmethod
    def for_board(
        cls,
        board_space: BoardCoordinateSpace,
        target_resolution: int = DEFAULT_TARGET_RESOLUTION,
        max_scale: float = DEFAULT_MAX_SCALE,
    ) -> RasterGeometry:
        """ボードの長辺が target_resolution になる倍率を求める（max_scale で上限）

        Raises:
            ConfigurationError: 解像度または上限倍率が正でない場合
        """
        if target_resolution <= 0 or max_scale <= 0:
            raise ConfigurationError(
                f"ラスタ解像度と上限倍率は正である必要があります: {target_resolution}, {max_scale}"
            )
        scale = min(target_resolution / board_space.width, target_resolution / board_space.height, max_scale)
        width = max(1, int(np.floor(board_space.width * scale)))
        height = max(1, int(np.floor(board_space.height * scale)))
        return cls(scale=scale, width=width, height=height)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def view_scale(self) -> float:
        """画面ピクセル（ズーム1）に対するラスタの拡大率"""
        return self.scale * PLOTTER_UNITS_PER_PIXEL


def rasterize_layer(graphic: VectorGraphic, geometry: RasterGeometry) -> np.ndarray:
    """レイヤー図形を白地に黒で描画する"""
    return graphic.rasterize(geometry.scale, geometry.size)


def binarize(image: np.ndarray, threshold: int = DEFAULT_BINARIZE_THRESHOLD) -> np.ndarray:
    """チャンネル平均で濃淡化し、閾値未満を黒（0）、それ以外を白（255）にする"""
    gray = image.mean(axis=2) if image.ndim == 3 else image.astype(np.float64)
    return np.where(gray < threshold, 0, 255).astype(np.uint8)


def rotate_clockwise(image: np.ndarray) -> np.ndarray:
    """画像を時計回りに90度回転する（(x, y) -> (H - y, x)）"""
    return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)


def unrotate_point(x: float, y: float, original_height: int) -> tuple[float, float]:
    """時計回り90度回転後の画像座標を回転前の座標に戻す

    回転前の画像高さを H とすると、回転は (x, y) -> (H - y, x) なので、
    逆変換は (xr, yr) -> (yr, H - xr)。

    Args:
        x: 回転後画像のX座標
        y: 回転後画像のY座標
        original_height: 回転前の画像高さ（= 回転後の画像幅）

    Returns:
        回転前画像の座標 (x, y)
    """
    return (y, original_height - x)


def raster_to_board(
    x: float, y: float, geometry: RasterGeometry, board_space: BoardCoordinateSpace
) -> tuple[float, float]:
    """ラスタ座標をボード座標（ネイティブ単位）に変換する"""
    return pixel_to_board(x, y, board_space, scale=geometry.view_scale)
