"""Bidirectional board <-> pixel coordinate transform.

Board space is Y-up with its origin at native (0, 0); pixel space is
Y-down with one pixel per 10 plotter units at zoom 1. The same mapping is
used for on-screen rendering, pointer-click capture and OCR
back-projection, so every caller goes through these two functions.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import numpy as np

from silkscan.core.errors import ConfigurationError
from silkscan.models import PLOTTER_UNITS_PER_NATIVE, BoardCoordinateSpace

logger = logging.getLogger(__name__)

# ズーム1での1ピクセルあたりのプロッタ単位
PLOTTER_UNITS_PER_PIXEL = 10.0


def board_to_pixel(x: float, y: float, board_space: Any) -> tuple[float, float]:
    """ボード座標（ネイティブ単位）をピクセル座標に変換する

    Args:
        x: ボードX座標
        y: ボードY座標
        board_space: BoardCoordinateSpace（または (minX, minY, w, h)）

    Returns:
        ピクセル座標 (px, py)

    Raises:
        ConfigurationError: board_space が不正な場合
    """
    space = BoardCoordinateSpace.coerce(board_space)
    px = (x * PLOTTER_UNITS_PER_NATIVE - space.min_x) / PLOTTER_UNITS_PER_PIXEL
    py = (space.y_translate - y * PLOTTER_UNITS_PER_NATIVE - space.min_y) / PLOTTER_UNITS_PER_PIXEL
    return (px, py)


def pixel_to_board(
    px: float,
    py: float,
    board_space: Any,
    scale: float = 1.0,
    offset: tuple[float, float] = (0.0, 0.0),
) -> tuple[float, float]:
    """ピクセル座標をボード座標（ネイティブ単位）に変換する

    board_to_pixel の厳密な逆変換。画面上のパン（offset）とズーム（scale）を
    先に取り除いてから逆変換を適用する。

    Args:
        px: ピクセルX座標
        py: ピクセルY座標
        board_space: BoardCoordinateSpace（または (minX, minY, w, h)）
        scale: 画面上の拡大率
        offset: 画面上の平行移動量 (dx, dy)

    Returns:
        ボード座標 (x, y)

    Raises:
        ConfigurationError: board_space または scale が不正な場合
    """
    space = BoardCoordinateSpace.coerce(board_space)
    if not scale > 0:
        raise ConfigurationError(f"拡大率は正である必要があります: {scale}")

    unscaled_px = (px - offset[0]) / scale
    unscaled_py = (py - offset[1]) / scale

    x = (unscaled_px * PLOTTER_UNITS_PER_PIXEL + space.min_x) / PLOTTER_UNITS_PER_NATIVE
    y = (space.y_translate - unscaled_py * PLOTTER_UNITS_PER_PIXEL - space.min_y) / PLOTTER_UNITS_PER_NATIVE
    return (x, y)


class BoardTransformer:
    """ボード座標空間に束縛された座標変換クラス

    board_to_pixel / pixel_to_board を1つのボードについて繰り返し使う場面
    （クリック位置の取得、描画位置の計算）向けのラッパー。

    Attributes:
        board_space: 変換に使うボード座標空間
    """

    def __init__(self, board_space: Any):
        """BoardTransformerを初期化する

        Raises:
            ConfigurationError: board_space が不正な場合
        """
        self.board_space = BoardCoordinateSpace.coerce(board_space)
        logger.debug(f"BoardTransformerを初期化しました: view_box={self.board_space.view_box}")

    @property
    def pixel_size(self) -> tuple[float, float]:
        """ズーム1でのボード全体のピクセルサイズ (width, height)"""
        return (
            self.board_space.width / PLOTTER_UNITS_PER_PIXEL,
            self.board_space.height / PLOTTER_UNITS_PER_PIXEL,
        )

    def to_pixel(self, x: float, y: float) -> tuple[float, float]:
        return board_to_pixel(x, y, self.board_space)

    def to_board(
        self, px: float, py: float, scale: float = 1.0, offset: tuple[float, float] = (0.0, 0.0)
    ) -> tuple[float, float]:
        return pixel_to_board(px, py, self.board_space, scale=scale, offset=offset)

    def to_pixel_batch(self, points: Iterable[tuple[float, float]]) -> list[tuple[float, float]]:
        """複数のボード座標を一括変換する"""
        pts = np.asarray(list(points), dtype=np.float64).reshape(-1, 2)
        if pts.size == 0:
            return []
        space = self.board_space
        px = (pts[:, 0] * PLOTTER_UNITS_PER_NATIVE - space.min_x) / PLOTTER_UNITS_PER_PIXEL
        py = (space.y_translate - pts[:, 1] * PLOTTER_UNITS_PER_NATIVE - space.min_y) / PLOTTER_UNITS_PER_PIXEL
        return [(float(a), float(b)) for a, b in zip(px, py)]

    def to_board_batch(
        self, pixels: Iterable[tuple[float, float]], scale: float = 1.0
    ) -> list[tuple[float, float]]:
        """複数のピクセル座標を一括変換する"""
        return [self.to_board(px, py, scale=scale) for px, py in pixels]

    def is_within_board(self, x: float, y: float) -> bool:
        """ボード座標がボード範囲内か判定する"""
        space = self.board_space
        px = x * PLOTTER_UNITS_PER_NATIVE
        py = y * PLOTTER_UNITS_PER_NATIVE
        return space.min_x <= px <= space.min_x + space.width and space.min_y <= py <= space.min_y + space.height
