"""Plotted vector graphics and their cv2 rasterization."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

import cv2
import numpy as np

from silkscan.models import BoardCoordinateSpace, BoundingBox

logger = logging.getLogger(__name__)

# cv2描画のサブピクセル精度（2^4 = 1/16ピクセル）
_DRAW_SHIFT = 4
_DRAW_FACTOR = 1 << _DRAW_SHIFT


@dataclass(frozen=True, eq=False)
class Stroke:
    """円形アパーチャで描かれた線分列

    Attributes:
        points: (N, 2) の頂点列（プロッタ単位）
        width: 線幅（プロッタ単位）
    """

    points: np.ndarray
    width: float


@dataclass(frozen=True)
class Flash:
    """アパーチャのフラッシュ（パッド、ドリル穴）

    Attributes:
        x: 中心X（プロッタ単位）
        y: 中心Y（プロッタ単位）
        width: 幅（円の場合は直径）
        height: 高さ（円の場合は直径）
        shape: "C"（円）または "R"（矩形）
    """

    x: float
    y: float
    width: float
    height: float
    shape: str = "C"


@dataclass(frozen=True)
class PlotGraphic:
    """プロット済みのベクタ図形

    座標は全てプロッタ単位の絶対座標で保持する。view_box は描画時に
    画像の原点とY反転の基準になる矩形で、統合処理で全レイヤー共通の
    ボード座標空間に上書きされる。

    Attributes:
        strokes: 線分列
        flashes: フラッシュ
        view_box: 描画基準の矩形（None の場合は自身の bounds）
        name: 識別名（ログ用）
    """

    strokes: tuple[Stroke, ...] = ()
    flashes: tuple[Flash, ...] = ()
    view_box: BoundingBox | None = None
    name: str = field(default="", compare=False)

    @property
    def is_empty(self) -> bool:
        return not self.strokes and not self.flashes

    def bounds(self) -> BoundingBox:
        """線幅・フラッシュ寸法を含むローカル矩形を返す"""
        min_x = min_y = float("inf")
        max_x = max_y = float("-inf")

        for stroke in self.strokes:
            if len(stroke.points) == 0:
                continue
            half = stroke.width / 2
            min_x = min(min_x, float(stroke.points[:, 0].min()) - half)
            min_y = min(min_y, float(stroke.points[:, 1].min()) - half)
            max_x = max(max_x, float(stroke.points[:, 0].max()) + half)
            max_y = max(max_y, float(stroke.points[:, 1].max()) + half)

        for flash in self.flashes:
            min_x = min(min_x, flash.x - flash.width / 2)
            min_y = min(min_y, flash.y - flash.height / 2)
            max_x = max(max_x, flash.x + flash.width / 2)
            max_y = max(max_y, flash.y + flash.height / 2)

        if min_x == float("inf"):
            return BoundingBox(0.0, 0.0, 0.0, 0.0)
        return BoundingBox.from_extents(min_x, min_y, max_x, max_y)

    def rebind(self, space: BoardCoordinateSpace) -> PlotGraphic:
        """ボード座標空間を描画基準にした図形を返す"""
        return replace(self, view_box=space.as_box())

    def rasterize(self, scale: float, size: tuple[int, int]) -> np.ndarray:
        """白地に黒で描画したBGR画像を返す

        画素座標は px = (X - minX) * scale, py = (minY + height - Y) * scale。

        Args:
            scale: 1プロッタ単位あたりのピクセル数
            size: 出力画像サイズ (width, height)

        Returns:
            uint8 の (height, width, 3) 画像
        """
        width_px, height_px = size
        canvas = np.full((height_px, width_px, 3), 255, dtype=np.uint8)
        box = self.view_box or self.bounds()
        top = box.min_y + box.height

        def to_pixel(points: np.ndarray) -> np.ndarray:
            px = (points[:, 0] - box.min_x) * scale
            py = (top - points[:, 1]) * scale
            return np.round(np.stack([px, py], axis=1) * _DRAW_FACTOR).astype(np.int32)

        for stroke in self.strokes:
            if len(stroke.points) == 0:
                continue
            pts = to_pixel(np.asarray(stroke.points, dtype=np.float64))
            thickness = max(1, int(round(stroke.width * scale)))
            if len(pts) == 1:
                radius = max(1, int(round(stroke.width * scale / 2 * _DRAW_FACTOR)))
                cv2.circle(canvas, tuple(int(v) for v in pts[0]), radius, (0, 0, 0), -1, cv2.LINE_AA, _DRAW_SHIFT)
                continue
            cv2.polylines(canvas, [pts.reshape(-1, 1, 2)], False, (0, 0, 0), thickness, cv2.LINE_AA, _DRAW_SHIFT)

        for flash in self.flashes:
            center = to_pixel(np.array([[flash.x, flash.y]], dtype=np.float64))[0]
            if flash.shape == "R":
                half_w = flash.width * scale / 2 * _DRAW_FACTOR
                half_h = flash.height * scale / 2 * _DRAW_FACTOR
                p1 = (int(center[0] - half_w), int(center[1] - half_h))
                p2 = (int(center[0] + half_w), int(center[1] + half_h))
                cv2.rectangle(canvas, p1, p2, (0, 0, 0), -1, cv2.LINE_AA, _DRAW_SHIFT)
            else:
                radius = max(1, int(round(flash.width * scale / 2 * _DRAW_FACTOR)))
                cv2.circle(canvas, (int(center[0]), int(center[1])), radius, (0, 0, 0), -1, cv2.LINE_AA, _DRAW_SHIFT)

        return canvas
