"""ポートインターフェース定義。

ローカライズエンジンや統合処理はここで定義される Protocol に依存し、
具体実装（cv2 描画、pytesseract など）は各アダプタ層へ分離する。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import numpy as np

    from silkscan.models import BoardCoordinateSpace, BoundingBox, ParsedLayerGeometry, RawLayerInput
    from silkscan.ocr.ocr_engines import OcrWord


class VectorGraphic(Protocol):
    """描画可能なベクタ図形ポート。"""

    def bounds(self) -> BoundingBox:
        """図形のローカル矩形（プロッタ単位）を返す。"""

    def rebind(self, space: BoardCoordinateSpace) -> VectorGraphic:
        """指定したボード座標空間に束縛した図形を返す。"""

    def rasterize(self, scale: float, size: tuple[int, int]) -> np.ndarray:
        """白地に黒で描画したBGR画像を返す。sizeは (width, height)。"""


class RecognizerPort(Protocol):
    """OCR認識ポート。"""

    thread_safe: bool

    def recognize(self, image: np.ndarray) -> list[OcrWord]:
        """画像中の単語と画素座標のバウンディングボックスを返す。"""

    def close(self) -> None:
        """エンジンが保持するリソースを解放する。"""


class LayerPlotterPort(Protocol):
    """ファブリケーションデータのparse/plotポート。"""

    def __call__(self, raw: RawLayerInput) -> ParsedLayerGeometry:
        """ローカル矩形とベクタ図形を返す。失敗時は RecoverableLayerError。"""
