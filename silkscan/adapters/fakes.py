"""テスト向けの軽量な Fake 実装群。"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import cv2
import numpy as np

from silkscan.models import BoundingBox
from silkscan.ocr.ocr_engines import OcrWord

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from silkscan.models import BoardCoordinateSpace


class FakeRecognizer:
    """黒い連結成分を単語とみなす認識器

    連結成分を (上端, 左端) の順に並べ、texts を先頭から割り当てる。
    texts より多い成分は無視する。
    """

    def __init__(
        self,
        texts: Sequence[str] = (),
        thread_safe: bool = True,
        on_recognize: Callable[[np.ndarray], None] | None = None,
    ):
        self.texts = list(texts)
        self.thread_safe = thread_safe
        self.on_recognize = on_recognize
        self.calls = 0
        self.closed = False
        self._lock = threading.Lock()

    def recognize(self, image: np.ndarray) -> list[OcrWord]:
        with self._lock:
            self.calls += 1
        if self.on_recognize is not None:
            self.on_recognize(image)

        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        mask = (gray < 128).astype(np.uint8)
        count, _, stats, _ = cv2.connectedComponentsWithStats(mask, connectivity=8)

        boxes = sorted(
            (int(stats[i, cv2.CC_STAT_TOP]), int(stats[i, cv2.CC_STAT_LEFT]), i) for i in range(1, count)
        )
        words = []
        for text, (top, left, i) in zip(self.texts, boxes):
            width, height = int(stats[i, cv2.CC_STAT_WIDTH]), int(stats[i, cv2.CC_STAT_HEIGHT])
            words.append(OcrWord(text=text, bbox=(left, top, left + width, top + height), confidence=1.0))
        return words

    def close(self) -> None:
        self.closed = True


class FailingRecognizer:
    """常に失敗する認識器"""

    thread_safe = True

    def __init__(self, message: str = "recognizer failure"):
        self.message = message
        self.closed = False

    def recognize(self, image: np.ndarray) -> list[OcrWord]:
        raise RuntimeError(self.message)

    def close(self) -> None:
        self.closed = True


class BrokenGraphic:
    """ラスタ化に失敗するベクタ図形"""

    def __init__(self, box: BoundingBox | None = None):
        self.box = box or BoundingBox(0.0, 0.0, 1000.0, 1000.0)

    def bounds(self) -> BoundingBox:
        return self.box

    def rebind(self, space: BoardCoordinateSpace) -> BrokenGraphic:
        _ = space  # 未使用引数
        return self

    def rasterize(self, scale: float, size: tuple[int, int]) -> np.ndarray:
        raise RuntimeError("rasterize failure")
