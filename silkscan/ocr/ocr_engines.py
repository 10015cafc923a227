"""OCRエンジン共通インターフェースモジュール

Tesseract、EasyOCR、PaddleOCRを単語単位の認識器として統一的に扱うためのラッパー。
各認識器は画像を受け取り、単語テキストと画素座標のバウンディングボックスを返す。
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

import cv2
import numpy as np
import pytesseract

logger = logging.getLogger(__name__)

# PaddleOCRとEasyOCRはオプショナル
try:
    from paddleocr import PaddleOCR

    PADDLEOCR_AVAILABLE = True
except ImportError:
    PADDLEOCR_AVAILABLE = False
    logger.debug("PaddleOCRがインストールされていません。pip install paddleocr でインストールできます。")

try:
    import easyocr

    EASYOCR_AVAILABLE = True
except ImportError:
    EASYOCR_AVAILABLE = False
    logger.debug("EasyOCRがインストールされていません。pip install easyocr でインストールできます。")


@dataclass(frozen=True)
class OcrWord:
    """認識された単語

    Attributes:
        text: 認識テキスト（未正規化）
        bbox: 画素座標のバウンディングボックス (x0, y0, x1, y1)
        confidence: 信頼度 (0.0-1.0)。照合には使わない
    """

    text: str
    bbox: tuple[float, float, float, float]
    confidence: float = 0.0

    @property
    def center(self) -> tuple[float, float]:
        x0, y0, x1, y1 = self.bbox
        return ((x0 + x1) / 2, (y0 + y1) / 2)


def _bbox_from_polygon(points: Any) -> tuple[float, float, float, float]:
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    return (float(pts[:, 0].min()), float(pts[:, 1].min()), float(pts[:, 0].max()), float(pts[:, 1].max()))


def _to_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return image


class TesseractRecognizer:
    """Tesseract による単語認識器

    tesseract はプロセス外で実行されるため、スレッド間で共有できる。
    """

    thread_safe = True

    def __init__(
        self,
        psm: int = 6,
        oem: int = 3,
        lang: str = "eng",
        dpi: int = 300,
        whitelist: str | None = None,
    ):
        """TesseractRecognizerを初期化

        Args:
            psm: PSMモード（Page Segmentation Mode）。6は一様なテキストブロック
            oem: OCR Engine Mode
            lang: 言語コード
            dpi: 画像の想定解像度
            whitelist: 認識する文字のホワイトリスト（None の場合は制限なし）
        """
        self.psm = psm
        self.oem = oem
        self.lang = lang
        self.dpi = dpi
        self.whitelist = whitelist

    @property
    def config(self) -> str:
        config_str = f"--psm {self.psm} --oem {self.oem} --dpi {self.dpi}"
        if self.whitelist:
            config_str += f" -c tessedit_char_whitelist={self.whitelist}"
        return config_str

    def recognize(self, image: np.ndarray) -> list[OcrWord]:
        """画像中の単語を認識する

        Raises:
            pytesseract.TesseractError: tesseract の実行に失敗した場合
        """
        data = pytesseract.image_to_data(
            image, lang=self.lang, config=self.config, output_type=pytesseract.Output.DICT
        )

        words: list[OcrWord] = []
        for i, text in enumerate(data.get("text", [])):
            text = str(text).strip()
            conf = float(data["conf"][i])
            if not text or conf < 0:
                continue
            left, top = float(data["left"][i]), float(data["top"][i])
            width, height = float(data["width"][i]), float(data["height"][i])
            words.append(OcrWord(text=text, bbox=(left, top, left + width, top + height), confidence=conf / 100.0))
        return words

    def close(self) -> None:
        return None


class EasyOCRRecognizer:
    """EasyOCR による単語認識器（高精度、やや遅い）"""

    thread_safe = False

    def __init__(self, languages: list[str] | None = None, gpu: bool = False):
        if not EASYOCR_AVAILABLE:
            raise RuntimeError("EasyOCRが利用できません。pip install easyocr でインストールしてください。")
        self._reader = easyocr.Reader(languages or ["en"], gpu=gpu)

    def recognize(self, image: np.ndarray) -> list[OcrWord]:
        if self._reader is None:
            raise RuntimeError("EasyOCRリーダーは解放済みです")
        results = self._reader.readtext(_to_bgr(image))
        return [
            OcrWord(text=str(text).strip(), bbox=_bbox_from_polygon(bbox), confidence=float(conf))
            for bbox, text, conf in results
            if str(text).strip()
        ]

    def close(self) -> None:
        self._reader = None


class PaddleOCRRecognizer:
    """PaddleOCR による単語認識器"""

    thread_safe = False

    def __init__(self, lang: str = "en"):
        if not PADDLEOCR_AVAILABLE:
            raise RuntimeError("PaddleOCRが利用できません。pip install paddleocr でインストールしてください。")
        # 新しいバージョンではuse_gpuの代わりにdeviceを使用
        try:
            self._ocr = PaddleOCR(use_angle_cls=False, lang=lang, device="cpu")
        except (ValueError, TypeError):
            self._ocr = PaddleOCR(use_angle_cls=False, lang=lang)

    def recognize(self, image: np.ndarray) -> list[OcrWord]:
        if self._ocr is None:
            raise RuntimeError("PaddleOCRインスタンスは解放済みです")
        result = self._ocr.ocr(_to_bgr(image), cls=False)
        if not result or not result[0]:
            return []

        words = []
        for line in result[0]:
            if not line:
                continue
            polygon, (text, conf) = line[0], line[1]
            if str(text).strip():
                words.append(OcrWord(text=str(text).strip(), bbox=_bbox_from_polygon(polygon), confidence=float(conf)))
        return words

    def close(self) -> None:
        self._ocr = None


class SerializedRecognizer:
    """スレッドセーフでない認識器を排他制御で包むラッパー"""

    thread_safe = True

    def __init__(self, recognizer: Any):
        self._recognizer = recognizer
        self._lock = threading.Lock()

    def recognize(self, image: np.ndarray) -> list[OcrWord]:
        with self._lock:
            return self._recognizer.recognize(image)

    def close(self) -> None:
        with self._lock:
            close = getattr(self._recognizer, "close", None)
            if close is not None:
                close()


def create_recognizer(engine: str = "tesseract", **kwargs):
    """統一認識器ファクトリ

    Args:
        engine: OCRエンジン名 ("tesseract", "easyocr", "paddleocr")
        **kwargs: エンジン固有のパラメータ

    Returns:
        認識器インスタンス
    """
    if engine == "tesseract":
        return TesseractRecognizer(
            psm=kwargs.get("psm", 6),
            oem=kwargs.get("oem", 3),
            lang=kwargs.get("lang", "eng"),
            dpi=kwargs.get("dpi", 300),
            whitelist=kwargs.get("whitelist"),
        )
    if engine == "easyocr":
        return EasyOCRRecognizer(languages=kwargs.get("languages"), gpu=kwargs.get("gpu", False))
    if engine == "paddleocr":
        return PaddleOCRRecognizer(lang=kwargs.get("paddle_lang", "en"))

    logger.warning(f"未知のOCRエンジン: {engine}。Tesseractを使用します。")
    return TesseractRecognizer()
