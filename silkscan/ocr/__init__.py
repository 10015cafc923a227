"""OCR engine adapters."""

from silkscan.ocr.ocr_engines import (
    EASYOCR_AVAILABLE,
    PADDLEOCR_AVAILABLE,
    EasyOCRRecognizer,
    OcrWord,
    PaddleOCRRecognizer,
    SerializedRecognizer,
    TesseractRecognizer,
    create_recognizer,
)

__all__ = [
    "EASYOCR_AVAILABLE",
    "PADDLEOCR_AVAILABLE",
    "EasyOCRRecognizer",
    "OcrWord",
    "PaddleOCRRecognizer",
    "SerializedRecognizer",
    "TesseractRecognizer",
    "create_recognizer",
]
