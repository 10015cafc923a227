"""Designator token normalization and BOM filtering."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")

DEFAULT_MIN_TOKEN_LENGTH = 2


def normalize_designator(text: str) -> str:
    """大文字化して英数字以外を除去する"""
    return _NON_ALNUM.sub("", str(text).strip().upper())


class DesignatorFilter:
    """OCRトークンを部品記号として受理するか判定する

    有効な部品記号の集合が空の場合は、長さ条件を満たす全トークンを受理する。

    Attributes:
        valid_designators: 正規化済みの有効部品記号集合
        min_length: 受理する最小文字数
    """

    def __init__(self, valid_designators: Iterable[str] = (), min_length: int = DEFAULT_MIN_TOKEN_LENGTH):
        normalized = (normalize_designator(d) for d in valid_designators)
        self.valid_designators = frozenset(d for d in normalized if d)
        self.min_length = min_length

    @property
    def permissive(self) -> bool:
        return not self.valid_designators

    def accept(self, raw_text: str) -> str | None:
        """受理した場合は正規化済みトークンを、却下した場合は None を返す"""
        token = normalize_designator(raw_text)
        if len(token) < self.min_length:
            return None
        if not self.permissive and token not in self.valid_designators:
            logger.debug(f"BOMに存在しないため却下: '{token}' (raw: '{raw_text}')")
            return None
        return token
