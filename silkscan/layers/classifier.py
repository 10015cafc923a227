"""Filename-based fabrication layer classification."""

from __future__ import annotations

from silkscan.models import LayerType

# (拡張子群, 種別)。上から順に評価し、最初に一致したものを採用する
EXTENSION_RULES: tuple[tuple[tuple[str, ...], LayerType], ...] = (
    (("gtl",), LayerType.TOP_COPPER),
    (("gbl",), LayerType.BOTTOM_COPPER),
    (("gto",), LayerType.TOP_SILKSCREEN),
    (("gbo",), LayerType.BOTTOM_SILKSCREEN),
    (("gts",), LayerType.TOP_SOLDER_MASK),
    (("gbs",), LayerType.BOTTOM_SOLDER_MASK),
    (("gtp",), LayerType.TOP_PASTE),
    (("gbp",), LayerType.BOTTOM_PASTE),
    (("drl", "xln", "nc"), LayerType.DRILL),
    (("gko",), LayerType.OUTLINE),
)

# (全て含むべきトークン群, 種別)
TOKEN_RULES: tuple[tuple[tuple[str, ...], LayerType], ...] = (
    (("top", "silk"), LayerType.TOP_SILKSCREEN),
    (("bot", "silk"), LayerType.BOTTOM_SILKSCREEN),
    (("top", "smask"), LayerType.TOP_SOLDER_MASK),
    (("bot", "smask"), LayerType.BOTTOM_SOLDER_MASK),
    (("top", "paste"), LayerType.TOP_PASTE),
    (("bottom", "paste"), LayerType.BOTTOM_PASTE),
    (("toplayer",), LayerType.TOP_COPPER),
    (("top",), LayerType.TOP_COPPER),
    (("bottomlayer",), LayerType.BOTTOM_COPPER),
    (("bottom",), LayerType.BOTTOM_COPPER),
    (("outline",), LayerType.OUTLINE),
    (("board_edge",), LayerType.OUTLINE),
    (("drill",), LayerType.DRILL),
)


def classify_layer(filename: str) -> LayerType:
    """ファイル名からレイヤー種別を判定する

    大文字小文字を区別せず、拡張子ルール、部分文字列ルールの順に評価する。
    どのルールにも一致しない場合は Other を返す。

    Args:
        filename: レイヤーのファイル名（パスを含んでもよい）

    Returns:
        レイヤー種別
    """
    # アーカイブ内のディレクトリ名は判定に使わない
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].lower()

    for extensions, layer_type in EXTENSION_RULES:
        if any(name.endswith("." + ext) for ext in extensions):
            return layer_type

    for tokens, layer_type in TOKEN_RULES:
        if all(token in name for token in tokens):
            return layer_type

    return LayerType.OTHER
