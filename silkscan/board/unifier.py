"""Coordinate space unification for independently plotted layers.

Fabrication layers are plotted one file at a time and each reports its
own local bounding box. Rendering every layer against its own box would
shift copper, silkscreen and paste relative to each other, so all layers
are rebound to the smallest rectangle that encloses every usable box.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING

from silkscan.core.errors import RecoverableLayerError
from silkscan.gerber import plot_layer
from silkscan.layers import classify_layer
from silkscan.models import BoardCoordinateSpace, BoundingBox, Layer, UnifiedBoard

if TYPE_CHECKING:
    from silkscan.core.interfaces import VectorGraphic
    from silkscan.models import ParsedLayerGeometry, RawLayerInput

logger = logging.getLogger(__name__)


def compute_board_space(boxes: Iterable[BoundingBox]) -> BoardCoordinateSpace | None:
    """全ての有効なローカル矩形を包含する最小の矩形を求める

    幅または高さが正でない矩形は除外する。

    Args:
        boxes: ローカル矩形（プロッタ単位）

    Returns:
        ボード座標空間。有効な矩形が1つもない場合は None
    """
    min_x = min_y = float("inf")
    max_x = max_y = float("-inf")
    count = 0

    for box in boxes:
        if box.is_degenerate:
            continue
        min_x = min(min_x, box.min_x)
        min_y = min(min_y, box.min_y)
        max_x = max(max_x, box.max_x)
        max_y = max(max_y, box.max_y)
        count += 1

    if count == 0:
        return None
    return BoardCoordinateSpace(min_x, min_y, max_x - min_x, max_y - min_y)


def unify_layers(raw_files: Sequence[tuple[str, BoundingBox, VectorGraphic]]) -> UnifiedBoard:
    """レイヤー群を1つのボード座標空間に統合する

    ローカル矩形が退化しているレイヤーはスキップし（ログ出力のみ）、
    残った全レイヤーの図形を共通のボード座標空間に束縛し直す。

    Args:
        raw_files: (ファイル名, ローカル矩形, ベクタ図形) のリスト

    Returns:
        統合結果。有効なレイヤーがない場合は空のボード
    """
    retained: list[tuple[str, BoundingBox, VectorGraphic]] = []
    for filename, box, graphic in raw_files:
        if box.is_degenerate:
            logger.warning(f"レイヤー '{filename}' の矩形が退化しているためスキップします: {box}")
            continue
        retained.append((filename, box, graphic))

    board_space = compute_board_space(box for _, box, _ in retained)
    if board_space is None:
        logger.warning("有効なレイヤーがありません。ボードは空です。")
        return UnifiedBoard.empty()

    layers = [
        Layer(filename=filename, layer_type=classify_layer(filename), graphic=graphic.rebind(board_space))
        for filename, _, graphic in retained
    ]

    logger.info(
        f"{len(layers)}レイヤーを統合しました: "
        f"{board_space.width_native:.3f} x {board_space.height_native:.3f} (ネイティブ単位), "
        f"view_box={board_space.view_box}"
    )
    return UnifiedBoard(layers=layers, board_space=board_space)


def load_board(
    raw_inputs: Iterable[RawLayerInput],
    plotter: Callable[[RawLayerInput], ParsedLayerGeometry] = plot_layer,
) -> UnifiedBoard:
    """ファイル群をプロットして統合する

    プロットに失敗したファイルはログに記録してスキップする。

    Args:
        raw_inputs: アップロードされたファイル群
        plotter: 1ファイルをプロットする関数

    Returns:
        統合結果
    """
    parsed: list[tuple[str, BoundingBox, VectorGraphic]] = []
    for raw in raw_inputs:
        try:
            geometry = plotter(raw)
        except RecoverableLayerError as e:
            logger.warning(f"レイヤーをスキップします: {e}")
            continue
        except Exception as e:
            logger.error(f"レイヤーをスキップします: {RecoverableLayerError(raw.filename, 'plot', cause=e)}")
            continue
        parsed.append((raw.filename, geometry.bounding_box, geometry.graphic))

    return unify_layers(parsed)
