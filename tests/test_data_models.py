"""Unit tests for data models."""

from __future__ import annotations

import dataclasses

import pytest

from silkscan.core.errors import ConfigurationError, RecoverableLayerError
from silkscan.models import (
    BoardCoordinateSpace,
    BoundingBox,
    DesignatorMatch,
    LayerType,
    LocalizationResult,
    LocalizationStatus,
    PlacementRecord,
    RawLayerInput,
    Side,
    UnifiedBoard,
)


def test_board_space_from_native():
    """ネイティブ単位から作成すると1000倍のプロッタ単位で保持する。"""

    space = BoardCoordinateSpace.from_native(-1.0, 2.0, 3.0, 4.0)

    assert space.view_box == (-1000.0, 2000.0, 3000.0, 4000.0)
    assert space.width_native == 3.0
    assert space.height_native == 4.0
    assert space.y_translate == 8000.0


def test_board_space_is_immutable():
    """ボード座標空間は作成後に変更できない。"""

    space = BoardCoordinateSpace(0.0, 0.0, 10.0, 10.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        space.width = 20.0


@pytest.mark.parametrize("dims", [(0.0, 10.0), (10.0, 0.0), (-1.0, 10.0)])
def test_board_space_rejects_non_positive_dimensions(dims):
    """幅・高さが正でない場合は ConfigurationError。"""

    with pytest.raises(ConfigurationError):
        BoardCoordinateSpace(0.0, 0.0, *dims)


def test_board_space_coerce_round_trip():
    """coerce は同じインスタンスをそのまま返す。"""

    space = BoardCoordinateSpace(1.0, 2.0, 3.0, 4.0)
    assert BoardCoordinateSpace.coerce(space) is space
    assert BoardCoordinateSpace.coerce([1.0, 2.0, 3.0, 4.0]) == space
    assert BoardCoordinateSpace.coerce({"min_x": 1.0, "min_y": 2.0, "width": 3.0, "height": 4.0}) == space


def test_bounding_box_helpers():
    """矩形の右端・上端・退化判定・包含判定。"""

    box = BoundingBox(1.0, 2.0, 3.0, 4.0)
    assert (box.max_x, box.max_y) == (4.0, 6.0)
    assert not box.is_degenerate
    assert BoundingBox(0.0, 0.0, 0.0, 1.0).is_degenerate
    assert box.contains(BoundingBox(1.0, 2.0, 1.0, 1.0))
    assert not box.contains(BoundingBox(0.0, 2.0, 1.0, 1.0))
    assert BoundingBox.from_extents(1.0, 2.0, 4.0, 6.0) == box


def test_raw_layer_input_extension():
    """拡張子は小文字で自動設定される。"""

    assert RawLayerInput("dir/Board.GTO", "").extension == "gto"
    assert RawLayerInput("Makefile", "").extension == ""
    assert RawLayerInput("a.gbr", "", extension="gto").extension == "gto"


def test_unified_board_empty():
    """空のボード。"""

    board = UnifiedBoard.empty()
    assert board.is_empty
    assert board.layers == []


def test_placement_record_rotation():
    """回転角の検証と90度回転。"""

    record = PlacementRecord("U1", 1.0, 2.0, rotation=270, side=Side.BOTTOM)
    rotated = record.rotated()

    assert rotated.rotation == 0
    assert rotated.side is Side.BOTTOM
    assert record.rotation == 270
    with pytest.raises(ValueError):
        PlacementRecord("U1", 0.0, 0.0, rotation=45)


def test_localization_result_defaults():
    """結果の既定値は空。"""

    result = LocalizationResult(status=LocalizationStatus.EMPTY)
    assert result.is_empty
    assert result.failed_layers == []

    match = DesignatorMatch("U1", 1.0, 2.0, LayerType.TOP_SILKSCREEN)
    assert not LocalizationResult(LocalizationStatus.DONE, {"U1": match}).is_empty


def test_layer_type_strings():
    """レイヤー種別は表示名の文字列として扱える。"""

    assert str(LayerType.TOP_SILKSCREEN) == "Top Silkscreen"
    assert LayerType("Bottom Silkscreen") is LayerType.BOTTOM_SILKSCREEN
    assert str(Side.TOP) == "Top"


def test_recoverable_layer_error_message():
    """エラーメッセージにファイル名と処理段階が含まれる。"""

    cause = RuntimeError("boom")
    error = RecoverableLayerError("board.gto", "raster", cause=cause)

    assert str(error) == "board.gto [raster]: boom"
    assert error.cause is cause
    assert str(RecoverableLayerError("a.gbr", "plot", "no geometry")) == "a.gbr [plot]: no geometry"
