"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
import pytest

from silkscan.graphics import Flash, PlotGraphic
from silkscan.models import BoardCoordinateSpace, Layer, LayerType

OUTLINE_GERBER = """G04 board outline*
%FSLAX24Y24*%
%MOIN*%
%ADD10C,0.0100*%
D10*
X0Y0D02*
X200000Y0D01*
X200000Y100000D01*
X0Y100000D01*
X0Y0D01*
M02*
"""

SILKSCREEN_GERBER = """G04 top silkscreen*
%FSLAX24Y24*%
%MOIN*%
%ADD10C,0.4000*%
D10*
X100000Y50000D03*
M02*
"""


def make_blob_graphic(points: list[tuple[float, float]], diameter: float = 0.4) -> PlotGraphic:
    """ネイティブ単位の位置に円形フラッシュを置いた図形を作る"""
    flashes = tuple(Flash(x * 1000.0, y * 1000.0, diameter * 1000.0, diameter * 1000.0) for x, y in points)
    return PlotGraphic(flashes=flashes)


def make_layer(
    points: list[tuple[float, float]],
    board_space: BoardCoordinateSpace,
    layer_type: LayerType = LayerType.TOP_SILKSCREEN,
    filename: str = "board.gto",
) -> Layer:
    """ボード座標空間に束縛したレイヤーを作る"""
    return Layer(filename=filename, layer_type=layer_type, graphic=make_blob_graphic(points).rebind(board_space))


@pytest.fixture
def board_space() -> BoardCoordinateSpace:
    """20 x 10 (ネイティブ単位) のボード座標空間"""

    return BoardCoordinateSpace.from_native(0.0, 0.0, 20.0, 10.0)


@pytest.fixture
def offset_board_space() -> BoardCoordinateSpace:
    """原点がずれたボード座標空間"""

    return BoardCoordinateSpace.from_native(-3.5, 2.25, 12.0, 7.5)


@pytest.fixture
def sample_raster() -> np.ndarray:
    """白地に黒い矩形が1つある二値画像 (100x200)"""

    image = np.full((100, 200), 255, dtype=np.uint8)
    image[20:40, 150:170] = 0
    return image


@pytest.fixture
def bom_csv(tmp_path: Path) -> Path:
    """テスト用のBOM CSV"""

    path = tmp_path / "board_BOM.csv"
    path.write_text(
        "Comment,Designator,Footprint,Part Number\n"
        "10k,R1,0603,RC0603\n"
        "MCU,U1,QFN32,STM32\n"
        "100n,C1,0402,CL05\n",
        encoding="utf-8",
    )
    return path
