"""Board coordinate transformation."""

from silkscan.transform.board_transform import (
    PLOTTER_UNITS_PER_PIXEL,
    BoardTransformer,
    board_to_pixel,
    pixel_to_board,
)

__all__ = [
    "PLOTTER_UNITS_PER_PIXEL",
    "BoardTransformer",
    "board_to_pixel",
    "pixel_to_board",
]
