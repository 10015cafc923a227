"""silkscan - locate PCB component designators on silkscreen layers and build placement lists."""

__version__ = "0.1.0"

from silkscan.board import load_board, unify_layers
from silkscan.layers import classify_layer
from silkscan.localization import DesignatorLocalizer, LocalizationOptions, localize_designators
from silkscan.session import BoardSession
from silkscan.transform import board_to_pixel, pixel_to_board

__all__ = [
    "BoardSession",
    "DesignatorLocalizer",
    "LocalizationOptions",
    "__version__",
    "board_to_pixel",
    "classify_layer",
    "load_board",
    "localize_designators",
    "pixel_to_board",
    "unify_layers",
]
