"""Silkscreen designator localization."""

from silkscan.localization.designator_filter import DesignatorFilter, normalize_designator
from silkscan.localization.engine import (
    DesignatorLocalizer,
    LocalizationOptions,
    RecognitionPass,
    localize_designators,
)
from silkscan.localization.raster import (
    RasterGeometry,
    binarize,
    raster_to_board,
    rotate_clockwise,
    unrotate_point,
)

__all__ = [
    "DesignatorFilter",
    "DesignatorLocalizer",
    "LocalizationOptions",
    "RasterGeometry",
    "RecognitionPass",
    "binarize",
    "localize_designators",
    "normalize_designator",
    "raster_to_board",
    "rotate_clockwise",
    "unrotate_point",
]
