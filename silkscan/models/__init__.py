"""Data models for the silkscan board pipeline."""

from silkscan.models.data_models import (
    PLOTTER_UNITS_PER_NATIVE,
    BoardCoordinateSpace,
    BomItem,
    BoundingBox,
    DesignatorMatch,
    Layer,
    LayerType,
    LocalizationProgress,
    LocalizationResult,
    LocalizationStatus,
    ParsedLayerGeometry,
    PlacementRecord,
    RawLayerInput,
    Side,
    UnifiedBoard,
)

__all__ = [
    "PLOTTER_UNITS_PER_NATIVE",
    "BoardCoordinateSpace",
    "BomItem",
    "BoundingBox",
    "DesignatorMatch",
    "Layer",
    "LayerType",
    "LocalizationProgress",
    "LocalizationResult",
    "LocalizationStatus",
    "ParsedLayerGeometry",
    "PlacementRecord",
    "RawLayerInput",
    "Side",
    "UnifiedBoard",
]
