"""Vector graphics produced by the layer plotter."""

from silkscan.graphics.vector_graphic import Flash, PlotGraphic, Stroke

__all__ = ["Flash", "PlotGraphic", "Stroke"]
