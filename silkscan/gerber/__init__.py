"""Fabrication file plotting."""

from silkscan.gerber.plotter import ExcellonPlotter, GerberPlotter, plot_layer

__all__ = ["ExcellonPlotter", "GerberPlotter", "plot_layer"]
