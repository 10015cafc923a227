"""Layer classification."""

from silkscan.layers.classifier import classify_layer

__all__ = ["classify_layer"]
