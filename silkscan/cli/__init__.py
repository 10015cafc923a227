"""Command-line interface helpers."""

from silkscan.cli.arguments import parse_arguments
from silkscan.cli.progress import TqdmProgress

__all__ = ["TqdmProgress", "parse_arguments"]
