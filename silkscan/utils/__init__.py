"""Utility modules for silkscan."""

from silkscan.utils.logging_utils import setup_logging
from silkscan.utils.performance_monitor import PerformanceMonitor

__all__ = [
    "PerformanceMonitor",
    "setup_logging",
]
