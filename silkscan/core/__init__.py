"""Core contracts: error taxonomy and port interfaces."""

from silkscan.core.errors import (
    ConfigurationError,
    RecoverableLayerError,
    SessionBusyError,
    SilkscanError,
)

__all__ = [
    "ConfigurationError",
    "RecoverableLayerError",
    "SessionBusyError",
    "SilkscanError",
]
