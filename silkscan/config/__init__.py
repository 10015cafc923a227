"""Configuration loading and validation."""

from silkscan.config.config_manager import ConfigManager
from silkscan.config.loader import dump_config_file, load_config_file

__all__ = ["ConfigManager", "dump_config_file", "load_config_file"]
