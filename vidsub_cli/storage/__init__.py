"""
Storage Layer.

This package handles all data persistence: the configuration file and the
catalog of downloaded videos.
"""

from .catalog import VideoCatalog
from .config_manager import ConfigManager

__all__ = ["ConfigManager", "VideoCatalog"]
