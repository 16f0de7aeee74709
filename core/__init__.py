"""
Core Package - configuration and logging shared by every entry point.
"""

from core.config import AppConfig
from core.logging_setup import setup_logging


__all__ = ["AppConfig", "setup_logging"]
