"""Hybrid knowledge retrieval engine package."""

from .config import RetrievalConfig, Settings, load_settings
from .errors import RetrievalError

__all__ = ["RetrievalConfig", "RetrievalError", "Settings", "load_settings"]
