"""Configuration module for the roster export."""
from .settings import ExportConfig, load_settings

__all__ = ["ExportConfig", "load_settings"]
