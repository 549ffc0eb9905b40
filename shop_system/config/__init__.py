"""Configuration package for the shop system."""
from .settings import get_settings, Settings

__all__ = ["Settings", "get_settings"]
