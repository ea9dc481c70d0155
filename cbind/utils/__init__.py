"""
Utility modules for cbind.

This package contains configuration helpers used throughout cbind.
"""

from .settings import Settings, DEFAULT_SETTINGS

__all__ = [
    "Settings",
    "DEFAULT_SETTINGS",
]
