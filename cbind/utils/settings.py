"""
Configuration settings for cbind.

This module contains default configuration values and settings used
by the loader and the command-line interface.
"""

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional


@dataclass
class Settings:
    """cbind settings and configuration.

    Attributes:
        include_whitespace: Whether token dumps keep whitespace tokens
        log_level: Logging level name used by the CLI
        json_indent: Indentation of JSON output
        library_search: Extra directories searched for a bare library name
    """
    include_whitespace: bool = True
    log_level: str = "WARNING"
    json_indent: int = 2
    library_search: List[str] = None

    def __post_init__(self):
        if self.library_search is None:
            self.library_search = []

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``CBIND_*`` environment variables.

        Recognized variables: CBIND_LOG_LEVEL, CBIND_JSON_INDENT and
        CBIND_LIBRARY_PATH (os.pathsep separated directories).
        """
        if environ is None:
            environ = os.environ
        settings = cls()
        if environ.get("CBIND_LOG_LEVEL"):
            settings.log_level = environ["CBIND_LOG_LEVEL"].upper()
        if environ.get("CBIND_JSON_INDENT"):
            settings.json_indent = int(environ["CBIND_JSON_INDENT"])
        if environ.get("CBIND_LIBRARY_PATH"):
            settings.library_search = [
                p for p in environ["CBIND_LIBRARY_PATH"].split(os.pathsep) if p
            ]
        return settings


# Global default settings instance
DEFAULT_SETTINGS = Settings()
