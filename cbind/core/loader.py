"""
Loader orchestration module for cbind.

This module provides the high-level Loader class that coordinates parsing
declaration text and binding it against a shared library.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
import os
from pathlib import Path
from typing import Optional, Union

from ..backend.ctypes_binding import BoundLibrary, bind_library
from ..frontend.parser import DeclParser
from ..ir import DeclRegistry
from ..utils.settings import DEFAULT_SETTINGS, Settings


logger = logging.getLogger(__name__)


class LoaderError(Exception):
    """Exception raised when a header or library cannot be loaded."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Loader:
    """Main entry point for cbind.

    This class runs the whole pipeline: declaration text to registry, and
    registry plus shared library to bound functions.

    Example:
        >>> loader = Loader()
        >>> registry = loader.parse("int abs(int x);")
        >>> libc = loader.load("int abs(int x);", "c")
        >>> libc.abs(-3)
        3
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the loader.

        Args:
            settings: Configuration, DEFAULT_SETTINGS when omitted
        """
        self._settings = settings or DEFAULT_SETTINGS
        self._parser = DeclParser()

    @property
    def settings(self) -> Settings:
        return self._settings

    def parse(self, source: str) -> DeclRegistry:
        """Parse declaration text into a registry.

        Raises:
            ParseError: If parsing fails
        """
        registry = self._parser.parse(source)
        logger.info("Parsed %d functions, %d function types, %d type aliases, %d structs",
                    len(registry.functions), len(registry.function_types),
                    len(registry.type_aliases), len(registry.structs))
        return registry

    def parse_file(self, path: Union[str, Path]) -> DeclRegistry:
        """Parse a header file into a registry.

        Raises:
            LoaderError: If the file does not exist
            ParseError: If parsing fails
        """
        path = Path(path)
        if not path.is_file():
            raise LoaderError(f"Header file not found: {path}")
        logger.info("Parsing %s", path)
        return self.parse(path.read_text(encoding="utf-8"))

    def load(self, source: str, library) -> BoundLibrary:
        """Parse declaration text and bind it against a library.

        Args:
            source: Declaration text
            library: Library path, bare name (``"c"``, ``"m"``) or opened CDLL

        Returns:
            BoundLibrary: The bound declarations

        Raises:
            ParseError: If parsing fails
            ResolveError: If a declared type cannot be resolved
            LoaderError: If the library cannot be opened
        """
        registry = self.parse(source)
        return bind_library(registry, self.open_library(library))

    def load_file(self, header: Union[str, Path], library) -> BoundLibrary:
        """Parse a header file and bind it against a library."""
        registry = self.parse_file(header)
        return bind_library(registry, self.open_library(library))

    def open_library(self, library):
        """Open a shared library.

        A path to an existing file is opened directly. A bare name is looked
        up in the configured search directories, then with
        ctypes.util.find_library.
        """
        if not isinstance(library, (str, os.PathLike)):
            return library

        location = self._find_library(os.fspath(library))
        if location is None:
            raise LoaderError(f"Library not found: {library}")
        try:
            handle = ctypes.CDLL(location)
        except OSError as e:
            raise LoaderError(f"Cannot open library {location}: {e}") from e
        logger.info("Opened library %s", location)
        return handle

    def _find_library(self, name: str) -> Optional[str]:
        if Path(name).is_file():
            return name
        for directory in self._settings.library_search:
            for candidate in (name, f"lib{name}.so", f"lib{name}.dylib", f"{name}.dll"):
                path = Path(directory) / candidate
                if path.is_file():
                    return str(path)
        return ctypes.util.find_library(name)
