"""
Core module for cbind.

This module contains the Loader that ties the frontend parser and the
ctypes backend together.
"""

from ..frontend.parser import DeclParser, ParseError
from .loader import Loader, LoaderError

__all__ = [
    "DeclParser",
    "ParseError",
    "Loader",
    "LoaderError",
]
