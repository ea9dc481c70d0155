"""
Backend module for cbind.

This module turns a DeclRegistry into ctypes types and bound functions.
"""

from .ctypes_binding import (
    BoundLibrary,
    Primitive,
    ResolveError,
    ScalarKind,
    TypeResolver,
    bind_library,
    classify,
    scalar_ctype,
)

__all__ = [
    "BoundLibrary",
    "Primitive",
    "ResolveError",
    "ScalarKind",
    "TypeResolver",
    "bind_library",
    "classify",
    "scalar_ctype",
]
