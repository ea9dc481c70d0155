"""
cbind - C declaration parser for FFI bindings

Parses a restricted subset of C declarations (structs, typedefs, function
prototypes and definitions) into a name-keyed registry, and binds that
registry to a shared library through ctypes.

Example:
    >>> from cbind import parse_source
    >>> registry = parse_source("struct Foo { int x, y; };")
    >>> registry.structs["Foo"].field_names
    ['x', 'y']

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "cbind Team"

from .frontend import DeclParser, Lexer, ParseError, parse_source, tokenize_source
from .ir import DeclRegistry, TypePack
from .core import Loader, LoaderError

__all__ = [
    "__version__",
    "__author__",
    "DeclParser",
    "DeclRegistry",
    "Lexer",
    "Loader",
    "LoaderError",
    "ParseError",
    "TypePack",
    "parse_source",
    "tokenize_source",
]
