"""
Frontend module for cbind.

This module provides the lexer, the parse state and the recursive descent
parser that turn C declaration text into a DeclRegistry.
"""

from ..ir import Token, TokenType
from .lexer import Lexer, tokenize_source
from .state import ParseState, ParseError
from .parser import DeclParser, parse_source

__all__ = [
    # Lexer components
    "Lexer",
    "Token",
    "TokenType",
    "tokenize_source",
    # Parser components
    "ParseState",
    "ParseError",
    "DeclParser",
    "parse_source",
]
