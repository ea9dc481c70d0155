"""
Declaration data model for cbind.

This module defines the data structures shared by the frontend and the
binding backend: classified tokens, type packs, and the declaration registry.
"""

from .nodes import (
    # Tokens
    TokenType,
    Token,
    # Types
    TypePack,
    # Declarations
    FieldDecl,
    StructDef,
    ArgumentDecl,
    FunctionSignature,
    # Registry
    DeclRegistry,
)

__all__ = [
    # Tokens
    "TokenType",
    "Token",
    # Types
    "TypePack",
    # Declarations
    "FieldDecl",
    "StructDef",
    "ArgumentDecl",
    "FunctionSignature",
    # Registry
    "DeclRegistry",
]
