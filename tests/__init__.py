"""
Test suite for cbind.

This package contains tests for the cbind declaration parser including:
- Unit tests for the lexer, parse state and parser
- Unit tests for the declaration data model
- Tests for the ctypes backend, the loader and the CLI
"""

__version__ = "0.1.0"
