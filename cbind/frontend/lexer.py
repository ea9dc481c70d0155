"""
Lexer module for cbind.

This module converts C declaration text into a stream of classified tokens
for the parser. Categories are tried in a fixed priority order at each input
position and the first one whose pattern matches wins.
"""

import logging
import re
import threading
from typing import Iterator, List, Pattern, Tuple

from ..ir import Token, TokenType


logger = logging.getLogger(__name__)


class Lexer:
    """Lexer for tokenizing C declaration text.

    Tokenizing never fails: a character that no category matches is skipped
    and recorded in ``skipped``, and a block comment missing its closing
    ``*/`` runs to the end of the input.

    Example:
        >>> lexer = Lexer()
        >>> tokens = lexer.tokenize("int add(int a, int b);", include_whitespace=False)
        >>> [t.value for t in tokens][:3]
        ['int', 'add', '(']
    """

    # Category -> pattern variants, in priority order
    _PATTERNS: List[Tuple[TokenType, Tuple[Pattern, ...]]] = [
        (TokenType.IDENTIFIER, (
            re.compile(r"[A-Za-z_][A-Za-z0-9_]*"),
        )),
        (TokenType.NUMBER, (
            re.compile(r"0[xX][0-9a-fA-F]+[uUlL]*"),
            re.compile(r"(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?[fFlL]?|\d+[eE][+-]?\d+[fFlL]?"),
            re.compile(r"\d+[uUlL]*"),
        )),
        (TokenType.COMMENT, (
            re.compile(r"//[^\n]*"),
            re.compile(r"/\*.*?(?:\*/|\Z)", re.DOTALL),
        )),
        (TokenType.OPERATOR, (
            re.compile(r"\.\.\.|<<=|>>=|->|\+\+|--|<<|>>|<=|>=|==|!=|&&|\|\||[-+*/%&|^]="),
            re.compile(r"[-+*/%&|^!~<>=?:.#]"),
        )),
        (TokenType.DELIMITER, (
            re.compile(r"[(){}\[\];,]"),
        )),
        (TokenType.STRING, (
            re.compile(r'"(?:\\.|[^"\\\n])*"'),
            re.compile(r"'(?:\\.|[^'\\\n])*'"),
        )),
        (TokenType.WHITESPACE, (
            re.compile(r"\s+"),
        )),
    ]

    # Identifiers reclassified as KEYWORD
    _KEYWORDS = frozenset({
        'continue', 'break', 'return', 'if', 'else', 'switch', 'case',
        'default', 'for', 'while', 'do', 'unsigned', 'signed', 'void',
        'bool', 'char', 'short', 'int', 'long', 'float', 'double', 'struct',
        'enum', 'union', 'typedef', 'extern', 'static', 'register', 'auto',
        'const', 'volatile', 'sizeof', 'alignof',
    })

    def __init__(self):
        """Initialize the lexer."""
        self._local = threading.local()

    @property
    def skipped(self) -> List[Tuple[int, int, str]]:
        """Characters skipped by this thread's last call, as (lineno, col_offset, char)."""
        return getattr(self._local, "skipped", [])

    def tokenize(self, source: str, include_whitespace: bool = True) -> List[Token]:
        """Tokenize C declaration text.

        Args:
            source: Text to tokenize
            include_whitespace: Keep WHITESPACE tokens in the result

        Returns:
            List of Token objects covering the whole input
        """
        return list(self.tokenize_iter(source, include_whitespace))

    def tokenize_iter(self, source: str, include_whitespace: bool = True) -> Iterator[Token]:
        """Tokenize C declaration text lazily.

        Args:
            source: Text to tokenize
            include_whitespace: Keep WHITESPACE tokens in the result

        Yields:
            Token objects one at a time
        """
        skipped: List[Tuple[int, int, str]] = []
        self._local.skipped = skipped
        pos = 0
        lineno = 1
        col_offset = 0
        length = len(source)

        while pos < length:
            matched = self._match_at(source, pos)
            if matched is None:
                # Unmatched character: record it and move on
                char = source[pos]
                skipped.append((lineno, col_offset, char))
                logger.debug("Line %d, col %d: skipping unrecognized character %r",
                             lineno, col_offset, char)
                if char == "\n":
                    lineno += 1
                    col_offset = 0
                else:
                    col_offset += 1
                pos += 1
                continue

            tok_type, variant, lexeme = matched
            if tok_type == TokenType.IDENTIFIER and lexeme in self._KEYWORDS:
                tok_type = TokenType.KEYWORD

            token = Token(
                type=tok_type,
                value=lexeme,
                variant=variant,
                lineno=lineno,
                col_offset=col_offset,
            )

            newlines = lexeme.count("\n")
            if newlines:
                lineno += newlines
                col_offset = len(lexeme) - lexeme.rfind("\n") - 1
            else:
                col_offset += len(lexeme)
            pos += len(lexeme)

            if tok_type == TokenType.WHITESPACE and not include_whitespace:
                continue
            yield token

    def _match_at(self, source: str, pos: int):
        """Find the first category whose pattern matches at ``pos``.

        Returns:
            (TokenType, variant index, lexeme) or None
        """
        for tok_type, variants in self._PATTERNS:
            for variant, pattern in enumerate(variants):
                m = pattern.match(source, pos)
                if m and m.end() > pos:
                    return tok_type, variant, m.group(0)
        return None

    def is_keyword(self, name: str) -> bool:
        """Check if a name is a keyword.

        Args:
            name: Identifier to check

        Returns:
            True if name is a keyword
        """
        return name in self._KEYWORDS

    def get_keyword_tokens(self) -> List[str]:
        """Get list of keywords.

        Returns:
            List of keyword strings
        """
        return sorted(self._KEYWORDS)


def tokenize_source(source: str, include_whitespace: bool = True) -> List[Token]:
    """Convenience function to tokenize C declaration text.

    Args:
        source: Text to tokenize
        include_whitespace: Keep WHITESPACE tokens in the result

    Returns:
        List of Token objects
    """
    lexer = Lexer()
    return lexer.tokenize(source, include_whitespace)
