"""
Parse state for cbind.

ParseState wraps the token sequence with a cursor and the declaration
registry being filled. The grammar reads tokens only through it, so every
assertion failure is reported the same way.
"""

from typing import Iterator, Optional, Sequence

from ..ir import DeclRegistry, Token, TokenType


class ParseError(Exception):
    """Exception raised for parsing errors."""

    def __init__(self, message: str, lineno: int = 0, col_offset: int = 0):
        self.message = message
        self.lineno = lineno
        self.col_offset = col_offset
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.lineno > 0:
            return f"Line {self.lineno}, col {self.col_offset}: {self.message}"
        return self.message


def _describe(token_type: TokenType, value: Optional[str]) -> str:
    if value is not None:
        return f"'{value}'"
    return token_type.name


class ParseState:
    """Token cursor plus the registries under construction.

    Attributes:
        tokens: The token sequence (never modified)
        pos: Index of the current token
        registry: Declarations registered so far
    """

    def __init__(self, tokens: Sequence[Token], registry: Optional[DeclRegistry] = None):
        self.tokens = tuple(tokens)
        self.pos = 0
        self.registry = registry if registry is not None else DeclRegistry()

    def __iter__(self) -> Iterator[Token]:
        """Walk the tokens from the start.

        Each step yields the token after the one yielded last, unless the
        consumer moved the cursor meanwhile, in which case iteration resumes
        at the cursor.
        """
        self.pos = -1
        last = -1
        while True:
            if self.pos == last:
                self.pos += 1
            if self.pos >= len(self.tokens):
                return
            last = self.pos
            yield self.tokens[self.pos]

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self, offset: int = 0) -> Optional[Token]:
        """Look at a token ahead of the cursor without asserting anything."""
        pos = self.pos + offset
        if 0 <= pos < len(self.tokens):
            return self.tokens[pos]
        return None

    def current(self, expect: Optional[TokenType] = None, value: Optional[str] = None) -> Token:
        """Return the current token, optionally asserting its category and value.

        Raises:
            ParseError: At end of input, or if the token does not match
        """
        token = self.peek()
        if token is None:
            if expect is not None:
                raise self.error(f"Expected {_describe(expect, value)}, got end of input")
            raise self.error("Unexpected end of input")

        if expect is not None and token.type != expect:
            raise self.error(
                f"Expected {_describe(expect, value)}, got {token.type.name} {token.value!r}", token)
        if value is not None and token.value != value:
            raise self.error(f"Expected '{value}', got {token.value!r}", token)
        return token

    def advance(self, expect: Optional[TokenType] = None, value: Optional[str] = None) -> Token:
        """Return the current token and move past it, with the same checks as current()."""
        token = self.current(expect, value)
        self.pos += 1
        return token

    def match(self, token_type: TokenType, value: Optional[str] = None) -> bool:
        """Check if the current token matches type and optionally value."""
        token = self.peek()
        if token is None or token.type != token_type:
            return False
        return value is None or token.value == value

    def skip(self, token_type: TokenType) -> int:
        """Move past a run of tokens of one category.

        Returns:
            Number of tokens skipped
        """
        count = 0
        while self.match(token_type):
            self.pos += 1
            count += 1
        return count

    def error(self, message: str, token: Optional[Token] = None) -> ParseError:
        """Build a ParseError positioned on ``token`` or the current token."""
        if token is None:
            token = self.peek()
        if token is None and self.tokens:
            token = self.tokens[-1]
        if token is None:
            return ParseError(message)
        return ParseError(message, token.lineno, token.col_offset)
