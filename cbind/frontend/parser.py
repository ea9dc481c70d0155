"""
Parser module for cbind.

This module provides a recursive descent parser over the lexer's tokens.
It recognizes struct definitions, typedefs and function declarations and
collects them into a DeclRegistry. Anything else at the top level is skipped.
"""

import logging
from typing import List, Optional, Tuple

from ..ir import (
    ArgumentDecl, DeclRegistry, FieldDecl, FunctionSignature, StructDef,
    Token, TokenType, TypePack,
)
from .lexer import Lexer
from .state import ParseError, ParseState


logger = logging.getLogger(__name__)


# Keywords allowed inside a type pack
QUALIFIERS = frozenset({'const', 'volatile', 'extern', 'static', 'register', 'auto'})
SIGNS = frozenset({'signed', 'unsigned'})
PRIMITIVES = frozenset({'void', 'bool', 'char', 'short', 'int', 'long', 'float', 'double'})
TYPE_KEYWORDS = QUALIFIERS | SIGNS | PRIMITIVES

# Top-level constructs skipped as a whole, up to their closing ';'
SKIPPED_CONSTRUCTS = frozenset({'enum', 'union'})


class DeclParser:
    """Recursive descent parser for C declarations.

    Type names are recognized only once declared: an identifier counts as a
    type when an earlier struct or typedef in the same input registered it.
    Parsing is fail-fast; the first error aborts and no registry is returned.
    Each call works on its own ParseState, so one parser may serve
    concurrent calls.

    Example:
        >>> parser = DeclParser()
        >>> registry = parser.parse("struct Foo { int x, y; };")
        >>> registry.structs["Foo"].field_names
        ['x', 'y']
    """

    def __init__(self):
        """Initialize the parser."""
        self._lexer = Lexer()

    def parse(self, source: str) -> DeclRegistry:
        """Parse C declaration text into a registry.

        Args:
            source: Declaration text

        Returns:
            DeclRegistry: The declarations found, in source order

        Raises:
            ParseError: On the first malformed declaration
        """
        tokens = [
            t for t in self._lexer.tokenize(source, include_whitespace=False)
            if t.type != TokenType.COMMENT
        ]
        state = ParseState(tokens)
        self._parse_module(state)
        return state.registry

    # ==================== Top level ====================

    def _parse_module(self, state: ParseState) -> None:
        """Dispatch on each top-level token."""
        for token in state:
            if token.type == TokenType.KEYWORD:
                if token.value == 'struct':
                    self._parse_struct_statement(state)
                elif token.value == 'typedef':
                    self._parse_typedef(state)
                elif token.value in TYPE_KEYWORDS:
                    self._parse_declaration(state)
                elif token.value in SKIPPED_CONSTRUCTS:
                    self._skip_construct(state)
            elif token.type == TokenType.IDENTIFIER and state.registry.is_type_name(token.value):
                self._parse_declaration(state)

    def _parse_struct_statement(self, state: ParseState) -> None:
        """Parse a statement starting with ``struct``."""
        name = state.peek(1)
        follow = state.peek(2)
        if name is None or name.type != TokenType.IDENTIFIER:
            # struct { ... } at top level has no name to register under
            self._parse_declaration(state)
            return

        if follow is not None and follow.type == TokenType.DELIMITER:
            if follow.value == '{':
                self._parse_struct_def(state)
                return
            if follow.value == ';':
                # Opaque forward declaration, nothing to register
                state.advance()
                state.advance()
                state.advance()
                logger.debug("Skipping forward declaration of struct %s", name.value)
                return

        # struct Foo *make_foo(void);
        self._parse_declaration(state)

    def _parse_struct_def(self, state: ParseState) -> None:
        """Parse ``struct Name { fields };``."""
        struct_token = state.advance(TokenType.KEYWORD, 'struct')
        name_token = state.advance(TokenType.IDENTIFIER)

        struct = StructDef(name=name_token.value, lineno=struct_token.lineno)
        self._parse_field_list(state, struct)
        state.advance(TokenType.DELIMITER, ';')

        self._register_struct(state, name_token.value, struct)

    def _parse_declaration(self, state: ParseState) -> None:
        """Parse a function prototype or definition.

        ``<pack> name ( args ) ;`` or ``<pack> name ( args ) { ... }``.
        Both register the same signature; a body is skipped unread.
        """
        returns = self._gather_type_pack(state, state.registry)
        name_token = state.advance(TokenType.IDENTIFIER)

        if not state.match(TokenType.DELIMITER, '('):
            raise state.error(
                f"Expected '(' after '{name_token.value}': only function declarations "
                f"are supported at top level")
        state.advance()
        args, variadic = self._parse_arguments(state)
        signature = FunctionSignature(args=args, returns=returns, variadic=variadic)

        if state.match(TokenType.DELIMITER, ';'):
            state.advance()
            kind = "prototype"
        elif state.match(TokenType.DELIMITER, '{'):
            self._skip_body(state)
            kind = "definition"
        else:
            raise state.error(f"Expected ';' or a function body after '{name_token.value}(...)'")

        state.registry.functions[name_token.value] = signature
        logger.debug("Registered function %s (%s, %d args)", name_token.value, kind, len(args))

    # ==================== Typedefs ====================

    def _parse_typedef(self, state: ParseState) -> None:
        """Parse one of the supported typedef forms.

        Supported forms:
            typedef struct Existing Alias;
            typedef struct { fields } Alias;
            typedef struct Name { fields } Alias;
            typedef <pack> (*Name)(args);
            typedef <pack> Name;
        """
        typedef_token = state.advance(TokenType.KEYWORD, 'typedef')

        if state.match(TokenType.KEYWORD, 'struct'):
            if self._parse_struct_typedef(state, typedef_token):
                return

        pack = self._gather_type_pack(state, state.registry)

        if state.match(TokenType.DELIMITER, '('):
            state.advance()
            state.advance(TokenType.OPERATOR, '*')
            name_token = state.advance(TokenType.IDENTIFIER)
            state.advance(TokenType.DELIMITER, ')')
            state.advance(TokenType.DELIMITER, '(')
            args, variadic = self._parse_arguments(state)
            state.advance(TokenType.DELIMITER, ';')

            state.registry.function_types[name_token.value] = FunctionSignature(
                args=args, returns=pack, variadic=variadic)
            logger.debug("Registered function type %s", name_token.value)
            return

        if state.match(TokenType.IDENTIFIER):
            name_token = state.advance()
            state.advance(TokenType.DELIMITER, ';')
            state.registry.type_aliases[name_token.value] = pack
            logger.debug("Registered type alias %s = %s", name_token.value, pack.spelling)
            return

        raise state.error("Unrecognized typedef form", typedef_token)

    def _parse_struct_typedef(self, state: ParseState, typedef_token: Token) -> bool:
        """Parse the struct forms of typedef.

        Returns:
            False if the tokens after ``struct`` are a plain type pack
            (e.g. ``typedef struct Foo *FooPtr;``), which the caller parses.
        """
        first = state.peek(1)
        second = state.peek(2)
        third = state.peek(3)

        if first is not None and first.type == TokenType.DELIMITER and first.value == '{':
            # typedef struct { fields } Alias;
            state.advance()
            struct = StructDef(name=None, lineno=typedef_token.lineno)
            self._parse_field_list(state, struct)
            alias_token = state.advance(TokenType.IDENTIFIER)
            state.advance(TokenType.DELIMITER, ';')
            self._register_struct(state, alias_token.value, struct)
            return True

        if first is None or first.type != TokenType.IDENTIFIER:
            return False

        if second is not None and second.type == TokenType.DELIMITER and second.value == '{':
            # typedef struct Name { fields } Alias;
            state.advance()
            name_token = state.advance(TokenType.IDENTIFIER)
            struct = StructDef(name=name_token.value, lineno=typedef_token.lineno)
            self._parse_field_list(state, struct)
            alias_token = state.advance(TokenType.IDENTIFIER)
            state.advance(TokenType.DELIMITER, ';')
            self._register_struct(state, name_token.value, struct)
            self._register_struct(state, alias_token.value, struct)
            return True

        if (second is not None and second.type == TokenType.IDENTIFIER
                and third is not None and third.type == TokenType.DELIMITER and third.value == ';'):
            # typedef struct Existing Alias;
            struct = state.registry.structs.get(first.value)
            if struct is None:
                raise state.error(f"typedef of undeclared struct '{first.value}'", first)
            state.advance()
            state.advance()
            alias_token = state.advance()
            state.advance()
            self._register_struct(state, alias_token.value, struct)
            return True

        return False

    # ==================== Shared pieces ====================

    def _gather_type_pack(self, state: ParseState, symbols: DeclRegistry) -> TypePack:
        """Collect the tokens of a type starting at the cursor.

        Args:
            symbols: Declarations seen so far, used to recognize type names

        Returns:
            The validated TypePack

        Raises:
            ParseError: If the run is empty or is not a valid type
        """
        start = state.peek()
        gathered: List[Token] = []
        has_base = False

        while not state.at_end():
            token = state.current()
            if token.type == TokenType.OPERATOR:
                gathered.append(state.advance())
            elif token.type == TokenType.KEYWORD:
                if token.value == 'struct':
                    gathered.append(self._struct_reference(state, symbols))
                    has_base = True
                else:
                    gathered.append(state.advance())
                    has_base = has_base or token.value in SIGNS or token.value in PRIMITIVES
            elif (token.type == TokenType.IDENTIFIER and not has_base
                  and symbols.is_type_name(token.value)):
                state.advance()
                if token.value in symbols.type_aliases or token.value in symbols.function_types:
                    ref_type = TokenType.ALIAS_REF
                else:
                    ref_type = TokenType.STRUCT_REF
                gathered.append(Token(ref_type, token.value, 0, token.lineno, token.col_offset))
                has_base = True
            else:
                break

        return self._validate_type_pack(state, gathered, start)

    def _struct_reference(self, state: ParseState, symbols: DeclRegistry) -> Token:
        """Turn ``struct Name`` at the cursor into one STRUCT_REF token."""
        struct_token = state.advance(TokenType.KEYWORD, 'struct')
        if state.match(TokenType.DELIMITER, '{'):
            raise state.error(
                "Inline struct definitions are only supported directly in a typedef")
        name_token = state.advance(TokenType.IDENTIFIER)
        if name_token.value not in symbols.structs:
            raise state.error(f"Reference to undeclared struct '{name_token.value}'", name_token)
        return Token(TokenType.STRUCT_REF, name_token.value, 0,
                     struct_token.lineno, struct_token.col_offset)

    def _validate_type_pack(self, state: ParseState, gathered: List[Token],
                            start: Optional[Token]) -> TypePack:
        """Check a gathered run and build the TypePack.

        Qualifiers written after a ``*`` (``char * const p``) qualify the
        pointer itself and are dropped.
        """
        if not gathered:
            if start is None:
                raise state.error("Expected a type, got end of input")
            raise state.error(f"Expected a type, got {start.type.name} {start.value!r}", start)

        kept: List[Token] = []
        references = 0
        scalars = 0
        seen_star = False

        for token in gathered:
            if token.type == TokenType.OPERATOR:
                if token.value != '*':
                    raise state.error(f"Unexpected operator {token.value!r} in type", token)
                seen_star = True
                kept.append(token)
            elif token.type == TokenType.KEYWORD:
                if token.value in QUALIFIERS:
                    if not seen_star:
                        kept.append(token)
                elif token.value in SIGNS or token.value in PRIMITIVES:
                    if seen_star:
                        raise state.error(f"Unexpected {token.value!r} after '*' in type", token)
                    scalars += 1
                    kept.append(token)
                else:
                    raise state.error(f"Unexpected keyword {token.value!r} in type", token)
            elif token.type in (TokenType.STRUCT_REF, TokenType.ALIAS_REF):
                if seen_star:
                    raise state.error(f"Unexpected type name {token.value!r} after '*'", token)
                references += 1
                kept.append(token)
            else:
                raise state.error(f"Unexpected {token.type.name} {token.value!r} in type", token)

        first = gathered[0]
        if references > 1:
            raise state.error("Type names more than one struct or alias", first)
        if references and scalars:
            raise state.error("Type mixes a struct or alias name with primitive keywords", first)
        if not references and not scalars:
            raise state.error("Type has no base type", first)

        return TypePack(tuple(kept))

    def _parse_field_list(self, state: ParseState, struct: StructDef) -> None:
        """Parse ``{ <pack> name [, name]... ; ... }`` into ``struct``.

        Declarators after the first share the base type but not its pointer
        markers: in ``int *a, b;`` only ``a`` is a pointer.
        """
        state.advance(TokenType.DELIMITER, '{')
        seen = set()

        while not state.match(TokenType.DELIMITER, '}'):
            pack = self._gather_type_pack(state, state.registry)
            base = pack.base
            field_type = pack

            while True:
                name_token = state.advance(TokenType.IDENTIFIER)
                if name_token.value in seen:
                    raise state.error(
                        f"Duplicate field '{name_token.value}' in struct", name_token)
                seen.add(name_token.value)
                struct.fields.append(FieldDecl(
                    name=name_token.value, type=field_type, index=len(struct.fields)))

                if not state.match(TokenType.DELIMITER, ','):
                    break
                state.advance()
                stars = []
                while state.match(TokenType.OPERATOR, '*'):
                    stars.append(state.advance())
                field_type = TypePack(base.tokens + tuple(stars))

            state.advance(TokenType.DELIMITER, ';')

        state.advance(TokenType.DELIMITER, '}')

    def _parse_arguments(self, state: ParseState) -> Tuple[List[ArgumentDecl], bool]:
        """Parse an argument list after its opening ``(``, through ``)``.

        Returns:
            (arguments, variadic)
        """
        args: List[ArgumentDecl] = []
        variadic = False

        if state.match(TokenType.DELIMITER, ')'):
            state.advance()
            return args, variadic

        while True:
            if state.match(TokenType.OPERATOR, '...'):
                state.advance()
                variadic = True
                state.advance(TokenType.DELIMITER, ')')
                break

            pack = self._gather_type_pack(state, state.registry)
            name = None
            if state.match(TokenType.IDENTIFIER):
                name = state.advance().value
            args.append(ArgumentDecl(type=pack, name=name))

            if state.match(TokenType.DELIMITER, ','):
                state.advance()
                continue
            state.advance(TokenType.DELIMITER, ')')
            break

        # f(void) takes no arguments
        if (len(args) == 1 and args[0].name is None and not variadic
                and args[0].type.key == ((TokenType.KEYWORD, 'void'),)):
            args = []
        return args, variadic

    def _skip_body(self, state: ParseState) -> None:
        """Skip a brace-delimited function body without reading it."""
        open_token = state.advance(TokenType.DELIMITER, '{')
        depth = 1
        while depth:
            if state.at_end():
                raise state.error("Unterminated function body", open_token)
            token = state.advance()
            if token.type == TokenType.DELIMITER:
                if token.value == '{':
                    depth += 1
                elif token.value == '}':
                    depth -= 1

    def _skip_construct(self, state: ParseState) -> None:
        """Skip an enum or union declaration through its terminating ``;``."""
        keyword = state.advance()
        depth = 0
        while not state.at_end():
            token = state.advance()
            if token.type != TokenType.DELIMITER:
                continue
            if token.value == '{':
                depth += 1
            elif token.value == '}':
                depth -= 1
            elif token.value == ';' and depth <= 0:
                break
        logger.debug("Skipped %s declaration at line %d", keyword.value, keyword.lineno)

    def _register_struct(self, state: ParseState, name: str, struct: StructDef) -> None:
        state.registry.structs[name] = struct
        logger.debug("Registered struct %s (%d fields)", name, len(struct))


def parse_source(source: str) -> DeclRegistry:
    """Convenience function to parse C declaration text.

    Args:
        source: Declaration text

    Returns:
        DeclRegistry: The parsed declarations
    """
    parser = DeclParser()
    return parser.parse(source)


__all__ = [
    "DeclParser",
    "ParseError",
    "parse_source",
    "QUALIFIERS",
    "SIGNS",
    "PRIMITIVES",
    "TYPE_KEYWORDS",
]
