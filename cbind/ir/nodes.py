"""
Declaration node definitions for cbind.

This module contains the data classes produced by the frontend: classified
tokens, type packs, and the struct/function declarations collected into a
DeclRegistry.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional, Tuple


# ==================== Tokens ====================

class TokenType(Enum):
    """Lexical categories of the C declaration subset."""
    IDENTIFIER = auto()  # foo, _bar1
    KEYWORD = auto()     # int, struct, typedef, ...
    NUMBER = auto()      # 42, 0x1F, 1.5f
    COMMENT = auto()     # // ... or /* ... */
    OPERATOR = auto()    # *, ->, <<=, ...
    DELIMITER = auto()   # ( ) { } [ ] ; ,
    STRING = auto()      # "text" or 'c'
    WHITESPACE = auto()  # spaces, tabs, newlines

    # Synthesized by the parser while gathering type packs
    STRUCT_REF = auto()  # struct Foo, or a typedef name bound to a struct
    ALIAS_REF = auto()   # a typedef name bound to a scalar or function pointer type


@dataclass(frozen=True)
class Token:
    """Represents a token in the source text.

    Attributes:
        type: The token category
        value: The matched lexeme (the referenced name for *_REF tokens)
        variant: Index of the pattern that matched within its category
        lineno: Line number (1-indexed)
        col_offset: Column offset (0-indexed)
    """
    type: TokenType
    value: str
    variant: int = 0
    lineno: int = 0
    col_offset: int = 0

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, line={self.lineno}, col={self.col_offset})"


# ==================== Types ====================

@dataclass(frozen=True, eq=False)
class TypePack:
    """Ordered token run denoting a C type.

    A pack holds qualifier/primitive keywords, or a single struct/alias
    reference, followed by zero or more ``*`` operator tokens. Two packs
    compare equal when they spell the same type, regardless of where in
    the source they were written.

    Attributes:
        tokens: The tokens making up the type
    """
    tokens: Tuple[Token, ...]

    def __post_init__(self):
        if not isinstance(self.tokens, tuple):
            object.__setattr__(self, "tokens", tuple(self.tokens))

    @property
    def key(self) -> Tuple[Tuple[TokenType, str], ...]:
        """Position-independent identity of the pack."""
        return tuple((t.type, t.value) for t in self.tokens)

    def __eq__(self, other) -> bool:
        if not isinstance(other, TypePack):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self.tokens)

    def __getitem__(self, index):
        return self.tokens[index]

    @property
    def pointer_depth(self) -> int:
        """Number of trailing ``*`` markers."""
        depth = 0
        for token in reversed(self.tokens):
            if token.type != TokenType.OPERATOR or token.value != "*":
                break
            depth += 1
        return depth

    @property
    def base(self) -> "TypePack":
        """The pack with its trailing pointer markers removed."""
        depth = self.pointer_depth
        if depth == 0:
            return self
        return TypePack(self.tokens[:-depth])

    @property
    def reference(self) -> Optional[Token]:
        """The struct/alias reference token, if the pack has one."""
        for token in self.tokens:
            if token.type in (TokenType.STRUCT_REF, TokenType.ALIAS_REF):
                return token
        return None

    def pointer_to(self, depth: int, star: Optional[Token] = None) -> "TypePack":
        """Return this pack with ``depth`` extra pointer markers appended."""
        if depth <= 0:
            return self
        if star is None:
            star = Token(TokenType.OPERATOR, "*")
        return TypePack(self.tokens + (star,) * depth)

    @property
    def spelling(self) -> str:
        """C-like spelling, e.g. ``const char *`` or ``struct Point``."""
        words: List[str] = []
        for token in self.tokens:
            if token.type == TokenType.STRUCT_REF:
                words.append(f"struct {token.value}")
            elif token.type == TokenType.OPERATOR:
                if words and words[-1].endswith("*"):
                    words[-1] += token.value
                else:
                    words.append(token.value)
            else:
                words.append(token.value)
        return " ".join(words)

    def __str__(self) -> str:
        return self.spelling

    def __repr__(self) -> str:
        return f"TypePack({self.spelling!r})"


# ==================== Declarations ====================

@dataclass(frozen=True)
class FieldDecl:
    """One field of a struct.

    Attributes:
        name: Field name
        type: Field type
        index: Position of the field within the struct (0-indexed)
    """
    name: str
    type: TypePack
    index: int


@dataclass(eq=False)
class StructDef:
    """An ordered list of fields.

    Compared by identity: a struct registered under several names (for
    example ``typedef struct Foo Bar;``) is one shared instance.

    Attributes:
        fields: Fields in declaration order
        name: Tag the struct was declared with, or None when anonymous
        lineno: Line of the opening declaration
    """
    fields: List[FieldDecl] = field(default_factory=list)
    name: Optional[str] = None
    lineno: int = 0

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[FieldDecl]:
        return iter(self.fields)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get(self, name: str) -> Optional[FieldDecl]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class ArgumentDecl:
    """A function parameter.

    Attributes:
        type: Parameter type
        name: Parameter name, None when the declaration omits it
    """
    type: TypePack
    name: Optional[str] = None


@dataclass(frozen=True)
class FunctionSignature:
    """Argument list and return type of a function or function pointer.

    Attributes:
        args: Parameters in declaration order
        returns: Return type
        variadic: True when the parameter list ends in ``...``
    """
    args: Tuple[ArgumentDecl, ...]
    returns: TypePack
    variadic: bool = False

    def __post_init__(self):
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))

    @property
    def arity(self) -> int:
        return len(self.args)


# ==================== Registry ====================

@dataclass
class DeclRegistry:
    """The four name-keyed registries filled by the parser.

    Every registry is last-write-wins on a duplicate name.

    Attributes:
        functions: Function prototypes and definitions
        function_types: Function pointer typedefs
        type_aliases: Scalar (and pointer) typedefs
        structs: Struct definitions, including struct typedef aliases
    """
    functions: Dict[str, FunctionSignature] = field(default_factory=dict)
    function_types: Dict[str, FunctionSignature] = field(default_factory=dict)
    type_aliases: Dict[str, TypePack] = field(default_factory=dict)
    structs: Dict[str, StructDef] = field(default_factory=dict)

    def __len__(self) -> int:
        return (len(self.functions) + len(self.function_types)
                + len(self.type_aliases) + len(self.structs))

    def is_type_name(self, name: str) -> bool:
        """Check whether an identifier names a declared struct or alias."""
        return (name in self.structs or name in self.type_aliases
                or name in self.function_types)

    def struct_aliases(self, struct: StructDef) -> List[str]:
        """All names under which ``struct`` is registered."""
        return [name for name, s in self.structs.items() if s is struct]

    def to_dict(self) -> dict:
        """Render the registry as plain JSON-serialisable data."""
        def pack(p: TypePack) -> str:
            return p.spelling

        def signature(sig: FunctionSignature) -> dict:
            return {
                "returns": pack(sig.returns),
                "args": [{"name": a.name, "type": pack(a.type)} for a in sig.args],
                "variadic": sig.variadic,
            }

        return {
            "functions": {n: signature(s) for n, s in self.functions.items()},
            "function_types": {n: signature(s) for n, s in self.function_types.items()},
            "type_aliases": {n: pack(p) for n, p in self.type_aliases.items()},
            "structs": {
                n: {
                    "tag": s.name,
                    "fields": [{"name": f.name, "type": pack(f.type)} for f in s.fields],
                }
                for n, s in self.structs.items()
            },
        }
