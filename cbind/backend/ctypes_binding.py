"""
ctypes binding backend for cbind.

This module maps the parser's TypePacks onto ctypes types, lays out structs
as ctypes.Structure subclasses in declared field order, and binds function
declarations to the symbols exported by a shared library.
"""

import ctypes
import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..frontend.parser import PRIMITIVES, QUALIFIERS, SIGNS
from ..frontend.state import ParseError
from ..ir import DeclRegistry, FunctionSignature, StructDef, Token, TokenType, TypePack


logger = logging.getLogger(__name__)


class ResolveError(ParseError):
    """Exception raised when a TypePack cannot be mapped to a ctypes type."""
    pass


class Primitive(Enum):
    """Base C scalar types."""
    VOID = auto()
    BOOL = auto()
    CHAR = auto()
    SHORT = auto()
    INT = auto()
    LONG = auto()
    LONG_LONG = auto()
    FLOAT = auto()
    DOUBLE = auto()
    LONG_DOUBLE = auto()


@dataclass(frozen=True)
class ScalarKind:
    """A primitive plus its signedness.

    Attributes:
        primitive: The base type
        signed: True for ``signed``, False for ``unsigned``, None when the
            declaration did not say (plain ``char`` differs from both)
    """
    primitive: Primitive
    signed: Optional[bool] = None


# Every accepted spelling of the type specifiers, sign keywords excluded
_SPECIFIERS: Dict[Tuple[str, ...], Primitive] = {
    (): Primitive.INT,  # bare signed / unsigned
    ('void',): Primitive.VOID,
    ('bool',): Primitive.BOOL,
    ('char',): Primitive.CHAR,
    ('short',): Primitive.SHORT,
    ('int', 'short'): Primitive.SHORT,
    ('int',): Primitive.INT,
    ('long',): Primitive.LONG,
    ('int', 'long'): Primitive.LONG,
    ('long', 'long'): Primitive.LONG_LONG,
    ('int', 'long', 'long'): Primitive.LONG_LONG,
    ('float',): Primitive.FLOAT,
    ('double',): Primitive.DOUBLE,
    ('double', 'long'): Primitive.LONG_DOUBLE,
}

# Primitives that reject signed/unsigned
_UNSIGNABLE = frozenset({
    Primitive.VOID, Primitive.BOOL, Primitive.FLOAT, Primitive.DOUBLE, Primitive.LONG_DOUBLE,
})


def classify(keywords: Sequence[Token]) -> ScalarKind:
    """Classify a run of keyword tokens as a scalar type.

    Qualifiers are ignored.

    Args:
        keywords: Keyword tokens of a TypePack base

    Returns:
        ScalarKind: The primitive and signedness

    Raises:
        ResolveError: For an invalid combination such as ``unsigned float``
    """
    signed: Optional[bool] = None
    specifiers: Counter = Counter()
    first = keywords[0] if keywords else None

    for token in keywords:
        if token.type != TokenType.KEYWORD:
            raise _error(f"Unexpected {token.type.name} {token.value!r} in scalar type", token)
        if token.value in QUALIFIERS:
            continue
        if token.value in SIGNS:
            if signed is not None:
                raise _error("Duplicate signed/unsigned in type", token)
            signed = token.value == 'signed'
        elif token.value in PRIMITIVES:
            specifiers[token.value] += 1
        else:
            raise _error(f"Unexpected keyword {token.value!r} in type", token)

    spelled = tuple(sorted(specifiers.elements()))
    if not spelled and signed is None:
        raise _error("Type has no base type", first)

    primitive = _SPECIFIERS.get(spelled)
    if primitive is None:
        raise _error(f"Invalid type specifier combination: {' '.join(spelled)}", first)
    if signed is not None and primitive in _UNSIGNABLE:
        raise _error(f"'{'signed' if signed else 'unsigned'}' cannot apply to "
                     f"{primitive.name.lower().replace('_', ' ')}", first)

    # Integers other than plain char default to signed
    if signed is None and primitive not in _UNSIGNABLE and primitive is not Primitive.CHAR:
        signed = True
    return ScalarKind(primitive, signed)


def scalar_ctype(kind: ScalarKind):
    """Map a ScalarKind to its ctypes type (None for void)."""
    primitive = kind.primitive
    unsigned = kind.signed is False

    if primitive is Primitive.VOID:
        return None
    if primitive is Primitive.BOOL:
        return ctypes.c_bool
    if primitive is Primitive.CHAR:
        if kind.signed is None:
            return ctypes.c_char
        return ctypes.c_ubyte if unsigned else ctypes.c_byte
    if primitive is Primitive.SHORT:
        return ctypes.c_ushort if unsigned else ctypes.c_short
    if primitive is Primitive.INT:
        return ctypes.c_uint if unsigned else ctypes.c_int
    if primitive is Primitive.LONG:
        return ctypes.c_ulong if unsigned else ctypes.c_long
    if primitive is Primitive.LONG_LONG:
        return ctypes.c_ulonglong if unsigned else ctypes.c_longlong
    if primitive is Primitive.FLOAT:
        return ctypes.c_float
    if primitive is Primitive.DOUBLE:
        return ctypes.c_double
    if primitive is Primitive.LONG_DOUBLE:
        return ctypes.c_longdouble
    raise ValueError(f"Unhandled primitive: {primitive}")


def _error(message: str, token: Optional[Token]) -> ResolveError:
    if token is None:
        return ResolveError(message)
    return ResolveError(message, token.lineno, token.col_offset)


class TypeResolver:
    """Resolve TypePacks against one registry.

    Struct classes are built once per StructDef, so every name a struct is
    registered under resolves to the same ctypes class.

    Example:
        >>> registry = parse_source("typedef struct { int x; } P; P *mk(void);")
        >>> resolver = TypeResolver(registry)
        >>> restype = resolver.resolve(registry.functions["mk"].returns)
    """

    def __init__(self, registry: DeclRegistry):
        self._registry = registry
        self._structs: Dict[StructDef, type] = {}
        self._resolving: List[str] = []

    def resolve(self, pack: TypePack):
        """Resolve a TypePack to a ctypes type.

        Trailing ``*`` markers are stripped, the base is resolved, and the
        result is wrapped in one pointer level per marker. ``void`` resolves
        to None, ``void *`` to c_void_p and ``char *`` to c_char_p.

        Raises:
            ResolveError: For an unresolved struct/alias reference or an
                invalid keyword combination
        """
        depth = pack.pointer_depth
        resolved = self._resolve_base(pack.base)
        for _ in range(depth):
            if resolved is None:
                resolved = ctypes.c_void_p
            elif resolved is ctypes.c_char:
                resolved = ctypes.c_char_p
            else:
                resolved = ctypes.POINTER(resolved)
        return resolved

    def resolve_value(self, pack: TypePack):
        """Resolve the type of a field or argument, which cannot be void.

        Raises:
            ResolveError: If the pack resolves to plain ``void``
        """
        resolved = self.resolve(pack)
        if resolved is None:
            raise _error("'void' is only valid as a return type or behind '*'", pack[0])
        return resolved

    def _resolve_base(self, base: TypePack):
        reference = base.reference
        if reference is None:
            return scalar_ctype(classify(base.tokens))

        if reference.type == TokenType.STRUCT_REF:
            struct = self._registry.structs.get(reference.value)
            if struct is None:
                raise _error(f"Unresolved struct reference '{reference.value}'", reference)
            return self.struct_type(reference.value, struct)

        name = reference.value
        if name in self._registry.type_aliases:
            if name in self._resolving:
                raise _error(f"Circular type alias '{name}'", reference)
            self._resolving.append(name)
            try:
                return self.resolve(self._registry.type_aliases[name])
            finally:
                self._resolving.pop()
        if name in self._registry.function_types:
            return self.function_type(self._registry.function_types[name])
        if name in self._registry.structs:
            return self.struct_type(name, self._registry.structs[name])
        raise _error(f"Unresolved type alias '{name}'", reference)

    def struct_type(self, name: str, struct: StructDef) -> type:
        """Return the ctypes.Structure subclass for ``struct``, building it once."""
        cls = self._structs.get(struct)
        if cls is not None:
            return cls

        cls = type(struct.name or name, (ctypes.Structure,), {})
        self._structs[struct] = cls
        try:
            cls._fields_ = [(f.name, self.resolve_value(f.type)) for f in struct.fields]
        except Exception:
            del self._structs[struct]
            raise
        logger.debug("Built struct %s with %d fields", cls.__name__, len(struct))
        return cls

    def signature_types(self, signature: FunctionSignature) -> Tuple[List[Any], Any]:
        """Resolve a signature to (argtypes, restype)."""
        argtypes = [self.resolve_value(arg.type) for arg in signature.args]
        restype = self.resolve(signature.returns)
        return argtypes, restype

    def function_type(self, signature: FunctionSignature):
        """Build a CFUNCTYPE for a function pointer signature."""
        argtypes, restype = self.signature_types(signature)
        return ctypes.CFUNCTYPE(restype, *argtypes)


@dataclass
class BoundLibrary:
    """A shared library with its declarations bound.

    Attributes:
        library: The opened ctypes library
        functions: Foreign functions with argtypes/restype set
        structs: ctypes.Structure subclasses by registered name
        types: Resolved typedefs (scalar and function pointer)
        missing: Declared functions the library does not export
    """
    library: Any
    functions: Dict[str, Any] = field(default_factory=dict)
    structs: Dict[str, type] = field(default_factory=dict)
    types: Dict[str, Any] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)

    def __getattr__(self, name: str):
        functions = self.__dict__.get("functions", {})
        if name in functions:
            return functions[name]
        raise AttributeError(name)


def bind_library(registry: DeclRegistry,
                 library: Union[str, "os.PathLike[str]", ctypes.CDLL]) -> BoundLibrary:
    """Bind every declaration in ``registry`` against ``library``.

    Args:
        registry: Parsed declarations
        library: Path of a shared library, or an already opened ctypes.CDLL

    Returns:
        BoundLibrary: Bound functions plus resolved structs and typedefs

    Raises:
        ResolveError: If a declaration uses a type that cannot be resolved
        OSError: If the library cannot be opened
    """
    if isinstance(library, (str, os.PathLike)):
        library = ctypes.CDLL(os.fspath(library))

    resolver = TypeResolver(registry)
    bound = BoundLibrary(library=library)

    for name, struct in registry.structs.items():
        bound.structs[name] = resolver.struct_type(name, struct)
    for name, pack in registry.type_aliases.items():
        bound.types[name] = resolver.resolve(pack)
    for name, signature in registry.function_types.items():
        bound.types[name] = resolver.function_type(signature)

    for name, signature in registry.functions.items():
        try:
            func = getattr(library, name)
        except AttributeError:
            logger.warning("Symbol %s not found in %s", name, getattr(library, "_name", library))
            bound.missing.append(name)
            continue
        func.argtypes, func.restype = resolver.signature_types(signature)
        bound.functions[name] = func

    logger.info("Bound %d of %d functions", len(bound.functions), len(registry.functions))
    return bound
