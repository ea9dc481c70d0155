"""
Unit tests for the ctypes binding backend.
"""

import ctypes
import ctypes.util
import logging
from types import SimpleNamespace

import pytest
from cbind.backend import (
    BoundLibrary, Primitive, ResolveError, ScalarKind, TypeResolver,
    bind_library, classify, scalar_ctype,
)
from cbind.frontend import ParseError, parse_source
from cbind.ir import DeclRegistry, Token, TokenType, TypePack


LIBC = ctypes.util.find_library("c")


def returns_of(spelling, prelude=""):
    """Parse a one-line prototype and return its return-type pack and registry."""
    registry = parse_source(f"{prelude}\n{spelling} sample(void);")
    return registry.functions["sample"].returns, registry


def resolve(spelling, prelude=""):
    pack, registry = returns_of(spelling, prelude)
    return TypeResolver(registry).resolve(pack)


class TestClassify:
    """Tests for scalar keyword classification."""

    def test_defaults_to_signed(self):
        """Test that integers other than plain char are signed by default."""
        pack, _ = returns_of("long")
        assert classify(pack.tokens) == ScalarKind(Primitive.LONG, True)

    def test_plain_char_has_no_sign(self):
        """Test that plain char differs from signed and unsigned char."""
        pack, _ = returns_of("char")
        assert classify(pack.tokens) == ScalarKind(Primitive.CHAR, None)

    def test_bare_unsigned(self):
        """Test that a lone sign keyword means int."""
        pack, _ = returns_of("unsigned")
        assert classify(pack.tokens) == ScalarKind(Primitive.INT, False)

    def test_specifier_order_irrelevant(self):
        """Test that long int and int long classify the same."""
        a, _ = returns_of("long int")
        b, _ = returns_of("int long")
        assert classify(a.tokens) == classify(b.tokens)

    def test_qualifiers_ignored(self):
        """Test that qualifiers do not change the scalar kind."""
        pack, _ = returns_of("const volatile unsigned short")
        assert classify(pack.tokens) == ScalarKind(Primitive.SHORT, False)

    def test_sign_on_float_rejected(self):
        """Test that floating point types reject a sign."""
        pack, _ = returns_of("unsigned float")
        with pytest.raises(ResolveError, match="cannot apply to float"):
            classify(pack.tokens)

    def test_duplicate_sign_rejected(self):
        """Test that two sign keywords are rejected."""
        pack, _ = returns_of("signed unsigned int")
        with pytest.raises(ResolveError, match="Duplicate signed/unsigned"):
            classify(pack.tokens)

    def test_invalid_combination(self):
        """Test specifier combinations C does not have."""
        for spelling in ("short long", "long long long", "char int", "double float"):
            pack, _ = returns_of(spelling)
            with pytest.raises(ResolveError, match="Invalid type specifier"):
                classify(pack.tokens)

    def test_resolve_error_is_parse_error(self):
        """Test that resolution errors carry a source position."""
        pack, _ = returns_of("unsigned double")
        with pytest.raises(ParseError) as exc_info:
            classify(pack.tokens)
        assert exc_info.value.lineno == 2


class TestScalarCtype:
    """Tests for the scalar to ctypes mapping."""

    @pytest.mark.parametrize("spelling,expected", [
        ("void", None),
        ("bool", ctypes.c_bool),
        ("char", ctypes.c_char),
        ("signed char", ctypes.c_byte),
        ("unsigned char", ctypes.c_ubyte),
        ("short", ctypes.c_short),
        ("unsigned short int", ctypes.c_ushort),
        ("int", ctypes.c_int),
        ("unsigned", ctypes.c_uint),
        ("long", ctypes.c_long),
        ("unsigned long", ctypes.c_ulong),
        ("long long", ctypes.c_longlong),
        ("unsigned long long int", ctypes.c_ulonglong),
        ("float", ctypes.c_float),
        ("double", ctypes.c_double),
        ("long double", ctypes.c_longdouble),
    ])
    def test_scalars(self, spelling, expected):
        """Test every scalar spelling."""
        pack, _ = returns_of(spelling)
        assert scalar_ctype(classify(pack.tokens)) is expected


class TestTypeResolver:
    """Tests for resolving packs against a registry."""

    def test_void_pointer(self):
        """Test that void * is c_void_p."""
        assert resolve("void *") is ctypes.c_void_p
        assert resolve("void **") is ctypes.POINTER(ctypes.c_void_p)

    def test_char_pointer(self):
        """Test that char * is c_char_p and only plain char gets it."""
        assert resolve("const char *") is ctypes.c_char_p
        assert resolve("char **") is ctypes.POINTER(ctypes.c_char_p)
        assert resolve("unsigned char *") is ctypes.POINTER(ctypes.c_ubyte)

    def test_scalar_pointer(self):
        """Test plain pointer wrapping."""
        assert resolve("int *") is ctypes.POINTER(ctypes.c_int)
        assert resolve("double ***") is ctypes.POINTER(ctypes.POINTER(ctypes.POINTER(ctypes.c_double)))

    def test_alias_chain(self):
        """Test that typedefs of typedefs resolve through."""
        prelude = "typedef unsigned int u32; typedef u32 *u32p;"
        assert resolve("u32", prelude) is ctypes.c_uint
        assert resolve("u32p *", prelude) is ctypes.POINTER(ctypes.POINTER(ctypes.c_uint))

    def test_struct_layout(self):
        """Test that fields are laid out in declaration order."""
        prelude = "struct Point { int x, y; }; struct Line { struct Point a; struct Point *b; };"
        registry = parse_source(prelude)
        resolver = TypeResolver(registry)
        point = resolver.struct_type("Point", registry.structs["Point"])
        line = resolver.struct_type("Line", registry.structs["Line"])

        assert issubclass(point, ctypes.Structure)
        assert point.__name__ == "Point"
        assert [name for name, _ in point._fields_] == ["x", "y"]
        assert ctypes.sizeof(point) == 2 * ctypes.sizeof(ctypes.c_int)
        assert line._fields_ == [("a", point), ("b", ctypes.POINTER(point))]

        p = point(3, 4)
        assert (p.x, p.y) == (3, 4)

    def test_shared_struct_single_class(self):
        """Test that every name of a struct resolves to one class."""
        registry = parse_source("typedef struct node_s { int v; } node_t; typedef struct node_s other;")
        resolver = TypeResolver(registry)
        classes = {resolver.struct_type(n, s) for n, s in registry.structs.items()}
        assert len(classes) == 1
        assert classes.pop().__name__ == "node_s"

    def test_anonymous_struct_named_after_alias(self):
        """Test that an anonymous struct takes the typedef name."""
        assert resolve("Size", "typedef struct { float w, h; } Size;").__name__ == "Size"

    def test_struct_by_typedef_name(self):
        """Test a struct reached through its typedef name."""
        cls = resolve("Point *", "typedef struct { int x; } Point;")
        assert cls._type_.__name__ == "Point"

    def test_function_type(self):
        """Test that function pointer typedefs become CFUNCTYPE classes."""
        registry = parse_source("typedef int (*cb)(int, double);")
        resolver = TypeResolver(registry)
        proto = resolver.function_type(registry.function_types["cb"])
        assert proto._restype_ is ctypes.c_int
        assert proto._argtypes_ == (ctypes.c_int, ctypes.c_double)
        assert resolve("cb", "typedef int (*cb)(int, double);") is proto

    def test_unresolved_reference(self):
        """Test references with nothing behind them."""
        resolver = TypeResolver(DeclRegistry())
        with pytest.raises(ResolveError, match="Unresolved struct reference 'Ghost'"):
            resolver.resolve(TypePack((Token(TokenType.STRUCT_REF, "Ghost"),)))
        with pytest.raises(ResolveError, match="Unresolved type alias 'ghost_t'"):
            resolver.resolve(TypePack((Token(TokenType.ALIAS_REF, "ghost_t"),)))

    def test_circular_alias(self):
        """Test that a self-referencing alias is reported."""
        registry = DeclRegistry()
        registry.type_aliases["loop_t"] = TypePack((Token(TokenType.ALIAS_REF, "loop_t"),))
        with pytest.raises(ResolveError, match="Circular type alias"):
            TypeResolver(registry).resolve(registry.type_aliases["loop_t"])

    def test_void_field_rejected(self):
        """Test that a struct field cannot be plain void."""
        registry = parse_source("struct S {\n  int ok;\n  void v;\n};")
        resolver = TypeResolver(registry)
        with pytest.raises(ResolveError, match="only valid as a return type") as exc_info:
            resolver.struct_type("S", registry.structs["S"])
        assert (exc_info.value.lineno, exc_info.value.col_offset) == (3, 2)

    def test_void_alias_field_rejected(self):
        """Test that a typedef of void is rejected the same way."""
        registry = parse_source("typedef void nothing; struct S { nothing n; };")
        with pytest.raises(ResolveError, match="only valid as a return type"):
            TypeResolver(registry).struct_type("S", registry.structs["S"])

    def test_void_argument_rejected(self):
        """Test that a named void argument is rejected."""
        registry = parse_source("int abs(void x);")
        with pytest.raises(ResolveError, match=r"behind '\*'"):
            TypeResolver(registry).signature_types(registry.functions["abs"])

    def test_void_allowed_where_valid(self):
        """Test void returns, void pointers and an empty (void) list."""
        registry = parse_source("void release(void *p, void **pp); void tick(void);")
        resolver = TypeResolver(registry)
        assert resolver.signature_types(registry.functions["release"]) == (
            [ctypes.c_void_p, ctypes.POINTER(ctypes.c_void_p)], None)
        assert resolver.signature_types(registry.functions["tick"]) == ([], None)

    def test_failed_struct_not_cached(self):
        """Test that a struct whose fields fail to resolve is not kept half built."""
        registry = parse_source("struct Bad { int a; void b; }; struct Uses { struct Bad *p; };")
        resolver = TypeResolver(registry)
        for _ in range(2):
            with pytest.raises(ResolveError):
                resolver.struct_type("Bad", registry.structs["Bad"])
        with pytest.raises(ResolveError):
            resolver.struct_type("Uses", registry.structs["Uses"])
        good = parse_source("struct Good { int a; };")
        assert TypeResolver(good).struct_type("Good", good.structs["Good"])._fields_ == [
            ("a", ctypes.c_int)]

    def test_signature_types(self):
        """Test resolving a whole signature."""
        registry = parse_source("const char *name_of(int id, void *ctx);")
        argtypes, restype = TypeResolver(registry).signature_types(registry.functions["name_of"])
        assert argtypes == [ctypes.c_int, ctypes.c_void_p]
        assert restype is ctypes.c_char_p


class TestBindLibrary:
    """Tests for binding declarations to a library."""

    def test_missing_symbols(self, caplog):
        """Test that absent symbols are reported rather than raised."""
        library = SimpleNamespace(_name="libfake", present=SimpleNamespace())
        registry = parse_source("int present(int a); void absent(void);")
        with caplog.at_level(logging.WARNING, logger="cbind"):
            bound = bind_library(registry, library)

        assert isinstance(bound, BoundLibrary)
        assert bound.missing == ["absent"]
        assert list(bound.functions) == ["present"]
        assert bound.present.argtypes == [ctypes.c_int]
        assert bound.present.restype is ctypes.c_int
        assert "absent" in caplog.text
        with pytest.raises(AttributeError):
            bound.absent

    def test_structs_and_types_collected(self):
        """Test that every struct and typedef is resolved up front."""
        registry = parse_source(
            "typedef struct { int x; } P; typedef unsigned long size_type; "
            "typedef void (*done_fn)(P *p);")
        bound = bind_library(registry, SimpleNamespace())
        assert list(bound.structs) == ["P"]
        assert bound.types["size_type"] is ctypes.c_ulong
        assert bound.types["done_fn"]._argtypes_ == (ctypes.POINTER(bound.structs["P"]),)

    def test_unresolvable_declaration(self):
        """Test that a bad scalar type fails the whole bind."""
        registry = parse_source("unsigned float broken(void);")
        with pytest.raises(ResolveError):
            bind_library(registry, SimpleNamespace(broken=SimpleNamespace()))

    def test_void_argument_is_resolve_error(self):
        """Test that a void parameter fails as a ResolveError, not a ctypes TypeError."""
        registry = parse_source("int abs(void x);")
        with pytest.raises(ResolveError):
            bind_library(registry, SimpleNamespace(abs=SimpleNamespace()))

    @pytest.mark.skipif(LIBC is None, reason="C library not found")
    def test_libc(self):
        """Test calling real C functions through the binding."""
        registry = parse_source(
            "int abs(int n);\n"
            "unsigned long strlen(const char *s);\n"
            "int cbind_no_such_symbol(void);\n")
        bound = bind_library(registry, LIBC)
        assert bound.abs(-5) == 5
        assert bound.strlen(b"hello") == 5
        assert bound.missing == ["cbind_no_such_symbol"]

    @pytest.mark.skipif(LIBC is None, reason="C library not found")
    def test_libc_callback(self):
        """Test passing a Python callback through a function pointer typedef."""
        registry = parse_source(
            "typedef int (*cmp_fn)(const void *a, const void *b);\n"
            "void qsort(void *base, unsigned long n, unsigned long size, cmp_fn cmp);\n")
        bound = bind_library(registry, ctypes.CDLL(LIBC))

        def compare(a, b):
            left = ctypes.cast(a, ctypes.POINTER(ctypes.c_int)).contents.value
            right = ctypes.cast(b, ctypes.POINTER(ctypes.c_int)).contents.value
            return left - right

        values = (ctypes.c_int * 4)(3, 1, 2, 0)
        callback = bound.types["cmp_fn"](compare)
        bound.qsort(values, len(values), ctypes.sizeof(ctypes.c_int), callback)
        assert list(values) == [0, 1, 2, 3]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
