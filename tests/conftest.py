"""
Pytest configuration and fixtures for cbind tests.
"""

import pytest
import tempfile
from pathlib import Path


SAMPLE_HEADER = """\
/* geometry.h */
struct Point { int x, y; };
typedef struct Point Point;
typedef struct { double w; double h; } Size;
typedef struct Rect { Point origin; Size size; } Rect;
typedef unsigned long handle_t;
typedef void (*visit_fn)(Point *p, void *ctx);

int area(Rect *r);
Point make_point(int x, int y);
void walk(Rect *r, visit_fn fn, void *ctx) {
    if (r) { fn(&r->origin, ctx); }
}
"""


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def sample_header(temp_dir):
    """Create a sample header file for testing."""
    header = temp_dir / "geometry.h"
    header.write_text(SAMPLE_HEADER)
    return header


@pytest.fixture
def lexer():
    """Provide a Lexer instance."""
    from cbind.frontend import Lexer
    return Lexer()


@pytest.fixture
def parser():
    """Provide a DeclParser instance."""
    from cbind.frontend import DeclParser
    return DeclParser()


@pytest.fixture
def loader():
    """Provide a Loader instance."""
    from cbind import Loader
    return Loader()
