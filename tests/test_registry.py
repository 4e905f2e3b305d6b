#!/usr/bin/env python3

import clang.cindex as clang
import pytest

from cdeclgraph.errors import InvalidCompositeKind, NotFound
from cdeclgraph.frontend import VisitResult, _anonymous_usr, decl_spelling, is_implicit, parse, visit
from cdeclgraph.model import CompositeGlobal, EnumGlobal, TypedefGlobal
from cdeclgraph.registry import Registry, composite_kind


CODE = """
struct S;
struct S *make(void);
struct S { int v; };
struct S;
enum Mode { OFF, ON };
typedef struct S S;
"""


@pytest.fixture
def tu():
    return parse("test.c", args=["-std=c11"], code=CODE)


def children(tu, kind, spelling):
    return [c for c in tu.cursor.get_children() if c.kind == kind and c.spelling == spelling]


def test_redeclarations_share_one_global(tu):
    registry = Registry()
    cursors = children(tu, clang.CursorKind.STRUCT_DECL, "S")
    assert len(cursors) == 3

    globals_ = [registry.lookup_or_create(c) for c in cursors]
    assert all(g == globals_[0] for g in globals_)
    assert len(registry) == 1
    assert isinstance(globals_[0], CompositeGlobal)
    assert globals_[0].name.text == "S"


def test_lookup_is_idempotent(tu):
    registry = Registry()
    (mode,) = children(tu, clang.CursorKind.ENUM_DECL, "Mode")
    (typedef,) = children(tu, clang.CursorKind.TYPEDEF_DECL, "S")

    first = registry.lookup_or_create(mode)
    second = registry.lookup_or_create(typedef)
    assert isinstance(first, EnumGlobal)
    assert isinstance(second, TypedefGlobal)
    assert registry.lookup_or_create(mode).id == first.id
    assert registry.lookup_or_create(typedef).id == second.id
    assert first.id != second.id


def test_find_unregistered(tu):
    registry = Registry()
    (mode,) = children(tu, clang.CursorKind.ENUM_DECL, "Mode")

    assert mode not in registry
    with pytest.raises(NotFound):
        registry.find(mode)

    registry.lookup_or_create(mode)
    assert mode in registry
    assert registry.find(mode).name.text == "Mode"


def test_poisoned_global_is_not_found(tu):
    registry = Registry()
    (mode,) = children(tu, clang.CursorKind.ENUM_DECL, "Mode")
    global_ = registry.lookup_or_create(mode)

    registry.poison(global_)
    assert registry.is_poisoned(global_.id)
    with pytest.raises(NotFound, match="skipped"):
        registry.get(global_.id)
    with pytest.raises(NotFound):
        registry.find(mode)


def test_get_unknown_id():
    with pytest.raises(NotFound):
        Registry().get(42)


def test_composite_kind_rejects_enum(tu):
    (mode,) = children(tu, clang.CursorKind.ENUM_DECL, "Mode")
    with pytest.raises(InvalidCompositeKind):
        composite_kind(mode)


def test_visit_break_stops_walk(tu):
    def step(cursor, parent, seen):
        if is_implicit(cursor):
            return VisitResult.CONTINUE, seen
        seen.append(cursor.spelling)
        if cursor.kind == clang.CursorKind.FUNCTION_DECL:
            return VisitResult.BREAK, seen
        return VisitResult.CONTINUE, seen

    seen = visit(tu.cursor, step, [])
    assert seen == ["S", "make"]


def test_visit_recurse_enters_children(tu):
    def step(cursor, parent, seen):
        if cursor.kind == clang.CursorKind.ENUM_DECL:
            return VisitResult.RECURSE, seen
        if cursor.kind == clang.CursorKind.ENUM_CONSTANT_DECL:
            seen.append(cursor.spelling)
        return VisitResult.CONTINUE, seen

    assert visit(tu.cursor, step, []) == ["OFF", "ON"]


@pytest.mark.parametrize(
    "usr, anonymous",
    [
        ("c:@S@Node", False),
        ("c:@S@SA", False),
        ("c:@SA@handle_t", True),
        ("c:@S@Outer@Ua", True),
        ("c:@EA@mode_t", True),
        ("c:@S@test.c@42", False),
    ],
)
def test_anonymous_usr(usr, anonymous):
    assert _anonymous_usr(usr) is anonymous


def test_anonymous_tag_spellings():
    tu = parse("test.c", code="typedef struct { int a; } T; struct Named { int b; };")
    tags = [c for c in tu.cursor.get_children() if c.kind == clang.CursorKind.STRUCT_DECL]

    assert [decl_spelling(c) for c in tags] == ["", "Named"]
