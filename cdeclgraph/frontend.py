#!/usr/bin/env python3
"""
Thin layer over libclang: parsing, diagnostics, and cursor visitation.
"""

import logging
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import TypeVar

import clang.cindex as clang

from cdeclgraph.errors import ParseError
from cdeclgraph.model import Location

logger = logging.getLogger(__name__)

S = TypeVar("S")

SEVERITY_NAMES = {
    clang.Diagnostic.Ignored: "ignored",
    clang.Diagnostic.Note: "note",
    clang.Diagnostic.Warning: "warning",
    clang.Diagnostic.Error: "error",
    clang.Diagnostic.Fatal: "fatal",
}


class VisitResult(str, Enum):
    CONTINUE = "continue"
    RECURSE = "recurse"
    BREAK = "break"


class CursorKey:
    """Hashable wrapper so canonical cursors can key a dict."""

    __slots__ = ("cursor",)

    def __init__(self, cursor: clang.Cursor):
        self.cursor = cursor

    def __hash__(self):
        return self.cursor.hash

    def __eq__(self, other):
        return isinstance(other, CursorKey) and self.cursor == other.cursor


def parse(
    source: str | Path,
    args: Sequence[str] = (),
    code: str | None = None,
    index: clang.Index | None = None,
) -> clang.TranslationUnit:
    """Parse a C file, or an in-memory buffer named `source` when `code` is given.

    Raises ParseError if the front end reports any error or fatal diagnostic.
    """
    index = index or clang.Index.create()
    unsaved = [(str(source), code)] if code is not None else None
    try:
        tu = index.parse(str(source), args=list(args), unsaved_files=unsaved)
    except clang.TranslationUnitLoadError as e:
        raise ParseError([("fatal", str(e))]) from e

    diagnostics = []
    for diag in tu.diagnostics:
        severity = SEVERITY_NAMES.get(diag.severity, "unknown")
        diagnostics.append((severity, f"{diag.location.file}:{diag.location.line}: {diag.spelling}"))
        if diag.severity < clang.Diagnostic.Error:
            logger.info("clang %s: %s", severity, diag.spelling)

    if any(severity in ("error", "fatal") for severity, _ in diagnostics):
        raise ParseError(diagnostics)
    return tu


def visit(cursor: clang.Cursor, fn: Callable[[clang.Cursor, clang.Cursor, S], tuple[VisitResult, S]], state: S) -> S:
    """Pre-order walk over the children of `cursor`, threading `state` through `fn`.

    `fn(child, parent, state)` returns the next step and the updated state:
    CONTINUE moves to the next sibling, RECURSE descends into the child first,
    BREAK ends the whole walk.
    """
    state, _ = _visit_children(cursor, fn, state)
    return state


def _visit_children(cursor, fn, state):
    for child in cursor.get_children():
        result, state = fn(child, cursor, state)
        if result is VisitResult.BREAK:
            return state, True
        if result is VisitResult.RECURSE:
            state, stopped = _visit_children(child, fn, state)
            if stopped:
                return state, True
    return state, False


def location_of(cursor: clang.Cursor) -> Location:
    loc = cursor.location
    return Location(
        file=loc.file.name if loc.file else "",
        line=loc.line,
        column=loc.column,
    )


def is_implicit(cursor: clang.Cursor) -> bool:
    """Compiler-provided declarations have no source file."""
    return cursor.location.file is None


TAG_KINDS = (
    clang.CursorKind.STRUCT_DECL,  # type: ignore
    clang.CursorKind.UNION_DECL,  # type: ignore
    clang.CursorKind.ENUM_DECL,  # type: ignore
)

# USR tag markers; the anonymous forms are not followed by a name.
USR_TAGS = {"S", "U", "E"}
ANONYMOUS_USR_TAGS = {"SA", "Sa", "UA", "Ua", "EA", "Ea"}


def _synthesized_name(spelling: str) -> bool:
    return "(anonymous" in spelling or "(unnamed" in spelling


def is_anonymous(cursor: clang.Cursor) -> bool:
    """Whether a struct, union or enum declaration has no tag name."""
    if cursor.kind not in TAG_KINDS:
        return False
    if cursor.is_anonymous() or _synthesized_name(cursor.spelling):
        return True
    return _anonymous_usr(cursor.get_usr())


def _anonymous_usr(usr: str) -> bool:
    """Whether the innermost tag of a USR is unnamed (typedef-named tags count)."""
    last = None
    parts = iter(usr.split("@"))
    for part in parts:
        if part in ANONYMOUS_USR_TAGS:
            last = part
        elif part in USR_TAGS:
            last = part
            next(parts, None)
    return last in ANONYMOUS_USR_TAGS


def decl_spelling(cursor: clang.Cursor) -> str:
    """Spelling of a declaration, empty for anonymous records and enums."""
    if is_anonymous(cursor):
        return ""
    return cursor.spelling


def field_spelling(cursor: clang.Cursor) -> str:
    """Spelling of a field, empty for unnamed bitfields and anonymous members."""
    spelling = cursor.spelling
    return "" if _synthesized_name(spelling) else spelling


def definition_of(cursor: clang.Cursor) -> clang.Cursor | None:
    """The defining cursor of a declaration, or None if the translation unit has none."""
    definition = cursor.get_definition()
    if definition is None or definition.kind.is_invalid():
        return None
    return definition


def is_definition(cursor: clang.Cursor) -> bool:
    definition = definition_of(cursor)
    return definition is not None and definition == cursor


def found(cursor: clang.Cursor | None) -> bool:
    """False for the null and no-declaration-found cursors libclang hands back."""
    return cursor is not None and not cursor.kind.is_invalid()
