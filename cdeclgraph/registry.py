#!/usr/bin/env python3
"""
Declaration registry: one global per canonical cursor.
"""

import logging

import clang.cindex as clang

from cdeclgraph.builtins import BuiltinResolver
from cdeclgraph.errors import ClassificationError, InvalidCompositeKind, NotFound
from cdeclgraph.frontend import CursorKey, decl_spelling, location_of
from cdeclgraph.model import (
    BuiltinGlobal,
    CompositeGlobal,
    CompositeKind,
    EnumGlobal,
    FunctionGlobal,
    Global,
    Layout,
    Name,
    NamedType,
    TypedefGlobal,
    VarGlobal,
)

logger = logging.getLogger(__name__)


def composite_kind(cursor: clang.Cursor) -> CompositeKind:
    if cursor.kind == clang.CursorKind.STRUCT_DECL:  # type: ignore
        return CompositeKind.STRUCT
    if cursor.kind == clang.CursorKind.UNION_DECL:  # type: ignore
        return CompositeKind.UNION
    raise InvalidCompositeKind(cursor.kind.name)


def layout_of(cursor: clang.Cursor) -> Layout:
    """Size and alignment in bytes; libclang reports negative values for incomplete types."""
    ctype = cursor.type
    return Layout(size=max(ctype.get_size(), 0), align=max(ctype.get_align(), 0))


class Registry:
    """Arena of globals keyed by canonical cursor."""

    def __init__(self, builtins: BuiltinResolver | None = None):
        self.builtins = builtins or BuiltinResolver()
        self.globals: dict[int, Global] = {}
        self._ids: dict[CursorKey, int] = {}
        self._poisoned: set[int] = set()

    def __len__(self):
        return len(self.globals)

    def __contains__(self, cursor: clang.Cursor) -> bool:
        return CursorKey(cursor.canonical) in self._ids

    def lookup_or_create(self, cursor: clang.Cursor) -> Global:
        """Return the global for `cursor`, registering a placeholder on first sight."""
        canonical = cursor.canonical
        key = CursorKey(canonical)
        gid = self._ids.get(key)
        if gid is not None:
            return self.globals[gid]

        gid = len(self.globals)
        global_ = self._create(canonical, gid)
        self._ids[key] = gid
        self.globals[gid] = global_
        return global_

    def find(self, cursor: clang.Cursor) -> Global:
        """Return the registered global for `cursor`.

        Raises NotFound if the declaration was never registered, or if its
        conversion failed and it was poisoned.
        """
        gid = self._ids.get(CursorKey(cursor.canonical))
        if gid is None:
            raise NotFound(cursor.spelling)
        return self.get(gid)

    def get(self, gid: int) -> Global:
        if gid not in self.globals:
            raise NotFound(f"#{gid}")
        if gid in self._poisoned:
            global_ = self.globals[gid]
            raise NotFound(str(global_.name), "declaration was skipped")
        return self.globals[gid]

    def update(self, global_: Global) -> Global:
        self.globals[global_.id] = global_
        return global_

    def poison(self, global_: Global) -> None:
        self._poisoned.add(global_.id)

    def is_poisoned(self, gid: int) -> bool:
        return gid in self._poisoned

    def _create(self, cursor: clang.Cursor, gid: int) -> Global:
        name = Name(text=decl_spelling(cursor), id=gid)

        external = self.builtins.resolve(cursor)
        if external is not None:
            logger.debug("Using builtin %s for %s", external, cursor.spelling)
            return BuiltinGlobal(name=name, type=NamedType(name=external, external=True))

        location = location_of(cursor)
        kind = cursor.kind
        if kind in (clang.CursorKind.STRUCT_DECL, clang.CursorKind.UNION_DECL):  # type: ignore
            return CompositeGlobal(
                name=name,
                location=location,
                composite_kind=composite_kind(cursor),
                layout=layout_of(cursor),
            )
        if kind == clang.CursorKind.ENUM_DECL:  # type: ignore
            return EnumGlobal(name=name, location=location)
        if kind == clang.CursorKind.TYPEDEF_DECL:  # type: ignore
            return TypedefGlobal(name=name, location=location)
        if kind == clang.CursorKind.VAR_DECL:  # type: ignore
            return VarGlobal(name=name, location=location)
        if kind == clang.CursorKind.FUNCTION_DECL:  # type: ignore
            return FunctionGlobal(name=name, location=location)
        raise ClassificationError(f"No global for cursor kind {kind.name} ({cursor.spelling})")
