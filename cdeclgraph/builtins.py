#!/usr/bin/env python3
"""
Builtin overrides: declarations already bound under an external name.

A builtin is keyed by the shape of the declaration it stands in for, so a
header processed in one run can be shared by later runs without rebinding
its declarations. Snapshots persist a run's globals for that purpose.
"""

import json
import logging
from collections.abc import Callable, Iterable
from pathlib import Path

import clang.cindex as clang
from pydantic import BaseModel, ValidationError

from cdeclgraph.errors import SnapshotError
from cdeclgraph.frontend import decl_spelling, location_of
from cdeclgraph.model import BuiltinGlobal, Global, Location, cursor_kind_of

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1"


class DeclShape(BaseModel):
    """Where a declaration is, what it is called and what kind of cursor declares it."""

    model_config = {"frozen": True}

    location: Location
    spelling: str
    kind: str

    @classmethod
    def of_cursor(cls, cursor: clang.Cursor) -> "DeclShape":
        return cls(
            location=location_of(cursor),
            spelling=decl_spelling(cursor),
            kind=cursor.kind.name,
        )

    @classmethod
    def of_global(cls, global_: Global) -> "DeclShape | None":
        kind = cursor_kind_of(global_)
        if kind is None:
            return None
        return cls(location=global_.location, spelling=global_.name.text, kind=kind)


class BuiltinEntry(BaseModel):
    shape: DeclShape
    name: str


class BuiltinResolver:
    """Matches cursors against builtin declaration shapes."""

    def __init__(self, entries: Iterable[BuiltinEntry] = ()):
        self._by_shape: dict[DeclShape, str] = {}
        for entry in entries:
            self._by_shape[entry.shape] = entry.name

    def __len__(self):
        return len(self._by_shape)

    def resolve(self, cursor: clang.Cursor) -> str | None:
        """External name bound to this exact declaration, if any."""
        if not self._by_shape:
            return None
        return self._by_shape.get(DeclShape.of_cursor(cursor))


class SnapshotEntry(BaseModel):
    global_: Global
    name: str


class Snapshot(BaseModel):
    version: str = SNAPSHOT_VERSION
    entries: list[SnapshotEntry]


def binding_name(global_: Global) -> str:
    """Default binding name: the C spelling, or a stable stand-in for anonymous declarations."""
    return global_.name.text or f"anon_{global_.name.id}"


def qualify(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def save_snapshot(
    path: Path,
    globals_: Iterable[Global],
    namer: Callable[[Global], str] = binding_name,
) -> Snapshot:
    """Persist globals with their binding names so a later run can reuse them as builtins."""
    entries = [
        SnapshotEntry(global_=g, name=namer(g))
        for g in globals_
        if not isinstance(g, BuiltinGlobal)
    ]
    snapshot = Snapshot(entries=entries)
    Path(path).write_text(snapshot.model_dump_json(indent=2))
    logger.info("Saved %d globals to %s", len(entries), path)
    return snapshot


def load_snapshot(path: Path, prefix: str = "") -> list[BuiltinEntry]:
    """Read a snapshot back as builtin entries, qualifying names with `prefix`."""
    try:
        data = json.loads(Path(path).read_text())
        snapshot = Snapshot.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise SnapshotError(f"Failed to load globals {path}: {e}") from e

    if snapshot.version != SNAPSHOT_VERSION:
        raise SnapshotError(
            f"Snapshot {path} has format version {snapshot.version}, expected {SNAPSHOT_VERSION}"
        )

    entries = []
    for entry in snapshot.entries:
        shape = DeclShape.of_global(entry.global_)
        if shape is None:
            continue
        entries.append(BuiltinEntry(shape=shape, name=qualify(prefix, entry.name)))
    logger.debug("Loaded %d builtins from %s", len(entries), path)
    return entries
