#!/usr/bin/env python3
"""
Top-level extraction of a C translation unit into a declaration graph.

Uses clang to parse the source, walks its top-level cursors once, and
produces the ordered list of globals plus the member and enum item side
tables that describe them.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import clang.cindex as clang
from pydantic import BaseModel, Field as PydanticField

from cdeclgraph.builtins import BuiltinEntry, BuiltinResolver, load_snapshot, save_snapshot
from cdeclgraph.config import ExtractConfig
from cdeclgraph.convert import convert, signature
from cdeclgraph.errors import DeclarationError, NotFound
from cdeclgraph.frontend import VisitResult, definition_of, is_implicit, location_of, parse, visit
from cdeclgraph.members import declare, declare_opaque
from cdeclgraph.model import (
    ArrayType,
    BaseKind,
    BaseType,
    BuiltinGlobal,
    CompositeGlobal,
    Diagnostic,
    EnumItems,
    Field,
    FuncPtrType,
    Global,
    Member,
    type_refs,
)
from cdeclgraph.registry import Registry
from cdeclgraph.state import ExtractState

logger = logging.getLogger(__name__)

CK = clang.CursorKind
TK = clang.TypeKind

BINDABLE_LINKAGE = (clang.LinkageKind.EXTERNAL, clang.LinkageKind.UNIQUE_EXTERNAL)  # type: ignore

# Element type used to pad an irregular composite, by alignment.
PADDING_ELEMENTS = {
    1: BaseKind.CHAR,
    2: BaseKind.SHORT,
    4: BaseKind.INT,
    8: BaseKind.LLONG,
}


class ExtractResult(BaseModel):
    """Ordered globals of one translation unit plus their side tables."""

    declarations: list[Global] = PydanticField(default_factory=list)
    members: dict[int, list[Member]] = PydanticField(default_factory=dict)
    enum_items: dict[int, EnumItems] = PydanticField(default_factory=dict)
    irregular: set[int] = PydanticField(default_factory=set)
    diagnostics: list[Diagnostic] = PydanticField(default_factory=list)

    def get(self, gid: int) -> Global:
        for global_ in self.declarations:
            if global_.id == gid:
                return global_
        raise NotFound(f"#{gid}")

    def lookup(self, name: str, kind: str | None = None) -> Global:
        """First listed global spelled `name`, optionally of one variant kind."""
        for global_ in self.declarations:
            if global_.name.text == name and (kind is None or global_.kind == kind):
                return global_
        raise NotFound(name)

    def members_of(self, global_: Global) -> list[Member] | None:
        """Structured members, or None when the composite is irregular."""
        if global_.id in self.irregular:
            return None
        return self.members.get(global_.id)

    def enum_items_of(self, global_: Global) -> EnumItems:
        return self.enum_items.get(global_.id, EnumItems())

    def select(self, predicate: Callable[[Global], bool]) -> "ExtractResult":
        """The globals `predicate` accepts, with their side table entries and every diagnostic."""
        declarations = [g for g in self.declarations if predicate(g)]
        kept = {g.id for g in declarations}
        return ExtractResult(
            declarations=declarations,
            members={gid: m for gid, m in self.members.items() if gid in kept},
            enum_items={gid: e for gid, e in self.enum_items.items() if gid in kept},
            irregular=self.irregular & kept,
            diagnostics=self.diagnostics,
        )

    def padding_members(self, global_: Global) -> list[Member]:
        """Stand-in layout for an irregular composite: one array sized and aligned like it."""
        if not isinstance(global_, CompositeGlobal):
            raise TypeError(f"{global_.name} is not a composite")
        size, align = global_.layout.size, global_.layout.align
        base = PADDING_ELEMENTS.get(align)
        if not size or base is None or size < align or size % align:
            logger.warning("Cannot pad %s [size=%d align=%d]", global_.name, size, align)
            return []
        array = ArrayType(element=BaseType(base=base), size=size // align)
        return [Field(name="auto_array", type=array, offset=0)]


def _visit_top(cursor: clang.Cursor, parent: clang.Cursor, state: ExtractState):
    kind = cursor.kind

    # Compiler-provided declarations are only materialized when referenced.
    if is_implicit(cursor):
        return VisitResult.CONTINUE, state

    if kind == CK.UNEXPOSED_DECL:  # type: ignore
        return VisitResult.RECURSE, state

    try:
        if kind in (CK.STRUCT_DECL, CK.UNION_DECL, CK.ENUM_DECL):  # type: ignore
            declare(cursor, state)
        elif kind == CK.FUNCTION_DECL:  # type: ignore
            _visit_function(cursor, state)
        elif kind == CK.VAR_DECL:  # type: ignore
            _visit_var(cursor, state)
        elif kind == CK.TYPEDEF_DECL:  # type: ignore
            _visit_typedef(cursor, state)
    except DeclarationError as e:
        _skip(cursor, state, e)

    return VisitResult.CONTINUE, state


def _visit_function(cursor: clang.Cursor, state: ExtractState) -> None:
    if cursor.linkage not in BINDABLE_LINKAGE:
        logger.debug("Dropping %s with %s linkage", cursor.spelling, cursor.linkage.name)
        return
    global_ = state.registry.lookup_or_create(cursor)
    if isinstance(global_, BuiltinGlobal):
        return
    ctype = FuncPtrType(**signature(cursor.type, cursor, state))
    state.add_global(global_.model_copy(update={"type": ctype}))


def _visit_var(cursor: clang.Cursor, state: ExtractState) -> None:
    if cursor.linkage not in BINDABLE_LINKAGE:
        logger.debug("Dropping %s with %s linkage", cursor.spelling, cursor.linkage.name)
        return
    global_ = state.registry.lookup_or_create(cursor)
    if isinstance(global_, BuiltinGlobal):
        return
    ctype = convert(cursor.type, cursor, state)
    is_const = cursor.type.is_const_qualified()
    state.add_global(global_.model_copy(update={"type": ctype, "is_const": is_const}))


def _visit_typedef(cursor: clang.Cursor, state: ExtractState) -> None:
    global_ = state.registry.lookup_or_create(cursor)
    if isinstance(global_, BuiltinGlobal):
        return

    underlying = cursor.underlying_typedef_type
    if underlying.kind == TK.UNEXPOSED:  # type: ignore
        underlying = underlying.get_canonical()

    _declare_opaque_type(underlying, state)
    ctype = convert(underlying, cursor, state)
    state.add_global(global_.model_copy(update={"type": ctype}))


def _declare_opaque_type(ctype: clang.Type, state: ExtractState) -> None:
    """A typedef of an undefined record or enum still names something referenceable."""
    if ctype.kind == TK.ELABORATED:  # type: ignore
        ctype = ctype.get_named_type()
    if ctype.kind not in (TK.RECORD, TK.ENUM):  # type: ignore
        return
    decl = ctype.get_declaration()
    if definition_of(decl) is None:
        declare_opaque(decl, state)


def _skip(cursor: clang.Cursor, state: ExtractState, error: DeclarationError) -> None:
    if cursor in state.registry:
        global_ = state.registry.lookup_or_create(cursor)
        state.registry.poison(global_)
        state.remove_global(global_)
    state.diagnose(
        Diagnostic(
            name=cursor.spelling,
            location=location_of(cursor),
            message=str(error),
        )
    )


def _global_refs(state: ExtractState, global_: Global) -> set[int]:
    refs = set()
    if hasattr(global_, "type"):
        refs |= type_refs(global_.type)
    for member in state.members.get(global_.id, []):
        refs |= type_refs(member.type)
    return refs


def prune_unresolved(state: ExtractState) -> ExtractState:
    """Drop listed globals that reference a skipped declaration, until nothing changes."""
    registry = state.registry
    changed = True
    while changed:
        changed = False
        for gid in list(state.order):
            global_ = registry.globals[gid]
            bad = sorted(ref for ref in _global_refs(state, global_) if registry.is_poisoned(ref))
            if not bad:
                continue
            missing = registry.globals[bad[0]]
            error = NotFound(str(missing.name), "declaration was skipped")
            registry.poison(global_)
            state.remove_global(global_)
            state.diagnose(
                Diagnostic(
                    name=str(global_.name),
                    location=getattr(global_, "location", None),
                    message=str(error),
                )
            )
            changed = True
    return state


def extract_translation_unit(
    tu: clang.TranslationUnit,
    builtins: Iterable[BuiltinEntry] = (),
) -> ExtractResult:
    """Extract every bindable top-level declaration of a parsed translation unit."""
    state = ExtractState(Registry(BuiltinResolver(builtins)))
    state = visit(tu.cursor, _visit_top, state)
    state = prune_unresolved(state)

    listed = set(state.order)
    result = ExtractResult(
        declarations=[state.registry.globals[gid] for gid in state.order],
        members={gid: m for gid, m in state.members.items() if gid in listed},
        enum_items={gid: e for gid, e in state.enum_items.items() if gid in listed},
        irregular=state.irregular & listed,
        diagnostics=state.diagnostics,
    )
    logger.info(
        "Extracted %d globals (%d skipped) from %s",
        len(result.declarations),
        len(result.diagnostics),
        tu.spelling,
    )
    return result


def extract(
    source: str | Path,
    args: Sequence[str] = (),
    code: str | None = None,
    builtins: Iterable[BuiltinEntry] = (),
) -> ExtractResult:
    """Parse `source` (or the in-memory `code` named `source`) and extract it."""
    tu = parse(source, args=args, code=code)
    return extract_translation_unit(tu, builtins=builtins)


def extract_with_config(source: str | Path, config: ExtractConfig, code: str | None = None) -> ExtractResult:
    """Extract `source` with the builtins and snapshot target named by `config`.

    Only the globals the configured filters select are returned and saved.
    """
    builtins: list[BuiltinEntry] = []
    for globals_source in config.load_globals:
        builtins += load_snapshot(globals_source.path, globals_source.prefix)

    result = extract(source, args=config.invocation_args(), code=code, builtins=builtins)
    result = result.select(config.selects)
    if config.save_globals is not None:
        save_snapshot(config.save_globals, result.declarations)
    return result
