#!/usr/bin/env python3
"""
Member and enum item visitation for composite and enum declarations.

Nested declarations found while visiting a composite are registered as
globals of their own and listed ahead of the composite that contains them.
"""

import logging

import clang.cindex as clang

from cdeclgraph.convert import BASE_KINDS, convert
from cdeclgraph.errors import ClassificationError, DeclarationError
from cdeclgraph.frontend import (
    TAG_KINDS,
    VisitResult,
    decl_spelling,
    definition_of,
    field_spelling,
    is_anonymous,
    is_definition,
    visit,
)
from cdeclgraph.model import (
    BaseKind,
    Bitfield,
    BuiltinGlobal,
    CompositeGlobal,
    CompositeRefType,
    EnumGlobal,
    EnumItem,
    EnumItems,
    Field,
    Global,
    Member,
    inner_ref,
)
from cdeclgraph.registry import layout_of
from cdeclgraph.state import ExtractState

logger = logging.getLogger(__name__)

CK = clang.CursorKind

INTEGER_KINDS = {
    BaseKind.CHAR,
    BaseKind.SCHAR,
    BaseKind.UCHAR,
    BaseKind.SHORT,
    BaseKind.USHORT,
    BaseKind.INT,
    BaseKind.UINT,
    BaseKind.LONG,
    BaseKind.ULONG,
    BaseKind.LLONG,
    BaseKind.ULLONG,
}


def declare(cursor: clang.Cursor, state: ExtractState) -> Global | None:
    """Handle one record or enum declaration cursor.

    The defining cursor is visited in full; a declaration with no definition
    anywhere in the translation unit becomes opaque; any other forward
    declaration waits for its definition.
    """
    definition = definition_of(cursor)
    if definition is None:
        return declare_opaque(cursor, state)
    if definition == cursor:
        return define(cursor, state)
    return None


def declare_opaque(cursor: clang.Cursor, state: ExtractState) -> Global:
    """List a record or enum that has no definition, with no members."""
    global_ = state.registry.lookup_or_create(cursor)
    if isinstance(global_, BuiltinGlobal) or state.is_listed(global_):
        return global_

    logger.debug("Registering opaque %s", global_.name)
    state.opaque.add(global_.id)
    if isinstance(global_, CompositeGlobal):
        state.set_members(global_, [], irregular=True)
    elif isinstance(global_, EnumGlobal):
        state.set_enum_items(global_, EnumItems(kind=enum_kind(cursor)))
    else:
        raise ClassificationError(f"Cannot declare {cursor.kind.name} {cursor.spelling} as opaque")
    state.add_global(global_)
    return global_


def define(cursor: clang.Cursor, state: ExtractState) -> Global:
    """Visit a record or enum definition and list it with its side table entry."""
    global_ = state.registry.lookup_or_create(cursor)
    if isinstance(global_, BuiltinGlobal):
        return global_

    mark = len(state.added)
    state.defining.add(global_.id)
    try:
        if isinstance(global_, CompositeGlobal):
            members = visit_members(cursor, state)
            irregular = not members or any(isinstance(m, Bitfield) for m in members)
            global_ = global_.model_copy(update={"layout": layout_of(cursor)})
            state.set_members(global_, members, irregular)
        elif isinstance(global_, EnumGlobal):
            items = EnumItems(items=visit_enum(cursor), kind=enum_kind(cursor))
            state.set_enum_items(global_, items)
        else:
            raise ClassificationError(f"Cannot define {cursor.kind.name} {cursor.spelling}")
    except DeclarationError:
        state.registry.poison(global_)
        state.withdraw_since(mark, global_)
        raise
    finally:
        state.defining.discard(global_.id)

    state.add_global(global_)
    return global_


class _MemberVisit:
    """Members collected so far, plus the nested declaration the next field may own."""

    def __init__(self, parent: clang.Cursor, state: ExtractState):
        self.parent = parent
        self.state = state
        self.members: list[Member] = []
        self.pending: tuple[Global, clang.Cursor] | None = None

    def add_field(self, cursor: clang.Cursor) -> None:
        ctype = convert(cursor.type, cursor, self.state)
        name = field_spelling(cursor)
        offset = cursor.get_field_offsetof()

        if cursor.is_bitfield():
            self.flush()
            self.members.append(
                Bitfield(name=name, type=ctype, width=cursor.get_bitfield_width(), offset=offset)
            )
            return

        owns = None
        ref = inner_ref(ctype)
        if self.pending is not None and ref is not None and ref.ref == self.pending[0].id:
            owns = ref.ref
            self.pending = None
        self.flush()
        self.members.append(Field(name=name, type=ctype, offset=offset, owns=owns))

    def add_nested(self, cursor: clang.Cursor) -> None:
        self.flush()
        global_ = declare(cursor, self.state)
        if global_ is not None and is_definition(cursor) and not isinstance(global_, BuiltinGlobal):
            self.pending = (global_, cursor)

    def flush(self) -> None:
        """An unnamed record no field consumed is an anonymous member of the parent."""
        if self.pending is None:
            return
        global_, cursor = self.pending
        self.pending = None
        if decl_spelling(cursor) or not isinstance(global_, CompositeGlobal):
            return
        self.members.append(
            Field(
                name="",
                type=CompositeRefType(ref=global_.id),
                offset=_anonymous_offset(self.parent, cursor),
                owns=global_.id,
            )
        )


def _member_step(cursor, parent, acc: _MemberVisit):
    if cursor.kind == CK.FIELD_DECL:  # type: ignore
        acc.add_field(cursor)
    elif cursor.kind in TAG_KINDS:
        acc.add_nested(cursor)
    return VisitResult.CONTINUE, acc


def visit_members(cursor: clang.Cursor, state: ExtractState) -> list[Member]:
    """Fields and bitfields of a composite, in declaration order."""
    acc = visit(cursor, _member_step, _MemberVisit(cursor, state))
    acc.flush()
    return acc.members


def _enum_step(cursor, parent, items: list[EnumItem]):
    if cursor.kind == CK.ENUM_CONSTANT_DECL:  # type: ignore
        items.append(EnumItem(name=cursor.spelling, value=cursor.enum_value))
    return VisitResult.CONTINUE, items


def visit_enum(cursor: clang.Cursor) -> list[EnumItem]:
    """Enum constants in declaration order; values may repeat."""
    return visit(cursor, _enum_step, [])


def enum_kind(cursor: clang.Cursor) -> BaseKind:
    kind = BASE_KINDS.get(cursor.enum_type.get_canonical().kind)
    return kind if kind in INTEGER_KINDS else BaseKind.INT


def _member_names(record: clang.Cursor):
    """Field names of `record` that are also visible in an enclosing record."""
    for child in record.get_children():
        if child.kind == CK.FIELD_DECL:  # type: ignore
            name = field_spelling(child)
            if name:
                yield name
        elif child.kind in (CK.STRUCT_DECL, CK.UNION_DECL) and is_anonymous(child):  # type: ignore
            yield from _member_names(child)


def _anonymous_offset(parent: clang.Cursor, record: clang.Cursor) -> int:
    """Bit offset of an anonymous member within the parent, found through one of its fields."""
    for name in _member_names(record):
        in_parent = parent.type.get_offset(name)
        in_record = record.type.get_offset(name)
        if in_parent >= 0 and in_record >= 0:
            return in_parent - in_record
    return 0
