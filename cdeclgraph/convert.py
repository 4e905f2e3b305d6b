#!/usr/bin/env python3
"""
Conversion of libclang types into the declaration graph's type model.
"""

import clang.cindex as clang

from cdeclgraph.errors import UnsupportedType
from cdeclgraph.frontend import definition_of, found, is_implicit
from cdeclgraph.model import (
    ArrayType,
    BaseKind,
    BaseType,
    BuiltinGlobal,
    CompositeGlobal,
    CompositeRefType,
    CType,
    EnumGlobal,
    EnumRefType,
    FuncProtoType,
    FuncPtrType,
    Global,
    NamedType,
    Param,
    PointerType,
    VoidType,
)
from cdeclgraph.state import ExtractState

TK = clang.TypeKind
CK = clang.CursorKind

BASE_KINDS = {
    TK.CHAR_S: BaseKind.CHAR,  # type: ignore
    TK.CHAR_U: BaseKind.CHAR,  # type: ignore
    TK.SCHAR: BaseKind.SCHAR,  # type: ignore
    TK.UCHAR: BaseKind.UCHAR,  # type: ignore
    TK.SHORT: BaseKind.SHORT,  # type: ignore
    TK.USHORT: BaseKind.USHORT,  # type: ignore
    TK.INT: BaseKind.INT,  # type: ignore
    TK.UINT: BaseKind.UINT,  # type: ignore
    TK.LONG: BaseKind.LONG,  # type: ignore
    TK.ULONG: BaseKind.ULONG,  # type: ignore
    TK.LONGLONG: BaseKind.LLONG,  # type: ignore
    TK.ULONGLONG: BaseKind.ULLONG,  # type: ignore
    TK.WCHAR: BaseKind.WCHAR,  # type: ignore
    TK.FLOAT: BaseKind.FLOAT,  # type: ignore
    TK.DOUBLE: BaseKind.DOUBLE,  # type: ignore
    TK.LONGDOUBLE: BaseKind.LDOUBLE,  # type: ignore
}

COMPLEX_KINDS = {
    TK.FLOAT: BaseKind.COMPLEX32,  # type: ignore
    TK.DOUBLE: BaseKind.COMPLEX64,  # type: ignore
    TK.LONGDOUBLE: BaseKind.COMPLEXLD,  # type: ignore
}

UNSIZED_ARRAYS = (TK.INCOMPLETEARRAY, TK.VARIABLEARRAY, TK.DEPENDENTSIZEDARRAY)  # type: ignore
FUNCTION_KINDS = (TK.FUNCTIONPROTO, TK.FUNCTIONNOPROTO)  # type: ignore
WIDE_KINDS = (TK.INT128, TK.UINT128, TK.VECTOR)  # type: ignore
DECL_KINDS = (CK.STRUCT_DECL, CK.UNION_DECL, CK.ENUM_DECL, CK.TYPEDEF_DECL)  # type: ignore


def convert(ctype: clang.Type, cursor: clang.Cursor, state: ExtractState) -> CType:
    """Map a libclang type, seen from `cursor`, to the type model.

    Raises UnsupportedType for kinds with no representation and NotFound for
    references to declarations that were skipped.
    """
    kind = ctype.kind

    if kind in (TK.VOID, TK.INVALID):  # type: ignore
        return VoidType()
    if kind == TK.BOOL:  # type: ignore
        return BaseType(base=BaseKind.UCHAR)
    if kind in BASE_KINDS:
        return BaseType(base=BASE_KINDS[kind])
    if kind == TK.COMPLEX:  # type: ignore
        element = ctype.element_type.kind
        if element not in COMPLEX_KINDS:
            raise UnsupportedType(kind.name, f"complex {ctype.spelling} is not supported")
        return BaseType(base=COMPLEX_KINDS[element])
    if kind == TK.POINTER:  # type: ignore
        return convert_pointer(ctype, cursor, state)
    if kind == TK.CONSTANTARRAY:  # type: ignore
        element = convert(ctype.get_array_element_type(), cursor, state)
        return ArrayType(element=element, size=ctype.get_array_size())
    if kind in UNSIZED_ARRAYS:
        return ArrayType(element=convert(ctype.get_array_element_type(), cursor, state), size=0)
    if kind in FUNCTION_KINDS:
        return FuncProtoType(**signature(ctype, cursor, state))
    if kind == TK.ELABORATED:  # type: ignore
        return convert(ctype.get_named_type(), cursor, state)
    if kind in (TK.RECORD, TK.ENUM, TK.TYPEDEF):  # type: ignore
        return declared_type(ctype.get_declaration(), state)
    if kind == TK.UNEXPOSED:  # type: ignore
        decl = ctype.get_declaration()
        if found(decl) and decl.kind in DECL_KINDS:
            return declared_type(decl, state)
        canonical = ctype.get_canonical()
        if canonical.kind != TK.UNEXPOSED:  # type: ignore
            return convert(canonical, cursor, state)
        return VoidType()
    if kind in WIDE_KINDS:
        raise UnsupportedType(kind.name, "128-bit integers and/or vectors are not supported")
    raise UnsupportedType(kind.name, f"{ctype.spelling} ({kind.name}) is not supported")


def convert_pointer(ctype: clang.Type, cursor: clang.Cursor, state: ExtractState) -> CType:
    pointee = ctype.get_pointee()
    is_const = pointee.is_const_qualified()

    if pointee.kind == TK.UNEXPOSED:  # type: ignore
        canonical = pointee.get_canonical()
        if canonical.kind in FUNCTION_KINDS:
            pointee = canonical

    if pointee.kind != TK.UNEXPOSED and pointee.kind not in FUNCTION_KINDS:  # type: ignore
        return PointerType(pointee=convert(pointee, cursor, state), is_const=is_const)

    if pointee.get_result().kind != TK.INVALID:  # type: ignore
        return FuncPtrType(**signature(pointee, cursor, state))

    decl = pointee.get_declaration()
    if found(decl) and decl.kind in DECL_KINDS:
        return PointerType(pointee=declared_type(decl, state), is_const=is_const)
    if not found(decl):
        return PointerType(pointee=VoidType(), is_const=is_const)

    # A typedef'd function pointer seen through a variable: use the desugared pointer.
    canonical = ctype.get_canonical()
    if cursor.kind == CK.VAR_DECL and canonical.get_pointee().kind != TK.UNEXPOSED:  # type: ignore
        return convert(canonical, cursor, state)
    return PointerType(pointee=VoidType(), is_const=is_const)


def signature(ftype: clang.Type, cursor: clang.Cursor, state: ExtractState) -> dict:
    """Return type, arguments and variadic flag of a function type.

    Argument names come from the parameter declarations under `cursor` when
    they line up with the prototype.
    """
    ret = convert(ftype.get_result(), cursor, state)
    if ftype.kind != TK.FUNCTIONPROTO:  # type: ignore
        return {"ret": ret, "args": [], "variadic": False}

    arg_types = list(ftype.argument_types())
    if cursor.kind == CK.FUNCTION_DECL:  # type: ignore
        parms = list(cursor.get_arguments())
    else:
        parms = [c for c in cursor.get_children() if c.kind == CK.PARM_DECL]  # type: ignore

    if len(parms) == len(arg_types):
        args = [Param(name=p.spelling, type=convert(p.type, p, state)) for p in parms]
    else:
        args = [Param(type=convert(t, cursor, state)) for t in arg_types]
    return {"ret": ret, "args": args, "variadic": ftype.is_function_variadic()}


def declared_type(decl: clang.Cursor, state: ExtractState) -> CType:
    """Reference to a record, enum or typedef declaration through the registry."""
    if decl.kind not in DECL_KINDS:
        return VoidType()

    global_ = state.registry.lookup_or_create(decl)
    if isinstance(global_, BuiltinGlobal):
        return global_.type
    if decl.kind == CK.TYPEDEF_DECL and is_implicit(decl.canonical):  # type: ignore
        return convert(decl.underlying_typedef_type, decl, state)

    global_ = state.registry.get(global_.id)
    if isinstance(global_, CompositeGlobal):
        _materialize(decl, global_, state)
        return CompositeRefType(ref=global_.id)
    if isinstance(global_, EnumGlobal):
        _materialize(decl, global_, state)
        return EnumRefType(ref=global_.id)
    return NamedType(name=global_.name.text, ref=global_.id)


def _materialize(decl: clang.Cursor, global_: Global, state: ExtractState) -> None:
    """Make sure a referenced record or enum reaches the global list.

    Definitions in the source are listed by the traversal itself. Records with
    no definition become opaque now, and implicit ones are defined on demand.
    """
    from cdeclgraph.members import declare_opaque, define

    if state.is_listed(global_) or global_.id in state.defining:
        return
    definition = definition_of(decl)
    if definition is None:
        declare_opaque(decl, state)
    elif is_implicit(definition):
        define(definition, state)
