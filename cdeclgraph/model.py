#!/usr/bin/env python3
"""
Declaration graph model.

Globals live in an arena keyed by integer identity. Types refer to other
globals by identity only, so self-referential and mutually recursive
composites need no structural recursion. Members and enum items are kept
in side tables keyed by the same identity.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field as PydanticField


class BaseKind(str, Enum):
    CHAR = "char"
    SCHAR = "schar"
    UCHAR = "uchar"
    SHORT = "short"
    USHORT = "ushort"
    INT = "int"
    UINT = "uint"
    LONG = "long"
    ULONG = "ulong"
    LLONG = "llong"
    ULLONG = "ullong"
    WCHAR = "wchar"
    FLOAT = "float"
    DOUBLE = "double"
    LDOUBLE = "ldouble"
    COMPLEX32 = "complex32"
    COMPLEX64 = "complex64"
    COMPLEXLD = "complexld"


class CompositeKind(str, Enum):
    STRUCT = "struct"
    UNION = "union"


class Location(BaseModel):
    """Source position of a declaration."""

    model_config = {"frozen": True}

    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


class Layout(BaseModel):
    size: int = 0
    align: int = 0


class Name(BaseModel):
    """Declaration spelling plus the identity that disambiguates it."""

    model_config = {"frozen": True}

    text: str
    id: int

    def __str__(self) -> str:
        return self.text or f"<anonymous#{self.id}>"


# Types


class VoidType(BaseModel):
    kind: Literal["void"] = "void"


class BaseType(BaseModel):
    kind: Literal["base"] = "base"
    base: BaseKind


class NamedType(BaseModel):
    """Reference to a typedef, or to an externally bound name when `external`."""

    kind: Literal["named"] = "named"
    name: str
    external: bool = False
    ref: int | None = None


class PointerType(BaseModel):
    kind: Literal["ptr"] = "ptr"
    pointee: "CType"
    is_const: bool = False


class ArrayType(BaseModel):
    kind: Literal["array"] = "array"
    element: "CType"
    size: int = 0  # 0 for incomplete and flexible arrays


class Param(BaseModel):
    name: str = ""
    type: "CType"


class _Signature(BaseModel):
    ret: "CType"
    args: list[Param] = PydanticField(default_factory=list)
    variadic: bool = False


class FuncProtoType(_Signature):
    kind: Literal["funcproto"] = "funcproto"


class FuncPtrType(_Signature):
    kind: Literal["funcptr"] = "funcptr"


class EnumRefType(BaseModel):
    kind: Literal["enum"] = "enum"
    ref: int


class CompositeRefType(BaseModel):
    kind: Literal["composite"] = "composite"
    ref: int


CType = Annotated[
    Union[
        VoidType,
        BaseType,
        NamedType,
        PointerType,
        ArrayType,
        FuncProtoType,
        FuncPtrType,
        EnumRefType,
        CompositeRefType,
    ],
    PydanticField(discriminator="kind"),
]

for _model in (PointerType, ArrayType, Param, _Signature, FuncProtoType, FuncPtrType):
    _model.model_rebuild()


def type_refs(ctype: CType) -> set[int]:
    """Identities of every global a type refers to, looking through pointers and arrays."""
    if isinstance(ctype, (EnumRefType, CompositeRefType)):
        return {ctype.ref}
    if isinstance(ctype, NamedType):
        return {ctype.ref} if ctype.ref is not None else set()
    if isinstance(ctype, PointerType):
        return type_refs(ctype.pointee)
    if isinstance(ctype, ArrayType):
        return type_refs(ctype.element)
    if isinstance(ctype, (FuncProtoType, FuncPtrType)):
        refs = type_refs(ctype.ret)
        for arg in ctype.args:
            refs |= type_refs(arg.type)
        return refs
    return set()


def inner_ref(ctype: CType) -> CompositeRefType | EnumRefType | None:
    """The composite or enum a field type ultimately names, through pointers and arrays."""
    if isinstance(ctype, (CompositeRefType, EnumRefType)):
        return ctype
    if isinstance(ctype, PointerType):
        return inner_ref(ctype.pointee)
    if isinstance(ctype, ArrayType):
        return inner_ref(ctype.element)
    return None


# Globals


class _Global(BaseModel):
    name: Name

    @property
    def id(self) -> int:
        return self.name.id

    def __hash__(self):
        return hash(self.name.id)

    def __eq__(self, other):
        return isinstance(other, _Global) and self.name.id == other.name.id


class CompositeGlobal(_Global):
    kind: Literal["composite"] = "composite"
    location: Location
    composite_kind: CompositeKind
    layout: Layout = PydanticField(default_factory=Layout)


class EnumGlobal(_Global):
    kind: Literal["enum"] = "enum"
    location: Location


class TypedefGlobal(_Global):
    kind: Literal["typedef"] = "typedef"
    location: Location
    type: CType = PydanticField(default_factory=VoidType)


class VarGlobal(_Global):
    kind: Literal["var"] = "var"
    location: Location
    type: CType = PydanticField(default_factory=VoidType)
    is_const: bool = False


class FunctionGlobal(_Global):
    kind: Literal["function"] = "function"
    location: Location
    type: CType = PydanticField(default_factory=VoidType)


class BuiltinGlobal(_Global):
    """A declaration already bound elsewhere under an external name."""

    kind: Literal["builtin"] = "builtin"
    type: CType


Global = Annotated[
    Union[CompositeGlobal, EnumGlobal, TypedefGlobal, VarGlobal, FunctionGlobal, BuiltinGlobal],
    PydanticField(discriminator="kind"),
]

# Front-end cursor kind each variant is declared with; composites depend on their kind.
CURSOR_KINDS = {
    "enum": "ENUM_DECL",
    "typedef": "TYPEDEF_DECL",
    "var": "VAR_DECL",
    "function": "FUNCTION_DECL",
}


def cursor_kind_of(global_: Global) -> str | None:
    if isinstance(global_, CompositeGlobal):
        return "STRUCT_DECL" if global_.composite_kind is CompositeKind.STRUCT else "UNION_DECL"
    return CURSOR_KINDS.get(global_.kind)


# Members


class Field(BaseModel):
    kind: Literal["field"] = "field"
    name: str
    type: CType
    offset: int = 0  # bits
    owns: int | None = None  # nested declaration this field defines in place

    @property
    def byte_offset(self) -> int:
        return self.offset // 8


class Bitfield(BaseModel):
    kind: Literal["bitfield"] = "bitfield"
    name: str
    type: CType
    width: int
    offset: int = 0  # bits


Member = Annotated[Union[Field, Bitfield], PydanticField(discriminator="kind")]


class EnumItem(BaseModel):
    name: str
    value: int


class EnumItems(BaseModel):
    items: list[EnumItem] = PydanticField(default_factory=list)
    kind: BaseKind = BaseKind.INT


class Diagnostic(BaseModel):
    """A declaration that was skipped, and why."""

    severity: str = "warning"
    name: str
    location: Location | None = None
    message: str

    def __str__(self) -> str:
        where = f"{self.location}: " if self.location else ""
        return f"{where}{self.severity}: {self.name}: {self.message}"
