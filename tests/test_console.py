#!/usr/bin/env python3

import logging

import pytest

from cdeclgraph.console import configure_logging, describe_type
from cdeclgraph.model import (
    ArrayType,
    BaseKind,
    BaseType,
    CompositeRefType,
    FuncPtrType,
    NamedType,
    Param,
    PointerType,
    VoidType,
)


def test_describe_type():
    char = BaseType(base=BaseKind.CHAR)
    assert describe_type(VoidType()) == "void"
    assert describe_type(PointerType(pointee=char, is_const=True)) == "const char*"
    assert describe_type(ArrayType(element=char, size=0)) == "char[]"
    assert describe_type(ArrayType(element=char, size=4)) == "char[4]"
    assert describe_type(NamedType(name="size_t", ref=3)) == "size_t"
    assert describe_type(CompositeRefType(ref=7)) == "composite#7"

    fn = FuncPtrType(ret=VoidType(), args=[Param(name="fmt", type=char)], variadic=True)
    assert describe_type(fn) == "void (*)(char, ...)"


def test_configure_logging_to_file(temp_dir):
    log_file = temp_dir / "run.log"
    configure_logging("debug", log_file)

    logging.getLogger("cdeclgraph.extract").debug("hello from the test")
    for handler in logging.getLogger("cdeclgraph").handlers:
        handler.flush()

    assert "hello from the test" in log_file.read_text()
    configure_logging("warning")


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        configure_logging("verbose")
