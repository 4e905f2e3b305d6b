#!/usr/bin/env python3

import tempfile
from pathlib import Path

import pytest

from cdeclgraph.extract import ExtractResult, extract
from cdeclgraph.model import type_refs


def extract_code(code: str, filename: str = "test.c", **kwargs) -> ExtractResult:
    """Extract an in-memory C snippet."""
    return extract(filename, args=["-std=c11"], code=code, **kwargs)


def assert_refs_listed(result: ExtractResult):
    """Every identity referenced from a type or member is a listed global."""
    listed = {g.id for g in result.declarations}
    for global_ in result.declarations:
        refs = type_refs(global_.type) if hasattr(global_, "type") else set()
        for member in result.members.get(global_.id, []):
            refs |= type_refs(member.type)
        assert refs <= listed, f"{global_.name} references unlisted {refs - listed}"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for sources, snapshots and configs."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)
