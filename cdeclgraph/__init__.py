"""cdeclgraph - canonical C declaration graphs for binding generators."""

from cdeclgraph.builtins import BuiltinEntry, DeclShape, load_snapshot, save_snapshot
from cdeclgraph.config import ExtractConfig
from cdeclgraph.errors import (
    ExtractError,
    InvalidCompositeKind,
    NotFound,
    ParseError,
    UnsupportedType,
)
from cdeclgraph.extract import ExtractResult, extract, extract_translation_unit, extract_with_config

__all__ = [
    "BuiltinEntry",
    "DeclShape",
    "ExtractConfig",
    "ExtractError",
    "ExtractResult",
    "InvalidCompositeKind",
    "NotFound",
    "ParseError",
    "UnsupportedType",
    "extract",
    "extract_translation_unit",
    "extract_with_config",
    "load_snapshot",
    "save_snapshot",
]
