#!/usr/bin/env python3

import json
import re
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from cdeclgraph.errors import ConfigError
from cdeclgraph.model import Global

CONFIG_FILENAME = "cdeclgraph.json"

TYPE_KINDS = {"composite", "enum", "typedef"}
DECL_KINDS = {"function", "var"}


class GlobalsSource(BaseModel):
    """A saved snapshot whose globals become builtins, named under `prefix`."""

    path: Path
    prefix: str = ""


class DeclFilter(BaseModel):
    """Include/exclude regular expressions matched against "<file>:<name>"."""

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)

    def matches(self, file: str, name: str) -> bool:
        subject = f"{file}:{name}"
        if any(re.search(pattern, subject) for pattern in self.exclude):
            return False
        if not self.include:
            return True
        return any(re.search(pattern, subject) for pattern in self.include)


class ExtractConfig(BaseModel):
    """Configuration for one extraction run."""

    # Front end invocation
    clang_args: list[str] = Field(default_factory=list)
    include_dirs: list[str] = Field(default_factory=list)
    defines: list[str] = Field(default_factory=list)

    # Builtin snapshots
    load_globals: list[GlobalsSource] = Field(default_factory=list)
    save_globals: Path | None = None

    # Output selection
    include_types: list[str] = Field(default_factory=list)
    exclude_types: list[str] = Field(default_factory=list)
    include_decls: list[str] = Field(default_factory=list)
    exclude_decls: list[str] = Field(default_factory=list)

    # Logging
    log_level: str = "warning"
    log_file: Path | None = None

    def invocation_args(self) -> list[str]:
        """Arguments handed to clang."""
        args = [f"-I{d}" for d in self.include_dirs]
        args += [f"-D{d}" for d in self.defines]
        return args + list(self.clang_args)

    def type_filter(self) -> DeclFilter:
        return DeclFilter(include=self.include_types, exclude=self.exclude_types)

    def decl_filter(self) -> DeclFilter:
        return DeclFilter(include=self.include_decls, exclude=self.exclude_decls)

    def selects(self, global_: Global) -> bool:
        """Whether a global passes the type or declaration filters for its kind."""
        location = getattr(global_, "location", None)
        file = location.file if location else ""
        if global_.kind in TYPE_KINDS:
            return self.type_filter().matches(file, global_.name.text)
        if global_.kind in DECL_KINDS:
            return self.decl_filter().matches(file, global_.name.text)
        return False

    @classmethod
    def load_from_file(cls, config_path: Path) -> "ExtractConfig":
        """Load configuration from a JSON file; relative paths resolve against its directory."""
        try:
            args = json.loads(config_path.read_text())
            data = cls.model_validate(args)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid configuration {config_path}: {e}") from e

        root = config_path.parent
        for source in data.load_globals:
            if not source.path.is_absolute():
                source.path = root / source.path
        if data.save_globals and not data.save_globals.is_absolute():
            data.save_globals = root / data.save_globals
        return data

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file."""
        config_path.write_text(self.model_dump_json(indent=2))

    @classmethod
    def find_config(cls, start_path: Path) -> Optional["ExtractConfig"]:
        """Find configuration by searching up the directory tree."""
        current = start_path.resolve()
        while current != current.parent:
            config_file = current / CONFIG_FILENAME
            if config_file.exists():
                return cls.load_from_file(config_file)
            current = current.parent
        return None
