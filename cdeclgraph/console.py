#!/usr/bin/env python3

import logging
from pathlib import Path

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.table import Table

from cdeclgraph.model import Diagnostic, Global

LOG_LEVELS = {
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class Console:
    """Simple console wrapper focused on output."""

    def __init__(self, stderr: bool = False):
        self._rich = RichConsole(stderr=stderr)

    def print(self, *args, **kwargs):
        """Print using Rich console."""
        return self._rich.print(*args, **kwargs)

    def print_globals(self, globals_: list[Global], title: str = "Extracted declarations"):
        table = Table(title=title)
        table.add_column("#", justify="right")
        table.add_column("kind")
        table.add_column("name")
        table.add_column("type")
        table.add_column("location")
        for global_ in globals_:
            location = getattr(global_, "location", None)
            kind = global_.kind
            if kind == "composite":
                kind = global_.composite_kind.value
            ctype = getattr(global_, "type", None)
            type_text = describe_type(ctype) if ctype is not None else ""
            table.add_row(str(global_.id), kind, str(global_.name), type_text, str(location or ""))
        self._rich.print(table)

    def print_diagnostics(self, diagnostics: list[Diagnostic]):
        for diagnostic in diagnostics:
            self._rich.print(str(diagnostic), style="yellow", markup=False)


def configure_logging(level: str = "warning", log_file: Path | None = None) -> None:
    """Route package logging to a rich handler, or to `log_file` without color."""
    if level not in LOG_LEVELS:
        raise ValueError(f"unknown log level {level}")
    if log_file is not None:
        handler: logging.Handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=RichConsole(stderr=True), show_path=False)
    logger = logging.getLogger("cdeclgraph")
    logger.handlers[:] = [handler]
    logger.setLevel(LOG_LEVELS[level])


def describe_type(ctype) -> str:
    """Short C-like rendering of a type for display."""
    kind = ctype.kind
    if kind == "void":
        return "void"
    if kind == "base":
        return ctype.base.value
    if kind == "named":
        return ctype.name
    if kind == "ptr":
        prefix = "const " if ctype.is_const else ""
        return f"{prefix}{describe_type(ctype.pointee)}*"
    if kind == "array":
        return f"{describe_type(ctype.element)}[{ctype.size or ''}]"
    if kind in ("funcproto", "funcptr"):
        args = ", ".join(describe_type(a.type) for a in ctype.args)
        if ctype.variadic:
            args = f"{args}, ..." if args else "..."
        star = "(*)" if kind == "funcptr" else ""
        return f"{describe_type(ctype.ret)} {star}({args})"
    return f"{kind}#{ctype.ref}"
