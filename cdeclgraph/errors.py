#!/usr/bin/env python3


class ExtractError(Exception):
    """Base class for every error raised while extracting declarations."""


class DeclarationError(ExtractError):
    """A condition scoped to the single declaration being processed.

    The orchestrator catches these per top-level declaration, records a
    diagnostic and carries on with the rest of the translation unit.
    """


class UnsupportedType(DeclarationError):
    """A C type without a representation in the type model."""

    def __init__(self, kind: str, message: str = ""):
        self.kind = kind
        super().__init__(message or f"Unsupported type kind: {kind}")


class NotFound(DeclarationError):
    """A reference to a declaration that was never registered, or was skipped."""

    def __init__(self, name: str, reason: str = "not registered"):
        self.name = name
        self.reason = reason
        super().__init__(f"Unresolved declaration {name!r}: {reason}")


class ClassificationError(ExtractError):
    """The front end handed us a cursor whose kind does not match its variant."""


class InvalidCompositeKind(ClassificationError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Composite cursor is neither struct nor union: {kind}")


class ParseError(ExtractError):
    """The front end reported errors; nothing is extracted."""

    def __init__(self, diagnostics: list[tuple[str, str]]):
        self.diagnostics = diagnostics
        errors = "\n".join(f"{severity}: {message}" for severity, message in diagnostics)
        super().__init__(f"Failed to parse translation unit:\n{errors}")


class SnapshotError(ExtractError):
    """A persisted globals snapshot could not be read back."""


class ConfigError(ExtractError):
    """An extraction configuration file is missing or invalid."""
