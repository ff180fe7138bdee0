"""
Error taxonomy for the generation pipeline.

Inside a run, field and image failures stop at their own boundary (a
failed FieldResult, a None image URL). GenerationError carries a field
failure to callers of single-field regeneration. SynthesisError and
PersistError reach the caller so the admin can retry exactly the piece
that failed.
"""

from typing import List, Optional


class StudioError(Exception):
    """Base class for pipeline errors."""


class GenerationError(StudioError):
    """A text field could not be generated."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class SynthesisError(StudioError):
    """Speech synthesis failed. The run cannot be persisted without audio."""


class PipelineBusyError(StudioError):
    """A run (or the same field) is already in flight for this draft."""


class UniqueConstraintError(StudioError):
    """Relational storage rejected a write on a unique key (Postgres 23505)."""

    def __init__(self, message: str, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint


class PersistError(StudioError):
    """
    Persisting a draft failed.

    kind is one of MISSING_FIELD, TIMEOUT or CONFLICT. No write was made
    for MISSING_FIELD and TIMEOUT.
    """

    MISSING_FIELD = "missing_field"
    TIMEOUT = "timeout"
    CONFLICT = "conflict"

    def __init__(self, kind: str, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.fields = fields or []

    @classmethod
    def missing(cls, fields: List[str]) -> "PersistError":
        return cls(cls.MISSING_FIELD, f"Missing required fields: {', '.join(fields)}", fields)

    @classmethod
    def timeout(cls, field: str, seconds: float) -> "PersistError":
        return cls(cls.TIMEOUT, f"Timed out after {seconds:.0f}s waiting for {field}", [field])

    @classmethod
    def conflict(cls, message: str) -> "PersistError":
        return cls(cls.CONFLICT, f"Record already exists: {message}")
