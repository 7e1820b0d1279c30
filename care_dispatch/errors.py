from __future__ import annotations


class CareDispatchError(Exception):
    """Base class for errors raised by the dispatch and triage core."""


class InvalidArgument(CareDispatchError, ValueError):
    """Caller input is malformed (bad coordinate, missing required field)."""


class DependencyError(CareDispatchError, RuntimeError):
    """The upstream data snapshot could not be obtained."""


class RecordNotFound(CareDispatchError, LookupError):
    pass


class DataIntegrityWarning(UserWarning):
    """A single record in a snapshot is malformed but was kept."""

    def __init__(self, message: str, *, record_id: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id
        self.field = field
