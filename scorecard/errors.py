from __future__ import annotations


class ScorecardError(Exception):
    pass


class ValidationError(ScorecardError, ValueError):
    def __init__(self, message: str, metric_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.metric_id = metric_id


class NotFoundError(ScorecardError, LookupError):
    pass


class SchemaError(ScorecardError):
    pass


class ParseError(ScorecardError):
    pass


class StorageCorruption(ScorecardError):
    pass


class ImportInProgressError(ScorecardError):
    pass
