"""
Exceptions raised by the review history pipeline.
"""


class HistoryPipelineError(Exception):
    """Base class for pipeline errors."""


class MalformedRecordError(HistoryPipelineError):
    """Raised when a raw record is missing a field required for identity or history."""

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        self.message = message
        super().__init__(f"[malformed_input] {field_name}: {message}")


class StorageUnavailableError(HistoryPipelineError):
    """Raised when the history table cannot be read or written. Fatal for the run."""


class SeedConflictError(HistoryPipelineError):
    """Raised when a seed run targets a history table that already holds rows."""

    def __init__(self, existing_rows: int):
        self.existing_rows = existing_rows
        super().__init__(
            f"History table already holds {existing_rows} rows; "
            "run incrementally or request a full refresh"
        )


class StorageRejectedError(HistoryPipelineError):
    """Raised when the history table refuses a value or statement. The transaction is rolled back."""
