"""
Exception hierarchy
===================
Every error raised on purpose by ragsync derives from RagSyncError so that
callers can catch the whole subsystem with one clause.
"""


class RagSyncError(Exception):
    """Base exception for all ragsync operations."""


class ConfigurationError(RagSyncError):
    """Invalid or missing backend parameters (raised at construction time)."""


class ChunkingError(RagSyncError, ValueError):
    """Invalid window arguments for the text splitter. Parse problems never raise; they fall back."""


class EmbeddingError(RagSyncError):
    """Embedding transport failure or a batch-size mismatch."""


class IndexBackendError(RagSyncError):
    """
    Vector store failure. The message always starts with the operation
    prefix, e.g. "Upsert failed: ..." or "Query failed: ...".
    """

    def __init__(self, operation: str, cause: BaseException | str):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class ServiceStateError(RagSyncError):
    """An operation was attempted in the wrong service state."""
