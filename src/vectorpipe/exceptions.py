"""
Exception hierarchy for vectorpipe.

Embedding failures are recoverable (ingestion skips the segment, search
returns no results); configuration errors end the process before the
session loop starts.
"""


class VectorPipeError(Exception):
    """Base class for all vectorpipe errors."""


class ConfigurationError(VectorPipeError):
    """The embedding source supplied at startup is missing or invalid."""


class EmbeddingError(VectorPipeError):
    """An embedding provider could not turn text into a vector."""


class InvalidTextError(EmbeddingError):
    """The text to embed was empty or blank."""


class EmbeddingAuthError(EmbeddingError):
    """The embedding endpoint rejected the credential (401/403)."""


class EmbeddingTransportError(EmbeddingError):
    """Network failure or timeout while calling the embedding endpoint."""


class EmbeddingProtocolError(EmbeddingError):
    """The endpoint answered, but not with a usable embedding payload."""


class LineTooLongError(VectorPipeError):
    """A protocol line exceeded the maximum line length and was discarded."""
