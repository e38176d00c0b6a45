"""Data models for vectorpipe."""

from .schema import (
    EmbeddingBackend,
    SearchResult,
    SessionConfig,
    SessionState,
    StartupArgs,
    VectorEntry,
)

__all__ = [
    "EmbeddingBackend",
    "SearchResult",
    "SessionConfig",
    "SessionState",
    "StartupArgs",
    "VectorEntry",
]
