"""
Pydantic models shared by the store, the session protocol and the CLI.

Entries and session configuration are frozen: they are created once and
never mutated for the lifetime of the process.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EmbeddingBackend(str, Enum):
    """Embedding backend variants, selected once at startup."""

    LOCAL = "local"
    REMOTE_API = "remote_api"
    LOCAL_HTTP = "local_http"


class SessionState(str, Enum):
    """Session protocol states. Transitions only AWAITING_INIT -> READY."""

    AWAITING_INIT = "awaiting_init"
    READY = "ready"


class VectorEntry(BaseModel):
    """A stored text snippet and its embedding."""

    text: str = Field(description="Trimmed sentence as it was ingested")
    vector: tuple[float, ...] = Field(description="Embedding of the text")

    class Config:
        frozen = True

    @property
    def dimension(self) -> int:
        return len(self.vector)


class SessionConfig(BaseModel):
    """Search settings fixed from the startup arguments."""

    result_limit: int = Field(
        default=5, ge=1, description="Maximum number of matches per search"
    )
    similarity_threshold: float = Field(
        default=0.0,
        ge=0.0,
        description="Minimum cosine similarity for a match (0 disables filtering)",
    )

    class Config:
        frozen = True

    @property
    def filtering_enabled(self) -> bool:
        return self.similarity_threshold > 0


class StartupArgs(BaseModel):
    """Parsed positional startup arguments."""

    session: SessionConfig = Field(default_factory=SessionConfig)
    embedding_source: Optional[str] = Field(
        default=None,
        description="None for local embeddings, an http(s) URL or an API credential",
    )

    class Config:
        frozen = True


class SearchResult(BaseModel):
    """A scored match produced by the vector store."""

    text: str = Field(description="Matched entry text")
    score: float = Field(description="Cosine similarity against the query")
    position: int = Field(description="Insertion index of the entry in the store")
