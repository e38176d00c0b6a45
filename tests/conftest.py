"""Shared fixtures for the vectorpipe test suite."""

import shutil
import tempfile
from pathlib import Path

import pytest

from vectorpipe.config import Settings
from vectorpipe.core.embeddings import EmbeddingProvider, LocalEmbeddingProvider
from vectorpipe.exceptions import EmbeddingTransportError, InvalidTextError
from vectorpipe.models.schema import EmbeddingBackend


class FakeProvider(EmbeddingProvider):
    """Provider with fixed vectors per text; unknown texts fail to embed."""

    backend = EmbeddingBackend.LOCAL

    def __init__(self, vectors: dict[str, list[float]]):
        self.vectors = vectors
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if not text.strip():
            raise InvalidTextError("Cannot embed empty text")
        if text not in self.vectors:
            raise EmbeddingTransportError(f"no vector for {text!r}")
        return list(self.vectors[text])


@pytest.fixture
def short_tmp():
    # Unix socket paths are limited to ~100 characters
    path = Path(tempfile.mkdtemp(prefix="vp"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def settings(short_tmp) -> Settings:
    return Settings(socket_path=short_tmp / "vp.sock", local_embedding_dimension=64)


@pytest.fixture
def local_provider() -> LocalEmbeddingProvider:
    return LocalEmbeddingProvider(dimension=256)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider(
        {
            "Cats are mammals": [1.0, 0.0, 0.0],
            "Dogs are mammals": [0.9, 0.1, 0.0],
            "Paris is a city": [0.0, 0.0, 1.0],
            "Tell me about pets": [1.0, 0.05, 0.0],
            "Capital of France": [0.0, 0.1, 1.0],
            "Birds can fly": [0.0, 1.0, 0.0],
        }
    )
