"""
Embedding providers: offline hashed bag-of-words, a hosted embeddings API,
and a self-hosted OpenAI-compatible embeddings server.

One provider is chosen at startup by ``create_embedding_provider`` and used
for every entry of a store, so all vectors share one dimension.
"""

import hashlib
import re
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from loguru import logger

from vectorpipe.config import Settings, derive_embeddings_url, get_settings, select_backend
from vectorpipe.exceptions import (
    ConfigurationError,
    EmbeddingAuthError,
    EmbeddingProtocolError,
    EmbeddingTransportError,
    InvalidTextError,
)
from vectorpipe.models.schema import EmbeddingBackend

_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


class EmbeddingProvider(ABC):
    """Turns a non-empty text into a fixed-dimension vector."""

    backend: EmbeddingBackend

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Args:
            text: Non-empty text to embed

        Returns:
            The embedding vector

        Raises:
            EmbeddingError: If the text is blank or the backend call fails
        """

    @staticmethod
    def _check_text(text: str) -> str:
        if text is None or not text.strip():
            raise InvalidTextError("Cannot embed empty text")
        return text.strip()


class LocalEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic offline embeddings.

    Lower-cased word tokens are hashed into a fixed number of buckets and
    counted (term frequency). No model download and no network; the same
    text always gives the same vector.
    """

    backend = EmbeddingBackend.LOCAL

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension or get_settings().local_embedding_dimension
        logger.info(f"Using local hashed embeddings ({self.dimension} dims)")

    def _bucket(self, token: str) -> int:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") % self.dimension

    def embed_sync(self, text: str) -> list[float]:
        text = self._check_text(text)
        vector = [0.0] * self.dimension
        for token in _TOKEN_PATTERN.findall(text.lower()):
            vector[self._bucket(token)] += 1.0
        return vector

    async def embed(self, text: str) -> list[float]:
        return self.embed_sync(text)


class HTTPEmbeddingProvider(EmbeddingProvider):
    """
    Client for OpenAI-compatible ``/embeddings`` endpoints.

    Sends ``{"model": ..., "input": text}`` and reads
    ``data[0].embedding`` from the response. Every request is bounded by
    the configured timeout; nothing is retried.
    """

    def __init__(
        self,
        url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            url: Absolute URL of the embeddings endpoint
            model: Model name sent with every request
            api_key: Bearer credential (None for unauthenticated servers)
            timeout: Request timeout in seconds (uses settings if not provided)
            transport: Optional httpx transport, used by tests
        """
        self.url = url
        self.model = model
        self.api_key = api_key
        self.timeout = timeout or get_settings().embedding_timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def embed(self, text: str) -> list[float]:
        text = self._check_text(text)
        payload = {"model": self.model, "input": text}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            raise EmbeddingTransportError(
                f"Embedding request timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingTransportError(f"Embedding request failed: {e}") from e
        except Exception as e:
            # Out-of-range ports and non-ASCII header values fail outside
            # httpx's error types, sometimes wrapped in an exception group
            raise EmbeddingTransportError(f"Embedding request could not be sent: {e}") from e

        if response.status_code in (401, 403):
            raise EmbeddingAuthError(
                f"Embedding endpoint rejected credentials (HTTP {response.status_code})"
            )
        if not response.is_success:
            raise EmbeddingProtocolError(
                f"Embedding endpoint returned HTTP {response.status_code}"
            )

        return self._parse_vector(response)

    def _parse_vector(self, response: httpx.Response) -> list[float]:
        try:
            data = response.json()
            vector = data["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingProtocolError(
                "Embedding response is missing data[0].embedding"
            ) from e

        if not isinstance(vector, list) or not vector:
            raise EmbeddingProtocolError("Embedding response holds no vector")
        try:
            return [float(value) for value in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingProtocolError("Embedding vector is not numeric") from e


class RemoteAPIEmbeddingProvider(HTTPEmbeddingProvider):
    """Hosted embeddings API authenticated with a bearer credential."""

    backend = EmbeddingBackend.REMOTE_API

    def __init__(
        self,
        api_key: str,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        if not api_key or not api_key.isascii() or any(ch.isspace() for ch in api_key):
            raise ConfigurationError("Invalid embeddings API credential")

        super().__init__(
            url=settings.remote_embedding_url,
            model=settings.remote_embedding_model,
            api_key=api_key,
            timeout=settings.embedding_timeout,
            transport=transport,
        )
        logger.info(f"Using hosted embeddings: {self.model} at {self.url}")


class LocalHTTPEmbeddingProvider(HTTPEmbeddingProvider):
    """Self-hosted inference server; no credential is sent."""

    backend = EmbeddingBackend.LOCAL_HTTP

    def __init__(
        self,
        base_url: str,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        super().__init__(
            url=derive_embeddings_url(base_url),
            model=settings.local_http_embedding_model,
            api_key=None,
            timeout=settings.embedding_timeout,
            transport=transport,
        )
        logger.info(f"Using self-hosted embeddings: {self.model} at {self.url}")


def create_embedding_provider(
    source: Optional[str],
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> EmbeddingProvider:
    """
    Build the provider selected by the startup embedding source.

    Args:
        source: None for local embeddings, an http(s) URL, or an API credential
        settings: Optional settings (uses the global settings if not provided)
        transport: Optional httpx transport for the HTTP providers

    Returns:
        The embedding provider

    Raises:
        ConfigurationError: If the source is an invalid URL or credential
    """
    settings = settings or get_settings()
    backend = select_backend(source)

    if backend is EmbeddingBackend.LOCAL:
        return LocalEmbeddingProvider(settings.local_embedding_dimension)
    if backend is EmbeddingBackend.LOCAL_HTTP:
        return LocalHTTPEmbeddingProvider(source.strip(), settings, transport)
    return RemoteAPIEmbeddingProvider(source.strip(), settings, transport)
