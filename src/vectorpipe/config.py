"""
Configuration management for vectorpipe.

Service settings come from environment variables (prefix ``VECTORPIPE_``)
with sensible defaults. Search settings and the embedding source come from
the positional startup arguments and are parsed leniently: anything absent
or unparsable falls back to its default.
"""

import tempfile
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv
from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings

from vectorpipe.exceptions import ConfigurationError
from vectorpipe.models.schema import EmbeddingBackend, SessionConfig, StartupArgs

# Load .env file if it exists
load_dotenv()

DEFAULT_RESULT_LIMIT = 5
DEFAULT_SIMILARITY_THRESHOLD = 0.0


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Channel Configuration
    socket_path: Path = Field(
        default=Path(tempfile.gettempdir()) / "VectorPipe.sock",
        description="Path of the local socket the server listens on",
    )
    host: str = Field(
        default="127.0.0.1", description="Bind address when a TCP port is used"
    )
    port: Optional[int] = Field(
        default=None,
        description="Listen on this localhost TCP port instead of the local socket",
    )

    # Embedding Configuration
    embedding_timeout: float = Field(
        default=30.0, description="Timeout in seconds for each embedding request", gt=0
    )
    local_embedding_dimension: int = Field(
        default=512, description="Dimension of the offline hashed embeddings", ge=1
    )
    remote_embedding_url: str = Field(
        default="https://api.openai.com/v1/embeddings",
        description="Hosted embeddings endpoint used with an API credential",
    )
    remote_embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Model requested from the hosted embeddings endpoint",
    )
    local_http_embedding_model: str = Field(
        default="text-embedding-nomic-embed-text-v1.5",
        description="Model requested from a self-hosted embeddings server",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_file: Optional[str] = Field(
        default=None, description="Path to log file (None = no file logging)"
    )

    class Config:
        env_prefix = "VECTORPIPE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings: The application settings.

    Raises:
        ConfigurationError: If an environment variable holds an invalid value.
    """
    global _settings
    if _settings is None:
        try:
            _settings = Settings()
        except Exception as e:
            raise ConfigurationError(f"Failed to load settings: {e}") from e
    return _settings


def reload_settings() -> Settings:
    """
    Reload settings from environment variables.

    Useful for testing or when environment variables change.

    Returns:
        Settings: The reloaded settings.
    """
    global _settings
    _settings = None
    return get_settings()


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.replace('"', "").strip()
    return value or None


def _parse_threshold(value: Optional[str]) -> float:
    value = _clean(value)
    if value is None:
        return DEFAULT_SIMILARITY_THRESHOLD
    try:
        threshold = float(value)
    except ValueError:
        logger.warning(f"Ignoring unparsable similarity threshold: {value!r}")
        return DEFAULT_SIMILARITY_THRESHOLD
    # nan and negative values have no meaning as a threshold
    if not threshold >= 0:
        logger.warning(f"Ignoring invalid similarity threshold: {value!r}")
        return DEFAULT_SIMILARITY_THRESHOLD
    return threshold


def _parse_limit(value: Optional[str]) -> int:
    value = _clean(value)
    if value is None:
        return DEFAULT_RESULT_LIMIT
    try:
        limit = int(value)
    except ValueError:
        logger.warning(f"Ignoring unparsable result limit: {value!r}")
        return DEFAULT_RESULT_LIMIT
    if limit < 1:
        logger.warning(f"Ignoring invalid result limit: {value!r}")
        return DEFAULT_RESULT_LIMIT
    return limit


def parse_startup_args(args: Sequence[Optional[str]]) -> StartupArgs:
    """
    Parse the positional startup arguments.

    Order is threshold, result limit, embedding source. Missing trailing
    arguments and unparsable values fall back to the defaults.

    Args:
        args: Raw argument strings (None entries are treated as absent)

    Returns:
        StartupArgs with the session configuration and embedding source
    """
    padded = list(args) + [None] * (3 - len(args))
    threshold, limit, source = padded[:3]

    startup = StartupArgs(
        session=SessionConfig(
            similarity_threshold=_parse_threshold(threshold),
            result_limit=_parse_limit(limit),
        ),
        embedding_source=_clean(source),
    )
    logger.debug(
        f"Startup args: threshold={startup.session.similarity_threshold}, "
        f"limit={startup.session.result_limit}, "
        f"backend={select_backend(startup.embedding_source).value}"
    )
    return startup


def select_backend(source: Optional[str]) -> EmbeddingBackend:
    """
    Classify an embedding source string.

    Args:
        source: None/blank, an http(s) URL, or an API credential

    Returns:
        The embedding backend the source selects
    """
    source = _clean(source)
    if source is None:
        return EmbeddingBackend.LOCAL
    if source.lower().startswith("http"):
        return EmbeddingBackend.LOCAL_HTTP
    return EmbeddingBackend.REMOTE_API


def derive_embeddings_url(url: str) -> str:
    """
    Derive the embeddings endpoint of a self-hosted inference server.

    ``http://host:1234`` and ``http://host:1234/v1/models`` both become
    ``http://host:1234/v1/embeddings``; a URL already ending in
    ``/embeddings`` is kept as is.

    Args:
        url: URL given as the embedding source

    Returns:
        Absolute URL of the embeddings endpoint

    Raises:
        ConfigurationError: If the URL has no http(s) scheme, no host or a bad port
    """
    parts = urlsplit(url.strip())
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(f"Invalid embeddings server URL: {url!r}")
    try:
        parts.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid embeddings server URL: {url!r} ({e})") from e

    path = parts.path.rstrip("/")
    if path.endswith("/embeddings"):
        pass
    elif "/v1" in path.split("/"):
        segments = path.split("/")
        path = "/".join(segments[: segments.index("v1") + 1]) + "/embeddings"
    else:
        path = "/v1/embeddings"

    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))
