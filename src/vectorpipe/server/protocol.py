"""
Session protocol state machine.

The first non-blank line initializes the store. After that, the command
token ``Update`` (any case) makes the next line an update payload, and any
other non-blank line is a search query. Every handled line produces exactly
one reply line; blank lines produce none.
"""

from typing import Awaitable, Callable, Optional

from loguru import logger

from vectorpipe.core.store import VectorStore, split_sentences
from vectorpipe.models.schema import SessionConfig, SessionState

UPDATE_COMMAND = "update"

INITIALIZED_REPLY = "Vector database initialized."
UPDATED_REPLY = "Vector database updated."
NO_TEXT_REPLY = "No text provided."
NO_RESULTS_REPLY = "No results."
SEARCH_ERROR_REPLY = "Error during search."
NOT_INITIALIZED_REPLY = "Database not initialized."

_TRAILING_PUNCTUATION = ".,;:!? \t"

LineReader = Callable[[], Awaitable[Optional[str]]]


def format_results(texts: list[str]) -> str:
    """
    Join matches into one reply line, each ending with a single period.

    Args:
        texts: Matched texts, best first

    Returns:
        The reply line, or the no-results sentinel when there are no matches
    """
    sentences = []
    for text in texts:
        text = text.rstrip(_TRAILING_PUNCTUATION)
        if text:
            sentences.append(f"{text}.")
    if not sentences:
        return NO_RESULTS_REPLY
    return " ".join(sentences)


class Session:
    """
    One client session over a vector store.

    Owns the store and the state; built once per accepted connection.
    """

    def __init__(self, store: VectorStore, config: SessionConfig):
        self.store = store
        self.config = config
        self.state = SessionState.AWAITING_INIT

    @property
    def ready(self) -> bool:
        return self.state is SessionState.READY

    async def handle_line(self, line: str, read_line: LineReader) -> Optional[str]:
        """
        Interpret one incoming line.

        Args:
            line: The line as received, without its terminator
            read_line: Reads the next line from the channel (None at EOF);
                used to fetch the payload of an ``Update`` command

        Returns:
            The reply line, or None when no reply is due (blank line, or
            the channel closed before an update payload arrived)
        """
        if not line.strip():
            return None

        if self.state is SessionState.AWAITING_INIT:
            # Before init every line is content, including "Update"
            return await self.initialize(line)

        if line.strip().lower() == UPDATE_COMMAND:
            payload = await read_line()
            if payload is None:
                logger.warning("Channel closed before update payload arrived")
                return None
            return await self.update(payload)

        return await self.search(line)

    async def initialize(self, payload: str) -> str:
        if not split_sentences(payload):
            logger.warning("Init payload holds no text; still awaiting init")
            return NO_TEXT_REPLY

        added = await self.store.ingest(payload)
        self.state = SessionState.READY
        logger.success(f"Vector database initialized with {added} entries")
        return INITIALIZED_REPLY

    async def update(self, payload: str) -> str:
        if not self.ready:
            return NOT_INITIALIZED_REPLY
        if not split_sentences(payload):
            logger.info("Update received without text")
            return NO_TEXT_REPLY

        added = await self.store.ingest(payload)
        logger.success(f"Vector database updated: +{added} entries, {len(self.store)} total")
        return UPDATED_REPLY

    async def search(self, query: str) -> str:
        if not self.ready:
            return NOT_INITIALIZED_REPLY

        try:
            texts = await self.store.search(
                query.strip(),
                limit=self.config.result_limit,
                threshold=self.config.similarity_threshold,
            )
        except Exception as e:
            logger.exception(f"Search failed: {e}")
            return SEARCH_ERROR_REPLY

        return format_results(texts)
