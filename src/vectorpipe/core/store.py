"""
In-memory vector store.

Holds (text, vector) entries in insertion order. Ingestion splits raw text
into sentences and embeds each one; a sentence that fails to embed is
logged and skipped without aborting the batch.
"""

from typing import Iterator

from loguru import logger

from vectorpipe.core.embeddings import EmbeddingProvider
from vectorpipe.core.similarity import rank
from vectorpipe.exceptions import EmbeddingError
from vectorpipe.models.schema import SearchResult, VectorEntry

SENTENCE_DELIMITER = "."


def split_sentences(raw_input: str) -> list[str]:
    """
    Split raw text on periods into trimmed, non-empty segments.

    Args:
        raw_input: Text such as ``"A. B. C."``

    Returns:
        Segments in order, e.g. ``["A", "B", "C"]``
    """
    if not raw_input:
        return []
    segments = (segment.strip() for segment in raw_input.split(SENTENCE_DELIMITER))
    return [segment for segment in segments if segment]


class VectorStore:
    """
    Ordered, append-only collection of embedded sentences.

    The store owns its provider, so every entry has the same dimension.
    Insertion order is only used to break ties between equal scores.
    """

    def __init__(self, provider: EmbeddingProvider):
        self.provider = provider
        self._entries: list[VectorEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[VectorEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> tuple[VectorEntry, ...]:
        return tuple(self._entries)

    async def ingest(self, raw_input: str) -> int:
        """
        Embed and append every sentence of ``raw_input``.

        Args:
            raw_input: Period-delimited text

        Returns:
            Number of entries added
        """
        segments = split_sentences(raw_input)
        added = 0

        for segment in segments:
            try:
                vector = await self.provider.embed(segment)
            except EmbeddingError as e:
                logger.warning(f"Skipping segment '{segment[:50]}': {e}")
                continue

            self._entries.append(VectorEntry(text=segment, vector=tuple(vector)))
            added += 1
            logger.debug(f"Stored entry #{len(self._entries)}: '{segment[:50]}'")

        skipped = len(segments) - added
        logger.info(
            f"Ingested {added}/{len(segments)} segments"
            + (f" ({skipped} skipped)" if skipped else "")
            + f", store size {len(self._entries)}"
        )
        return added

    async def rank(self, query: str, limit: int, threshold: float = 0.0) -> list[SearchResult]:
        """
        Score every entry against the query.

        Args:
            query: Search text
            limit: Maximum number of results
            threshold: Minimum similarity; 0 disables filtering

        Returns:
            Scored results, best first; empty if the store is empty or the
            query could not be embedded
        """
        if not self._entries:
            logger.debug("Search on empty store")
            return []

        try:
            query_vector = await self.provider.embed(query)
        except EmbeddingError as e:
            logger.warning(f"Query embedding failed: {e}")
            return []

        results = rank(query_vector, self._entries, limit, threshold)
        if results:
            logger.debug(
                f"Search '{query[:50]}' matched {len(results)} entries "
                f"(top score: {results[0].score:.3f})"
            )
        else:
            logger.debug(f"Search '{query[:50]}' matched nothing")
        return results

    async def search(self, query: str, limit: int, threshold: float = 0.0) -> list[str]:
        """
        Return the texts of the best matches for ``query``.

        Args:
            query: Search text
            limit: Maximum number of results
            threshold: Minimum similarity; 0 disables filtering

        Returns:
            Matched texts, best match first
        """
        return [result.text for result in await self.rank(query, limit, threshold)]
