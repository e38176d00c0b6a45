"""Tests for the session protocol state machine."""

import pytest

from vectorpipe.core.store import VectorStore
from vectorpipe.models.schema import SessionConfig, SessionState
from vectorpipe.server.protocol import (
    INITIALIZED_REPLY,
    NO_RESULTS_REPLY,
    NO_TEXT_REPLY,
    NOT_INITIALIZED_REPLY,
    SEARCH_ERROR_REPLY,
    UPDATED_REPLY,
    Session,
    format_results,
)


def _reader(*lines):
    """Return a read_line callable yielding ``lines`` then None (EOF)."""
    pending = list(lines)

    async def read_line():
        return pending.pop(0) if pending else None

    return read_line


@pytest.fixture
def session(fake_provider):
    return Session(VectorStore(fake_provider), SessionConfig(result_limit=3))


async def test_starts_awaiting_init(session):
    assert session.state is SessionState.AWAITING_INIT
    assert not session.ready


async def test_first_line_initializes(session):
    reply = await session.handle_line("Cats are mammals. Paris is a city.", _reader())

    assert reply == INITIALIZED_REPLY
    assert session.state is SessionState.READY
    assert len(session.store) == 2


async def test_blank_lines_get_no_reply(session):
    assert await session.handle_line("", _reader()) is None
    assert await session.handle_line("   ", _reader()) is None
    assert session.state is SessionState.AWAITING_INIT

    await session.handle_line("Cats are mammals.", _reader())
    assert await session.handle_line(" ", _reader()) is None
    assert session.state is SessionState.READY


async def test_init_without_text_stays_awaiting_init(session):
    reply = await session.handle_line(". . .", _reader())

    assert reply == NO_TEXT_REPLY
    assert session.state is SessionState.AWAITING_INIT
    assert len(session.store) == 0


async def test_update_as_first_line_is_init_content(local_provider):
    session = Session(VectorStore(local_provider), SessionConfig())
    read_line = _reader("should not be consumed")

    reply = await session.handle_line("Update", read_line)

    assert reply == INITIALIZED_REPLY
    assert [entry.text for entry in session.store] == ["Update"]
    assert await read_line() == "should not be consumed"


@pytest.mark.parametrize("command", ["Update", "update", "UPDATE", "  uPdAtE "])
async def test_update_reads_payload_line(session, command):
    await session.handle_line("Cats are mammals.", _reader())

    reply = await session.handle_line(command, _reader("Dogs are mammals. Birds can fly."))

    assert reply == UPDATED_REPLY
    assert [entry.text for entry in session.store] == [
        "Cats are mammals",
        "Dogs are mammals",
        "Birds can fly",
    ]


async def test_update_with_blank_payload_leaves_store_unchanged(session):
    await session.handle_line("Cats are mammals. Dogs are mammals.", _reader())
    before = session.store.entries

    reply = await session.handle_line("Update", _reader(""))

    assert reply == NO_TEXT_REPLY
    assert session.store.entries == before
    assert session.state is SessionState.READY


async def test_update_at_end_of_stream_gets_no_reply(session):
    await session.handle_line("Cats are mammals.", _reader())

    assert await session.handle_line("Update", _reader()) is None
    assert len(session.store) == 1


async def test_search_reply_is_period_joined(session):
    await session.handle_line("Paris is a city. Dogs are mammals. Cats are mammals.", _reader())

    reply = await session.handle_line("Tell me about pets", _reader())

    assert reply == "Cats are mammals. Dogs are mammals. Paris is a city."


async def test_search_with_threshold(fake_provider):
    session = Session(
        VectorStore(fake_provider), SessionConfig(result_limit=5, similarity_threshold=0.5)
    )
    await session.handle_line("Paris is a city. Cats are mammals.", _reader())

    assert await session.handle_line("Tell me about pets", _reader()) == "Cats are mammals."
    assert await session.handle_line("Capital of France", _reader()) == "Paris is a city."


async def test_search_without_matches_returns_sentinel(fake_provider):
    session = Session(
        VectorStore(fake_provider), SessionConfig(result_limit=5, similarity_threshold=0.9)
    )
    await session.handle_line("Birds can fly.", _reader())

    assert await session.handle_line("Capital of France", _reader()) == NO_RESULTS_REPLY


async def test_query_embedding_failure_returns_sentinel(session):
    await session.handle_line("Cats are mammals.", _reader())

    assert await session.handle_line("unknown query", _reader()) == NO_RESULTS_REPLY
    assert session.state is SessionState.READY


async def test_unexpected_search_error_keeps_session_ready(session, monkeypatch):
    await session.handle_line("Cats are mammals.", _reader())

    async def broken_search(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(session.store, "search", broken_search)

    assert await session.handle_line("Tell me about pets", _reader()) == SEARCH_ERROR_REPLY
    assert session.state is SessionState.READY

    monkeypatch.undo()
    assert await session.handle_line("Tell me about pets", _reader()) == "Cats are mammals."


async def test_search_and_update_before_init_are_rejected(session):
    assert await session.search("Tell me about pets") == NOT_INITIALIZED_REPLY
    assert await session.update("Cats are mammals.") == NOT_INITIALIZED_REPLY
    assert session.state is SessionState.AWAITING_INIT
    assert len(session.store) == 0


@pytest.mark.parametrize(
    "texts, expected",
    [
        ([], NO_RESULTS_REPLY),
        (["A"], "A."),
        (["A", "B"], "A. B."),
        (["Really?!", "Done...", "trailing space  "], "Really. Done. trailing space."),
        (["..."], NO_RESULTS_REPLY),
    ],
)
def test_format_results(texts, expected):
    assert format_results(texts) == expected
