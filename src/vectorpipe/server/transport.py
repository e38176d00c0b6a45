"""
Transport loop: accept one connection and serve the session over it.

Listens on a local (Unix domain) socket, or on a localhost TCP port when
one is configured. Exactly one client is served; the session ends when that
client disconnects. Requests are handled strictly one at a time.
"""

import asyncio
from pathlib import Path
from typing import Optional

from loguru import logger

from vectorpipe.config import Settings, get_settings
from vectorpipe.core.embeddings import EmbeddingProvider, create_embedding_provider
from vectorpipe.core.store import VectorStore
from vectorpipe.exceptions import ConfigurationError, LineTooLongError
from vectorpipe.models.schema import StartupArgs
from vectorpipe.server.protocol import Session

ENCODING = "utf-8"
# Init payloads can be whole documents on one line
MAX_LINE_BYTES = 16 * 1024 * 1024
READ_CHUNK_BYTES = 64 * 1024

LINE_TOO_LONG_REPLY = "Error: line too long."


def decode_line(raw: bytes) -> Optional[str]:
    """Decode a raw line; None means end of stream."""
    if not raw:
        return None
    return raw.decode(ENCODING, errors="replace").rstrip("\r\n")


class LineChannel:
    """
    Line-oriented wrapper around an asyncio stream pair.

    Lines longer than ``MAX_LINE_BYTES`` are discarded up to their
    terminator and reported with ``LineTooLongError``; the stream stays
    usable for the following lines.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self._buffer = bytearray()
        self._discarding = False

    async def read_line(self) -> Optional[str]:
        """
        Read the next line.

        Returns:
            The line without its terminator, or None at end of stream

        Raises:
            LineTooLongError: If the line exceeded ``MAX_LINE_BYTES``
        """
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                raw = bytes(self._buffer[: newline + 1])
                del self._buffer[: newline + 1]
                if self._discarding or len(raw) - 1 > MAX_LINE_BYTES:
                    self._discarding = False
                    raise LineTooLongError(f"Line exceeds {MAX_LINE_BYTES} bytes")
                return decode_line(raw)

            if len(self._buffer) > MAX_LINE_BYTES:
                # Keep reading until the terminator, but drop the bytes
                self._discarding = True
                self._buffer.clear()

            try:
                chunk = await self.reader.read(READ_CHUNK_BYTES)
            except ConnectionError:
                chunk = b""
            if not chunk:
                # A final unterminated line still counts
                raw = bytes(self._buffer)
                self._buffer.clear()
                if self._discarding:
                    self._discarding = False
                    return None
                return decode_line(raw)
            self._buffer.extend(chunk)

    async def write_line(self, line: str) -> None:
        self.writer.write(f"{line}\n".encode(ENCODING))
        await self.writer.drain()

    async def close(self) -> None:
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            pass


async def run_session(session: Session, channel: LineChannel) -> None:
    """
    Drive a session until the channel closes.

    An overlong line (command or update payload) gets an error reply and
    leaves the session state unchanged.

    Args:
        session: The session protocol state machine
        channel: The accepted connection
    """
    while True:
        try:
            line = await channel.read_line()
            if line is None:
                logger.info("Client disconnected")
                return
            reply = await session.handle_line(line, channel.read_line)
        except LineTooLongError as e:
            logger.warning(f"Discarded input: {e}")
            reply = LINE_TOO_LONG_REPLY

        if reply is not None:
            await channel.write_line(reply)


class VectorPipeServer:
    """
    Single-connection server for one vector database session.

    The embedding provider is built only after the client connects, so an
    invalid embedding source can be reported over the channel.
    """

    def __init__(
        self,
        startup: StartupArgs,
        settings: Optional[Settings] = None,
        provider: Optional[EmbeddingProvider] = None,
    ):
        """
        Initialize the server.

        Args:
            startup: Parsed startup arguments
            settings: Optional settings (uses the global settings if not provided)
            provider: Optional ready-made provider, overriding the startup source
        """
        self.startup = startup
        self.settings = settings or get_settings()
        self.provider = provider
        self.session: Optional[Session] = None
        self._accepted = False
        self._done: Optional[asyncio.Future] = None
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def address(self) -> str:
        if self.settings.port is not None:
            return f"{self.settings.host}:{self.settings.port}"
        return str(self.settings.socket_path)

    async def start(self) -> None:
        """Start listening. Raises OSError if the channel cannot be created."""
        self._done = asyncio.get_running_loop().create_future()

        if self.settings.port is not None:
            self._server = await asyncio.start_server(
                self._on_connect,
                host=self.settings.host,
                port=self.settings.port,
            )
        else:
            socket_path = Path(self.settings.socket_path)
            socket_path.unlink(missing_ok=True)
            self._server = await asyncio.start_unix_server(
                self._on_connect, path=str(socket_path)
            )

        logger.info("Vector database server is running...")
        logger.info(f"Waiting for a client on {self.address}")

    async def wait(self) -> int:
        """
        Wait until the session ends.

        Returns:
            Process exit code: 0 after a normal disconnect, 1 after a
            configuration error
        """
        try:
            return await self._done
        finally:
            await self.stop()

    async def serve(self) -> int:
        await self.start()
        return await self.wait()

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            self._server = None
        if self.settings.port is None:
            Path(self.settings.socket_path).unlink(missing_ok=True)

    def _finish(self, exit_code: int) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(exit_code)

    def _fail(self, error: BaseException) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_exception(error)

    def _build_session(self) -> Session:
        provider = self.provider or create_embedding_provider(
            self.startup.embedding_source, self.settings
        )
        return Session(VectorStore(provider), self.startup.session)

    async def _on_connect(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        channel = LineChannel(reader, writer)
        if self._accepted:
            logger.warning("Rejecting additional connection; a session is active")
            await channel.close()
            return

        self._accepted = True
        # Stop listening; only one client is ever served
        if self._server is not None:
            self._server.close()
        logger.success("Client connected")

        try:
            try:
                self.session = self._build_session()
            except ConfigurationError as e:
                logger.error(f"Configuration error: {e}")
                await channel.write_line(f"Configuration error: {e}")
                self._finish(1)
                return

            await run_session(self.session, channel)
            self._finish(0)
        except ConnectionError as e:
            logger.info(f"Client connection lost: {e}")
            self._finish(0)
        except asyncio.CancelledError:
            self._finish(0)
            raise
        except Exception as e:
            logger.exception(f"Session ended with a transport error: {e}")
            self._fail(e)
        finally:
            await channel.close()


async def serve(startup: StartupArgs, settings: Optional[Settings] = None) -> int:
    """
    Run one vector database session and return the exit code.

    Args:
        startup: Parsed startup arguments
        settings: Optional settings (uses the global settings if not provided)

    Returns:
        0 when the client disconnected, 1 on configuration error
    """
    server = VectorPipeServer(startup, settings)
    return await server.serve()
