"""
Async client for the vectorpipe line protocol.

Example:
    >>> async with VectorPipeClient() as client:
    ...     await client.initialize("Cats are mammals. Paris is a city.")
    ...     print(await client.search("Tell me about pets"))
"""

import asyncio
from pathlib import Path
from typing import Optional

from loguru import logger

from vectorpipe.config import get_settings
from vectorpipe.server.protocol import INITIALIZED_REPLY
from vectorpipe.server.transport import MAX_LINE_BYTES, LineChannel

UPDATE_TOKEN = "Update"


class VectorPipeClient:
    """Client for one vectorpipe session. One request is in flight at a time."""

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ):
        """
        Initialize the client.

        Args:
            socket_path: Local socket path (uses settings if not provided)
            host: TCP host, used together with ``port``
            port: TCP port; when set, TCP is used instead of the local socket
        """
        settings = get_settings()
        self.socket_path = Path(socket_path or settings.socket_path)
        self.host = host or settings.host
        self.port = port if port is not None else settings.port
        self._channel: Optional[LineChannel] = None

    async def __aenter__(self) -> "VectorPipeClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._channel is not None:
            return
        if self.port is not None:
            reader, writer = await asyncio.open_connection(
                self.host, self.port, limit=MAX_LINE_BYTES
            )
            logger.debug(f"Connected to {self.host}:{self.port}")
        else:
            reader, writer = await asyncio.open_unix_connection(
                str(self.socket_path), limit=MAX_LINE_BYTES
            )
            logger.debug(f"Connected to {self.socket_path}")
        self._channel = LineChannel(reader, writer)

    async def close(self) -> None:
        if self._channel is not None:
            await self._channel.close()
            self._channel = None

    async def _write(self, line: str) -> None:
        if self._channel is None:
            raise ConnectionError("Client is not connected")
        await self._channel.write_line(line)

    async def _read_reply(self) -> str:
        reply = await self._channel.read_line()
        if reply is None:
            raise ConnectionError("Server closed the channel")
        return reply

    async def send(self, line: str) -> str:
        """
        Send one line and wait for its reply.

        Args:
            line: A non-blank protocol line (blank lines get no reply)

        Returns:
            The reply line
        """
        if "\n" in line or "\r" in line:
            raise ValueError("Protocol lines cannot contain line breaks")
        await self._write(line)
        return await self._read_reply()

    async def initialize(self, text: str) -> str:
        reply = await self.send(text)
        if INITIALIZED_REPLY.rstrip(".") in reply:
            return INITIALIZED_REPLY
        return reply

    async def update(self, text: str) -> str:
        if "\n" in text or "\r" in text:
            raise ValueError("Protocol lines cannot contain line breaks")
        await self._write(UPDATE_TOKEN)
        await self._write(text)
        return await self._read_reply()

    async def search(self, query: str) -> str:
        return await self.send(query)
