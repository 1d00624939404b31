"""Transports carry JSON-RPC text frames between the client and a server.

The client only needs three operations: send a frame, receive the next
frame (None once the peer is gone) and close. StdioTransport runs the
language server as a subprocess and speaks Content-Length framing over its
stdin/stdout. WebSocketTransport connects to a server that is already running
and carries one JSON-RPC message per text frame.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

import websockets
from websockets.exceptions import ConnectionClosed

from editor_lsp.lsp.errors import TransportClosedError
from editor_lsp.lsp.protocol import JSONRPCProtocol
from editor_lsp.utils.logging_utils import Logger


class Transport(ABC):
    """Message-oriented, bidirectional channel to a language server."""

    @abstractmethod
    async def send(self, frame: str) -> None:
        """Send one frame; raises TransportClosedError once closed."""

    @abstractmethod
    async def receive(self) -> Optional[str]:
        """Return the next inbound frame, or None when the channel is closed."""

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        ...


class StdioTransport(Transport):
    """Runs a language server subprocess and talks to it over stdin/stdout."""

    def __init__(
        self,
        command: Sequence[str],
        cwd: Optional[str] = None,
        shutdown_timeout: float = 5.0,
    ):
        """Initialize the transport.

        Args:
            command: Server executable and its arguments
            cwd: Working directory for the server process
            shutdown_timeout: Seconds to wait for the process before killing it
        """
        self.command: List[str] = list(command)
        self.cwd = Path(cwd) if cwd else None
        self.shutdown_timeout = shutdown_timeout
        self.process: Optional[asyncio.subprocess.Process] = None
        self.protocol = JSONRPCProtocol()
        self._frames: List[str] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self):
        """Start the server process."""
        if self.process is not None:
            return  # already running

        self.process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            cwd=str(self.cwd) if self.cwd else None,
        )
        Logger.instance().info(f"started language server: {' '.join(self.command)}")

    async def send(self, frame: str) -> None:
        if self._closed or self.process is None or self.process.stdin is None:
            raise TransportClosedError("language server process not running")

        self.process.stdin.write(self.protocol.encode(frame))
        try:
            await self.process.stdin.drain()
        except ConnectionError as e:
            raise TransportClosedError(f"language server stdin closed: {e}") from e

    async def receive(self) -> Optional[str]:
        while not self._frames:
            if self._closed or self.process is None or self.process.stdout is None:
                return None
            data = await self.process.stdout.read(4096)
            if not data:
                return None
            self._frames.extend(self.protocol.feed(data))
        return self._frames.pop(0)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self.process is None:
            return
        if self.process.stdin is not None:
            self.process.stdin.close()
        if self.process.returncode is None:
            self.process.terminate()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=self.shutdown_timeout)
            except asyncio.TimeoutError:
                self.process.kill()
                await self.process.wait()

        Logger.instance().info(f"language server exited with code {self.process.returncode}")
        self.process = None
        self.protocol.clear()
        self._frames.clear()


class WebSocketTransport(Transport):
    """Talks to a language server listening on a WebSocket URI."""

    def __init__(self, uri: str, open_timeout: float = 10.0):
        self.uri = uri
        self.open_timeout = open_timeout
        self.connection = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self):
        """Open the WebSocket connection."""
        if self.connection is not None:
            return  # already connected

        self.connection = await websockets.connect(self.uri, open_timeout=self.open_timeout)
        Logger.instance().info(f"connected to language server at {self.uri}")

    async def send(self, frame: str) -> None:
        if self._closed or self.connection is None:
            raise TransportClosedError("language server connection not open")
        try:
            await self.connection.send(frame)
        except ConnectionClosed as e:
            raise TransportClosedError(f"language server connection closed: {e}") from e

    async def receive(self) -> Optional[str]:
        if self._closed or self.connection is None:
            return None
        try:
            message = await self.connection.recv()
        except ConnectionClosed:
            return None
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        return message

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self.connection is not None:
            await self.connection.close()
            Logger.instance().info(f"closed connection to {self.uri}")
            self.connection = None
