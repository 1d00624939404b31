"""transport tests: a subprocess that echoes frames back and an in-process WebSocket server"""

import json
import sys

import pytest
import pytest_asyncio
import websockets

from editor_lsp.lsp.client import LanguageServerClient
from editor_lsp.lsp.errors import TransportClosedError
from editor_lsp.lsp.transport import StdioTransport, WebSocketTransport
from fake_server import DEFAULT_CAPABILITIES, DOC_URI, ROOT_URI

ECHO_SERVER = r"""
import sys

stdin, stdout = sys.stdin.buffer, sys.stdout.buffer
while True:
    header = b""
    while not header.endswith(b"\r\n\r\n"):
        byte = stdin.read(1)
        if not byte:
            sys.exit(0)
        header += byte
    length = int(header.decode("ascii").split(":")[1].strip())
    stdout.write(header + stdin.read(length))
    stdout.flush()
"""


@pytest_asyncio.fixture
async def echo_transport():
    transport = StdioTransport([sys.executable, "-c", ECHO_SERVER], shutdown_timeout=2.0)
    await transport.start()
    yield transport
    await transport.close()


class TestStdioTransport:
    """subprocess framing"""

    @pytest.mark.asyncio
    async def test_round_trip(self, echo_transport):
        await echo_transport.send('{"jsonrpc": "2.0", "method": "ping"}')
        assert await echo_transport.receive() == '{"jsonrpc": "2.0", "method": "ping"}'

    @pytest.mark.asyncio
    async def test_multibyte_content_length(self, echo_transport):
        frame = '{"text": "héllo ☃"}'
        await echo_transport.send(frame)
        await echo_transport.send(frame)

        assert await echo_transport.receive() == frame
        assert await echo_transport.receive() == frame

    @pytest.mark.asyncio
    async def test_close(self, echo_transport):
        await echo_transport.close()

        assert echo_transport.closed is True
        assert await echo_transport.receive() is None
        with pytest.raises(TransportClosedError):
            await echo_transport.send("{}")

    @pytest.mark.asyncio
    async def test_send_before_start(self):
        transport = StdioTransport([sys.executable, "-c", ECHO_SERVER])
        with pytest.raises(TransportClosedError):
            await transport.send("{}")


# ═══════════════════════════════════════════════════════════════════════════
# TestWebSocketTransport
# ═══════════════════════════════════════════════════════════════════════════


async def echo_handler(websocket):
    async for message in websocket:
        await websocket.send(message)


async def language_server_handler(websocket):
    """answers initialize and hover, ignores notifications"""
    async for message in websocket:
        request = json.loads(message)
        if "id" not in request:
            continue
        if request["method"] == "initialize":
            result = {"capabilities": DEFAULT_CAPABILITIES}
        elif request["method"] == "textDocument/hover":
            result = {"contents": "hover over websocket"}
        else:
            result = None
        await websocket.send(json.dumps({"jsonrpc": "2.0", "id": request["id"], "result": result}))


async def hang_up_handler(websocket):
    await websocket.close()


@pytest_asyncio.fixture
async def ws_server():
    """factory: ws_server(handler) -> uri of a server on a free local port"""
    servers = []

    async def factory(handler):
        server = await websockets.serve(handler, "127.0.0.1", 0)
        servers.append(server)
        port = server.sockets[0].getsockname()[1]
        return f"ws://127.0.0.1:{port}"

    yield factory

    for server in servers:
        server.close()
        await server.wait_closed()


class TestWebSocketTransport:
    """one JSON-RPC message per WebSocket text frame"""

    @pytest.mark.asyncio
    async def test_round_trip(self, ws_server):
        transport = WebSocketTransport(await ws_server(echo_handler))
        await transport.start()

        await transport.send('{"text": "héllo ☃"}')
        assert await transport.receive() == '{"text": "héllo ☃"}'
        await transport.close()

    @pytest.mark.asyncio
    async def test_client_over_websocket(self, ws_server):
        transport = WebSocketTransport(await ws_server(language_server_handler))
        await transport.start()
        client = LanguageServerClient(transport, root_uri=ROOT_URI, auto_close=False)

        client.start()
        await client.wait_ready()
        hover = await client.text_document_hover(
            {"textDocument": {"uri": DOC_URI}, "position": {"line": 0, "character": 0}}
        )

        assert client.capabilities == DEFAULT_CAPABILITIES
        assert hover == {"contents": "hover over websocket"}
        await client.close()
        assert transport.closed is True

    @pytest.mark.asyncio
    async def test_close(self, ws_server):
        transport = WebSocketTransport(await ws_server(echo_handler))
        await transport.start()
        await transport.close()
        await transport.close()

        assert transport.closed is True
        assert await transport.receive() is None
        with pytest.raises(TransportClosedError):
            await transport.send("{}")

    @pytest.mark.asyncio
    async def test_server_hang_up_is_eof(self, ws_server):
        transport = WebSocketTransport(await ws_server(hang_up_handler))
        await transport.start()

        assert await transport.receive() is None
        await transport.close()

    @pytest.mark.asyncio
    async def test_send_before_start(self):
        transport = WebSocketTransport("ws://127.0.0.1:9")
        with pytest.raises(TransportClosedError):
            await transport.send("{}")
