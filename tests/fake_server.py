"""in-process language server for tests

FakeLanguageServer answers requests from a handler table fixed at
construction. a handler receives the request params and returns the
result (plain value or awaitable). raising ServerError replies with a
JSON-RPC error; returning NO_REPLY leaves the request unanswered.
"""

import asyncio
import inspect
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

from editor_lsp.lsp.errors import TransportClosedError
from editor_lsp.lsp.transport import Transport

ROOT_URI = "file:///workspace"
DOC_URI = "file:///workspace/main.py"
OTHER_URI = "file:///workspace/other.py"

NO_REPLY = object()

DEFAULT_CAPABILITIES = {
    "textDocumentSync": 2,
    "hoverProvider": True,
    "completionProvider": {"triggerCharacters": ["."], "resolveProvider": True},
    "definitionProvider": True,
    "codeActionProvider": True,
    "renameProvider": {"prepareProvider": True},
    "signatureHelpProvider": {"triggerCharacters": ["(", ","]},
}

Handler = Callable[[Any], Any]


class ServerError(Exception):
    """raise from a handler to answer with a JSON-RPC error"""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# ═══════════════════════════════════════════════════════════════════════════
# in-memory transport pair
# ═══════════════════════════════════════════════════════════════════════════


class MemoryTransport(Transport):
    """one end of an in-memory frame channel"""

    def __init__(self):
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.peer: Optional["MemoryTransport"] = None
        self.sent: List[str] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: str) -> None:
        if self._closed:
            raise TransportClosedError("memory transport closed")
        self.sent.append(frame)
        self.peer.inbox.put_nowait(frame)

    async def receive(self) -> Optional[str]:
        if self._closed and self.inbox.empty():
            return None
        return await self.inbox.get()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.inbox.put_nowait(None)
        if self.peer is not None and not self.peer.closed:
            # EOF for the other side
            self.peer.inbox.put_nowait(None)


def transport_pair() -> Tuple[MemoryTransport, MemoryTransport]:
    """(client end, server end)"""
    client_end = MemoryTransport()
    server_end = MemoryTransport()
    client_end.peer = server_end
    server_end.peer = client_end
    return client_end, server_end


# ═══════════════════════════════════════════════════════════════════════════
# fake server
# ═══════════════════════════════════════════════════════════════════════════


class FakeLanguageServer:
    """scripted language server running on the event loop"""

    def __init__(
        self,
        transport: MemoryTransport,
        handlers: Optional[Dict[str, Handler]] = None,
        capabilities: Optional[Dict[str, Any]] = None,
    ):
        self.transport = transport
        self.capabilities = DEFAULT_CAPABILITIES if capabilities is None else capabilities
        self.handlers: Dict[str, Handler] = {"initialize": self._initialize}
        self.handlers.update(handlers or {})

        self.received: List[Dict[str, Any]] = []
        self.notifications: List[Tuple[str, Any]] = []
        self.responses: List[Dict[str, Any]] = []
        self._task: Optional[asyncio.Task] = None
        self._request_tasks: set = set()

    def _initialize(self, params):
        return {
            "capabilities": self.capabilities,
            "serverInfo": {"name": "fake-server", "version": "1.0"},
        }

    def start(self):
        self._task = asyncio.ensure_future(self._serve())

    async def stop(self):
        for task in list(self._request_tasks):
            task.cancel()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _serve(self):
        while True:
            frame = await self.transport.receive()
            if frame is None:
                break
            message = json.loads(frame)
            self.received.append(message)
            if "method" in message and message.get("id") is not None:
                task = asyncio.ensure_future(self._handle_request(message))
                self._request_tasks.add(task)
                task.add_done_callback(self._request_tasks.discard)
            elif "method" in message:
                self.notifications.append((message["method"], message.get("params")))
            else:
                self.responses.append(message)

    async def _handle_request(self, message):
        handler = self.handlers.get(message["method"])
        if handler is None:
            await self._reply_error(message["id"], -32601, f"Method not found: {message['method']}")
            return
        try:
            result = handler(message.get("params"))
            if inspect.isawaitable(result):
                result = await result
        except ServerError as e:
            await self._reply_error(message["id"], e.code, e.message)
            return
        if result is NO_REPLY:
            return
        await self._send({"jsonrpc": "2.0", "id": message["id"], "result": result})

    async def _reply_error(self, request_id, code, message):
        await self._send({"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}})

    async def _send(self, message):
        if not self.transport.closed:
            await self.transport.send(json.dumps(message))

    # server-initiated traffic

    async def notify(self, method: str, params: Any):
        await self._send({"jsonrpc": "2.0", "method": method, "params": params})

    async def request(self, request_id, method: str, params: Any):
        await self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})

    async def send_raw(self, frame: str):
        await self.transport.send(frame)

    async def publish_diagnostics(self, uri: str, diagnostics: List[Dict[str, Any]]):
        await self.notify("textDocument/publishDiagnostics", {"uri": uri, "diagnostics": diagnostics})

    # inspection

    def notifications_for(self, method: str) -> List[Any]:
        return [params for m, params in self.notifications if m == method]

    def requests_for(self, method: str) -> List[Dict[str, Any]]:
        return [m for m in self.received if m.get("method") == method and m.get("id") is not None]

    async def wait_for_notification(self, method: str, count: int = 1, timeout: float = 2.0) -> List[Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while len(self.notifications_for(method)) < count:
            if loop.time() > deadline:
                raise AssertionError(f"timed out waiting for {count} x {method}")
            await asyncio.sleep(0.005)
        return self.notifications_for(method)

    async def wait_for_response(self, count: int = 1, timeout: float = 2.0) -> List[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while len(self.responses) < count:
            if loop.time() > deadline:
                raise AssertionError(f"timed out waiting for {count} responses")
            await asyncio.sleep(0.005)
        return self.responses


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0):
    """poll ``predicate`` on the event loop until it holds"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class RecordingSink:
    """notification sink that records everything it receives"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.received: List[Tuple[str, Any]] = []

    def process_notification(self, method, params):
        self.received.append((method, params))
        if self.fail:
            raise RuntimeError("sink failure")
