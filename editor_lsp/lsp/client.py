"""Protocol client: JSON-RPC correlation over an abstract transport.

This client:
1. Assigns ids to requests and resolves them from the matching responses
2. Runs the initialize / initialized handshake and stores server capabilities
3. Fans every server notification out to all attached document sessions
4. Answers server-to-client requests with a null result

Requests are not serialized. Several may be in flight and they may resolve
in any order.
"""

import asyncio
import copy
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Union

from editor_lsp.lsp import protocol
from editor_lsp.lsp.errors import (
    LSPResponseError,
    LSPTimeoutError,
    TransportClosedError,
)
from editor_lsp.lsp.transport import Transport
from editor_lsp.lsp.types import (
    CodeActionParams,
    CompletionItem,
    CompletionParams,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    InitializeParams,
    RenameParams,
    ServerCapabilities,
    SignatureHelpParams,
    TextDocumentPositionParams,
    WorkspaceFolder,
)
from editor_lsp.utils.config_utils import get_config_bool, get_config_int
from editor_lsp.utils.logging_utils import Logger

DEFAULT_TIMEOUT_MS = 10000
INITIALIZE_TIMEOUT_FACTOR = 3

ClientCapabilities = Dict[str, Any]
CapabilitiesOption = Union[ClientCapabilities, Callable[[ClientCapabilities], ClientCapabilities]]


class NotificationSink(Protocol):
    """Anything that can be attached to the client to receive notifications."""

    def process_notification(self, method: str, params: Any) -> Any:
        ...


DEFAULT_CLIENT_CAPABILITIES: ClientCapabilities = {
    "textDocument": {
        "hover": {
            "dynamicRegistration": True,
            "contentFormat": ["markdown", "plaintext"],
        },
        "moniker": {},
        "synchronization": {
            "dynamicRegistration": True,
            "willSave": False,
            "didSave": False,
            "willSaveWaitUntil": False,
        },
        "codeAction": {
            "dynamicRegistration": True,
            "codeActionLiteralSupport": {
                "codeActionKind": {
                    "valueSet": [
                        "",
                        "quickfix",
                        "refactor",
                        "refactor.extract",
                        "refactor.inline",
                        "refactor.rewrite",
                        "source",
                        "source.organizeImports",
                    ],
                },
            },
            "resolveSupport": {"properties": ["edit"]},
        },
        "completion": {
            "dynamicRegistration": True,
            "completionItem": {
                "snippetSupport": False,
                "commitCharactersSupport": True,
                "documentationFormat": ["markdown", "plaintext"],
                "deprecatedSupport": False,
                "preselectSupport": False,
            },
            "contextSupport": False,
        },
        "signatureHelp": {
            "dynamicRegistration": True,
            "signatureInformation": {
                "documentationFormat": ["markdown", "plaintext"],
            },
        },
        "declaration": {"dynamicRegistration": True, "linkSupport": True},
        "definition": {"dynamicRegistration": True, "linkSupport": True},
        "typeDefinition": {"dynamicRegistration": True, "linkSupport": True},
        "implementation": {"dynamicRegistration": True, "linkSupport": True},
        "rename": {"dynamicRegistration": True, "prepareSupport": True},
    },
    "workspace": {
        "didChangeConfiguration": {"dynamicRegistration": True},
    },
}


class DocumentRegistry:
    """Instance-owned set of attached document sessions.

    Membership is by identity and iteration order is attach order. Both
    mutations are synchronous and never re-enter the client.
    """

    def __init__(self):
        self._sessions: List[NotificationSink] = []

    def attach(self, session: NotificationSink) -> bool:
        """Add a session; returns False if it was already attached."""
        if any(s is session for s in self._sessions):
            return False
        self._sessions.append(session)
        return True

    def detach(self, session: NotificationSink) -> bool:
        """Remove a session; returns False if it was not attached."""
        for i, s in enumerate(self._sessions):
            if s is session:
                del self._sessions[i]
                return True
        return False

    @property
    def is_empty(self) -> bool:
        return not self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[NotificationSink]:
        # snapshot: handlers may detach while we iterate
        return iter(list(self._sessions))

    def __contains__(self, session: object) -> bool:
        return any(s is session for s in self._sessions)


class LanguageServerClient:
    """JSON-RPC client for one language server connection."""

    def __init__(
        self,
        transport: Transport,
        root_uri: Optional[str] = None,
        workspace_folders: Optional[List[WorkspaceFolder]] = None,
        capabilities: Optional[CapabilitiesOption] = None,
        initialization_options: Any = None,
        timeout_ms: Optional[int] = None,
        auto_close: Optional[bool] = None,
    ):
        """Initialize the client. Call start() to begin the handshake.

        Args:
            transport: Channel to the language server
            root_uri: Workspace root sent with initialize
            workspace_folders: Workspace folders sent with initialize
            capabilities: Client capabilities, either a replacement dict or a
                          function receiving the defaults and returning the
                          capabilities to send
            initialization_options: Server-specific initializationOptions
            timeout_ms: Default request timeout ([lsp] request_timeout_ms)
            auto_close: Close the transport once the last document detaches
                        ([lsp] auto_close)
        """
        self.transport = transport
        self.root_uri = root_uri
        self.workspace_folders = workspace_folders
        self.client_capabilities = capabilities
        self.initialization_options = initialization_options
        self.timeout_ms = timeout_ms or get_config_int("lsp", "request_timeout_ms", DEFAULT_TIMEOUT_MS)
        self.initialize_timeout_factor = get_config_int(
            "lsp", "initialize_timeout_factor", INITIALIZE_TIMEOUT_FACTOR
        )
        if auto_close is None:
            auto_close = get_config_bool("lsp", "auto_close", False)
        self.auto_close = auto_close

        self.ready = False
        self.capabilities: Optional[ServerCapabilities] = None
        self.request_id = 0
        self.pending_requests: Dict[int, asyncio.Future] = {}
        self._pending_methods: Dict[int, str] = {}
        self.documents = DocumentRegistry()

        self.initialize_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._background: set = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ═══════════════════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════════════════

    def start(self) -> asyncio.Task:
        """Start reading from the transport and kick off initialize.

        Must be called from a running event loop. Idempotent.
        """
        if self._reader_task is None:
            self._reader_task = asyncio.ensure_future(self._read_loop())
        if self.initialize_task is None:
            self.initialize_task = asyncio.ensure_future(self.initialize())
            self.initialize_task.add_done_callback(self._on_initialize_done)
        return self.initialize_task

    async def wait_ready(self) -> None:
        """Wait for the handshake; raises if it failed."""
        task = self.start()
        await asyncio.shield(task)

    def get_initialize_params(self) -> InitializeParams:
        defaults = copy.deepcopy(DEFAULT_CLIENT_CAPABILITIES)
        if self.client_capabilities is None:
            capabilities = defaults
        elif callable(self.client_capabilities):
            capabilities = self.client_capabilities(defaults)
        else:
            capabilities = self.client_capabilities

        return {
            "capabilities": capabilities,
            "initializationOptions": self.initialization_options,
            "processId": None,
            "rootUri": self.root_uri,
            "workspaceFolders": self.workspace_folders,
        }

    async def initialize(self) -> None:
        """Run the initialize handshake; ready flips only after initialized is sent."""
        result = await self.request(
            "initialize",
            self.get_initialize_params(),
            self.timeout_ms * self.initialize_timeout_factor,
        )
        self.capabilities = (result or {}).get("capabilities") or {}
        await self.notify("initialized", {})
        self.ready = True

        server_info = (result or {}).get("serverInfo") or {}
        Logger.instance().info(
            f"language server ready: {server_info.get('name', 'unknown')} "
            f"{server_info.get('version', '')}".rstrip()
        )

    def _on_initialize_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            Logger.instance().error(f"initialize failed: {error}")

    async def close(self) -> None:
        """Close the transport and fail every outstanding request."""
        if self._closed:
            return
        self._closed = True
        self.ready = False

        await self.transport.close()
        if self._reader_task is not None and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._fail_pending(TransportClosedError("transport closed"))

    # ═══════════════════════════════════════════════════════════════════
    # Document registry
    # ═══════════════════════════════════════════════════════════════════

    def attach(self, session: NotificationSink) -> None:
        self.documents.attach(session)

    def detach(self, session: NotificationSink) -> None:
        """Detach a session; with auto_close, close once none remain."""
        removed = self.documents.detach(session)
        if removed and self.auto_close and self.documents.is_empty and not self._closed:
            Logger.instance().debug("last document detached, closing transport")
            self._close_task = asyncio.ensure_future(self.close())

    # ═══════════════════════════════════════════════════════════════════
    # Requests and notifications
    # ═══════════════════════════════════════════════════════════════════

    async def request(self, method: str, params: Any, timeout_ms: Optional[int] = None) -> Any:
        """Send a request and wait for its result.

        Raises:
            UnknownMethodError: method is not in the request map
            LSPTimeoutError: no response within timeout_ms
            LSPResponseError: the server answered with an error
            TransportClosedError: the transport is, or becomes, closed
        """
        protocol.check_request_method(method)
        if self._closed:
            raise TransportClosedError(f"transport closed, cannot send {method}")

        timeout_ms = timeout_ms or self.timeout_ms
        self.request_id += 1
        request_id = self.request_id

        future = asyncio.get_running_loop().create_future()
        self.pending_requests[request_id] = future
        self._pending_methods[request_id] = method
        try:
            try:
                await self.transport.send(protocol.dumps(protocol.make_request(request_id, method, params)))
            except TransportClosedError:
                raise
            except (OSError, RuntimeError) as e:
                raise TransportClosedError(f"failed to send {method}: {e}") from e

            Logger.instance().debug(f"--> {method} ({request_id})")
            try:
                return await asyncio.wait_for(future, timeout=timeout_ms / 1000)
            except asyncio.TimeoutError:
                raise LSPTimeoutError(method, timeout_ms) from None
        finally:
            self.pending_requests.pop(request_id, None)
            self._pending_methods.pop(request_id, None)

    async def notify(self, method: str, params: Any) -> None:
        """Send a notification. Transport failures are logged, never raised."""
        protocol.check_notify_method(method)
        if self._closed:
            Logger.instance().warning(f"transport closed, dropping notification {method}")
            return
        try:
            await self.transport.send(protocol.dumps(protocol.make_notification(method, params)))
        except (TransportClosedError, OSError, RuntimeError) as e:
            Logger.instance().error(f"failed to send {method}: {e}")
            return
        Logger.instance().debug(f"--> {method}")

    # typed wrappers

    async def text_document_did_open(self, params: DidOpenTextDocumentParams) -> None:
        await self.notify("textDocument/didOpen", params)

    async def text_document_did_change(self, params: DidChangeTextDocumentParams) -> None:
        await self.notify("textDocument/didChange", params)

    async def text_document_hover(self, params: TextDocumentPositionParams):
        return await self.request("textDocument/hover", params)

    async def text_document_completion(self, params: CompletionParams):
        return await self.request("textDocument/completion", params)

    async def completion_item_resolve(self, item: CompletionItem) -> CompletionItem:
        return await self.request("completionItem/resolve", item)

    async def text_document_definition(self, params: TextDocumentPositionParams):
        return await self.request("textDocument/definition", params)

    async def text_document_code_action(self, params: CodeActionParams):
        return await self.request("textDocument/codeAction", params)

    async def text_document_rename(self, params: RenameParams):
        return await self.request("textDocument/rename", params)

    async def text_document_prepare_rename(self, params: TextDocumentPositionParams):
        return await self.request("textDocument/prepareRename", params)

    async def text_document_signature_help(self, params: SignatureHelpParams):
        return await self.request("textDocument/signatureHelp", params)

    # ═══════════════════════════════════════════════════════════════════
    # Internal: inbound messages
    # ═══════════════════════════════════════════════════════════════════

    async def _read_loop(self):
        """Background task: read frames and dispatch them."""
        try:
            while True:
                frame = await self.transport.receive()
                if frame is None:
                    break
                message = protocol.loads(frame)
                if message is None:
                    Logger.instance().warning(f"dropping malformed frame: {frame[:200]!r}")
                    continue
                self._handle_message(message)
        except asyncio.CancelledError:
            raise
        except (OSError, RuntimeError) as e:
            Logger.instance().error(f"LSP reader error: {e}")
        finally:
            self.ready = False
            reason = "transport closed" if self._closed else "transport closed by server"
            if not self._closed:
                # the server went away; later requests fail fast
                self._closed = True
                if not self.transport.closed:
                    self._spawn(self.transport.close())
            self._fail_pending(TransportClosedError(reason))

    def _handle_message(self, message: Dict[str, Any]):
        if protocol.is_server_request(message):
            self._answer_server_request(message)
        elif protocol.is_response(message):
            self._resolve_response(message)
        elif protocol.is_notification(message):
            self._dispatch_notification(message["method"], message.get("params"))

    def _resolve_response(self, message: Dict[str, Any]):
        request_id = message["id"]
        future = self.pending_requests.get(request_id)
        if future is None or future.done():
            Logger.instance().debug(f"<-- response for unknown or expired id {request_id}")
            return

        if "error" in message and message["error"] is not None:
            error = message["error"]
            future.set_exception(
                LSPResponseError(
                    method=self._pending_methods.get(request_id, str(request_id)),
                    code=error.get("code", 0),
                    message=error.get("message", "Unknown error"),
                    data=error.get("data"),
                )
            )
        else:
            future.set_result(message.get("result"))

    def _answer_server_request(self, message: Dict[str, Any]):
        # this client implements no server-initiated requests
        Logger.instance().debug(f"<-- server request {message['method']}, answering null")
        self._spawn(self._send_null_response(message["id"]))

    async def _send_null_response(self, request_id):
        try:
            await self.transport.send(protocol.dumps(protocol.make_response(request_id, None)))
        except (TransportClosedError, OSError, RuntimeError) as e:
            Logger.instance().error(f"failed to answer server request {request_id}: {e}")

    def _dispatch_notification(self, method: str, params: Any):
        if method == "window/logMessage" or method == "window/showMessage":
            Logger.instance().info(f"[server] {(params or {}).get('message', '')}")
        elif not protocol.is_known_event(method):
            Logger.instance().debug(f"<-- {method}")

        for session in self.documents:
            try:
                session.process_notification(method, params)
            except Exception as e:  # one session must not break the others
                Logger.instance().error(f"notification handler failed for {method}: {e}")

    def _fail_pending(self, error: Exception):
        for future in self.pending_requests.values():
            if not future.done():
                future.set_exception(error)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
