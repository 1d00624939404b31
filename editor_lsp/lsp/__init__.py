"""LSP protocol client: framing, JSON-RPC correlation and transports."""

from editor_lsp.lsp.client import DocumentRegistry, LanguageServerClient
from editor_lsp.lsp.errors import (
    LSPError,
    LSPResponseError,
    LSPTimeoutError,
    TransportClosedError,
    UnknownMethodError,
)
from editor_lsp.lsp.protocol import JSONRPCProtocol
from editor_lsp.lsp.transport import StdioTransport, Transport, WebSocketTransport

__all__ = [
    "DocumentRegistry",
    "LanguageServerClient",
    "LSPError",
    "LSPResponseError",
    "LSPTimeoutError",
    "TransportClosedError",
    "UnknownMethodError",
    "JSONRPCProtocol",
    "StdioTransport",
    "Transport",
    "WebSocketTransport",
]
