"""editor-lsp: client-side Language Server Protocol engine for text editors."""

from editor_lsp.lsp import LanguageServerClient, StdioTransport, Transport, WebSocketTransport
from editor_lsp.session import DocumentSession, MemoryView

__all__ = [
    "LanguageServerClient",
    "StdioTransport",
    "Transport",
    "WebSocketTransport",
    "DocumentSession",
    "MemoryView",
]
