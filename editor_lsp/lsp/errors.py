"""Exceptions raised by the protocol client."""

from typing import Any, Optional


class LSPError(Exception):
    """Base class for every error raised by editor_lsp."""


class LSPTimeoutError(LSPError, TimeoutError):
    """A request was not answered within its deadline."""

    def __init__(self, method: str, timeout_ms: int):
        super().__init__(f"LSP request timed out after {timeout_ms}ms: {method}")
        self.method = method
        self.timeout_ms = timeout_ms


class LSPResponseError(LSPError):
    """The server answered a request with a JSON-RPC error object."""

    def __init__(self, method: str, code: int, message: str, data: Optional[Any] = None):
        super().__init__(f"LSP error {code} in {method}: {message}")
        self.method = method
        self.code = code
        self.message = message
        self.data = data


class TransportClosedError(LSPError, ConnectionError):
    """The transport closed while the request was outstanding."""


class UnknownMethodError(LSPError, ValueError):
    """The method name is not part of the client's method map."""
