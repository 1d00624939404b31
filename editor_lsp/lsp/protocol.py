"""JSON-RPC 2.0 envelopes and stream framing.

Transports move text frames, one JSON-RPC message per frame. Stream
transports (stdio) wrap each frame with a Content-Length header:
  Content-Length: <length>\r\n
  \r\n
  <JSON payload>

JSONRPCProtocol buffers raw bytes and splits them back into frames.
"""

import json
from typing import Any, Dict, List, Optional, Union

from editor_lsp.lsp.errors import UnknownMethodError
from editor_lsp.lsp.types import EVENT_TYPES, NOTIFY_TYPES, REQUEST_TYPES

JSONRPC_VERSION = "2.0"

MessageId = Union[int, str]


class JSONRPCProtocol:
    """Handles Content-Length framing for stream transports."""

    def __init__(self):
        self.buffer = b""

    def feed(self, data: bytes) -> List[str]:
        """Feed data and return complete frames.

        Args:
            data: Raw bytes read from the server's stdout

        Returns:
            List of decoded frame payloads (may be empty if incomplete)
        """
        self.buffer += data
        frames = []

        while True:
            frame = self._try_parse_frame()
            if frame is None:
                break
            frames.append(frame)

        return frames

    def _try_parse_frame(self) -> Optional[str]:
        """Try to cut one complete frame from the buffer.

        Returns:
            Frame payload, or None if more data is needed
        """
        while True:
            header_end = self.buffer.find(b"\r\n\r\n")
            if header_end == -1:
                return None

            header = self.buffer[:header_end].decode("ascii", errors="replace")
            content_length = None
            for line in header.split("\r\n"):
                if line.lower().startswith("content-length:"):
                    content_length = int(line.split(":", 1)[1].strip())
                    break

            if content_length is not None:
                break
            # malformed header block, drop it and look for the next one
            self.buffer = self.buffer[header_end + 4 :]

        content_start = header_end + 4
        content_end = content_start + content_length
        if len(self.buffer) < content_end:
            return None

        content = self.buffer[content_start:content_end].decode("utf-8")
        self.buffer = self.buffer[content_end:]
        return content

    def encode(self, frame: str) -> bytes:
        """Wrap a frame payload with its Content-Length header.

        Args:
            frame: Serialized JSON-RPC message

        Returns:
            Encoded bytes ready to write to the server's stdin
        """
        content_bytes = frame.encode("utf-8")
        header = f"Content-Length: {len(content_bytes)}\r\n\r\n"
        return header.encode("ascii") + content_bytes

    def clear(self):
        """Clear the internal buffer."""
        self.buffer = b""


# ═══════════════════════════════════════════════════════════════════════════
# Envelopes
# ═══════════════════════════════════════════════════════════════════════════


def check_request_method(method: str) -> None:
    if method not in REQUEST_TYPES:
        raise UnknownMethodError(f"Unsupported request method: {method}")


def check_notify_method(method: str) -> None:
    if method not in NOTIFY_TYPES:
        raise UnknownMethodError(f"Unsupported notification method: {method}")


def is_known_event(method: str) -> bool:
    return method in EVENT_TYPES


def make_request(request_id: MessageId, method: str, params: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method, "params": params}


def make_notification(method: str, params: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "method": method, "params": params}


def make_response(request_id: MessageId, result: Any = None) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def dumps(message: Dict[str, Any]) -> str:
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False)


def loads(frame: str) -> Optional[Dict[str, Any]]:
    """Parse a frame; returns None for anything that is not a JSON object."""
    try:
        message = json.loads(frame)
    except json.JSONDecodeError:
        return None
    if not isinstance(message, dict):
        return None
    return message


def _has_id(message: Dict[str, Any]) -> bool:
    return message.get("id") is not None


def is_server_request(message: Dict[str, Any]) -> bool:
    """A server-to-client request carries both a method and an id."""
    return "method" in message and _has_id(message)


def is_response(message: Dict[str, Any]) -> bool:
    return "method" not in message and _has_id(message)


def is_notification(message: Dict[str, Any]) -> bool:
    return "method" in message and not _has_id(message)
