"""
Control socket protocol

Each connection carries one grammar control request and its response. A
frame is a 4-byte big-endian payload length followed by a UTF-8 JSON
object. Frames that break these rules raise ProtocolError.
"""

import json
import os
import socket
import struct
from pathlib import Path
from typing import Any, Dict, Optional

from grammar_cache.errors import ProtocolError

_HEADER = struct.Struct(">I")
HEADER_SIZE = _HEADER.size
# Composed rule bodies travel inline, so allow generous frames
MAX_MESSAGE_SIZE = 1024 * 1024

# Control commands
CMD_COMPOSE = "compose"
CMD_FIND = "find"
CMD_EXAMPLE = "example"
CMD_ENABLE = "enable"
CMD_LIST = "list"
CMD_RESCAN = "rescan"


def create_server_socket(socket_path: Path) -> socket.socket:
    """Bind the control socket, replacing a stale socket file"""
    if socket_path.exists():
        socket_path.unlink()

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.bind(str(socket_path))
    os.chmod(socket_path, 0o600)
    return sock


def create_client_socket(socket_path: Path) -> socket.socket:
    """
    Connect to a running grammar-cache server

    Raises:
        ConnectionError: If server is not running
    """
    if not socket_path.exists():
        raise ConnectionError(f"Server socket not found: {socket_path}")

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.connect(str(socket_path))
    return sock


def encode_frame(message: Dict[str, Any]) -> bytes:
    """
    Frame a control message

    Raises:
        ProtocolError: If the payload exceeds MAX_MESSAGE_SIZE
    """
    payload = json.dumps(message, ensure_ascii=False).encode("utf-8")
    if len(payload) > MAX_MESSAGE_SIZE:
        raise ProtocolError(f"message too large: {len(payload)} bytes (limit {MAX_MESSAGE_SIZE})")
    return _HEADER.pack(len(payload)) + payload


def decode_payload(payload: bytes) -> Dict[str, Any]:
    """
    Parse a frame payload into a control message

    Raises:
        ProtocolError: If the payload is not a UTF-8 JSON object
    """
    try:
        message = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"malformed payload: {e}") from e
    if not isinstance(message, dict):
        raise ProtocolError(f"expected a JSON object, got {type(message).__name__}")
    return message


def send_message(sock: socket.socket, message: Dict[str, Any]) -> None:
    """Send one framed control message"""
    sock.sendall(encode_frame(message))


def recv_message(sock: socket.socket) -> Optional[Dict[str, Any]]:
    """
    Receive one framed control message

    Returns:
        Parsed message, or None if the peer closed before sending anything

    Raises:
        ProtocolError: If the frame is oversized, truncated or malformed
    """
    header = _recv_exact(sock, HEADER_SIZE)
    if header is None:
        return None

    (length,) = _HEADER.unpack(header)
    if length > MAX_MESSAGE_SIZE:
        raise ProtocolError(f"message too large: {length} bytes (limit {MAX_MESSAGE_SIZE})")

    payload = _recv_exact(sock, length)
    if payload is None:
        raise ProtocolError(f"connection closed inside a {length}-byte message")
    return decode_payload(payload)


def _recv_exact(sock: socket.socket, size: int) -> Optional[bytes]:
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            return None
        data += chunk
    return data


# Request/Response helpers

def make_request(command: str, **fields: Any) -> Dict[str, Any]:
    """Create a control request"""
    request: Dict[str, Any] = {"command": command}
    request.update(fields)
    return request


def make_ok_response(**fields: Any) -> Dict[str, Any]:
    """Create a success response"""
    response: Dict[str, Any] = {"status": "ok"}
    response.update(fields)
    return response


def make_error_response(message: str) -> Dict[str, Any]:
    """Create an error response"""
    return {"status": "error", "message": message}
