"""
grammar-cache client

CLI client for the grammar-cache control socket.
"""

import json
import logging
from typing import Any, Dict, Optional

from grammar_cache.config import Config
from grammar_cache.errors import ProtocolError
from grammar_cache.ipc import (
    CMD_COMPOSE,
    CMD_ENABLE,
    CMD_EXAMPLE,
    CMD_FIND,
    CMD_LIST,
    CMD_RESCAN,
    create_client_socket,
    make_request,
    recv_message,
    send_message,
)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


def send_request(config: Config, request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Send one request to the server

    Args:
        config: Configuration
        request: Request message

    Returns:
        The server's "ok" response, or None on any failure (logged)
    """
    socket_path = config.get_socket_path()

    try:
        sock = create_client_socket(socket_path)
    except (ConnectionError, OSError) as e:
        logger.error(f"Cannot connect to server: {e}")
        return None

    try:
        send_message(sock, request)
        response = recv_message(sock)
    except (OSError, ProtocolError) as e:
        logger.error(f"Communication error: {e}")
        return None
    finally:
        sock.close()

    if not response:
        logger.error("No response from server")
        return None

    if response.get("status") != "ok":
        logger.error(f"Server error: {response.get('message', 'unknown')}")
        return None

    return response


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False))


def client_compose(config: Config, name: str, body: str, dialect: str) -> int:
    """Compose a grammar's root rule from a rule body"""
    response = send_request(config, make_request(CMD_COMPOSE, name=name, body=body, dialect=dialect))
    if response is None:
        return EXIT_ERROR
    _print_json(response["grammar"])
    return EXIT_SUCCESS


def client_find(config: Config, name: str) -> int:
    """Print a cached grammar; exits with an error if it is not cached"""
    response = send_request(config, make_request(CMD_FIND, name=name))
    if response is None:
        return EXIT_ERROR
    if response.get("grammar") is None:
        logger.error(f"Grammar not found: {name}")
        return EXIT_ERROR
    _print_json(response["grammar"])
    return EXIT_SUCCESS


def client_example(config: Config, rule_id: str) -> int:
    """Print the example utterance of a rule"""
    response = send_request(config, make_request(CMD_EXAMPLE, rule_id=rule_id))
    if response is None:
        return EXIT_ERROR
    text = response.get("text")
    if text is None:
        logger.error(f"No example for rule: {rule_id}")
        return EXIT_ERROR
    print(text)
    return EXIT_SUCCESS


def client_enable(config: Config, name: str, enabled: bool) -> int:
    response = send_request(config, make_request(CMD_ENABLE, name=name, enabled=enabled))
    return EXIT_SUCCESS if response is not None else EXIT_ERROR


def client_list(config: Config) -> int:
    response = send_request(config, make_request(CMD_LIST))
    if response is None:
        return EXIT_ERROR
    for name, enabled in sorted(response.get("grammars", {}).items()):
        print(f"{name}\t{'enabled' if enabled else 'disabled'}")
    return EXIT_SUCCESS


def client_rescan(config: Config) -> int:
    response = send_request(config, make_request(CMD_RESCAN))
    if response is None:
        return EXIT_ERROR
    if not response.get("queued"):
        print(
            f"loaded={response.get('loaded', 0)} unchanged={response.get('unchanged', 0)} "
            f"skipped={response.get('skipped', 0)} failed={response.get('failed', 0)}"
        )
    return EXIT_SUCCESS
