"""
grammar-cache server

Main server daemon that:
- Loads the grammar directory into the cache
- Pushes the cache to the recognition engine
- Watches grammar files and hot-reloads them
- Handles control requests via Unix socket
"""

import logging
import signal
import socket
import threading
from typing import Any, Dict, Optional

from grammar_cache.composer import Dialect, GrammarComposer
from grammar_cache.config import Config
from grammar_cache.engine import EngineAdapter, MemoryEngine
from grammar_cache.errors import ProtocolError
from grammar_cache.ipc import (
    CMD_COMPOSE,
    CMD_ENABLE,
    CMD_EXAMPLE,
    CMD_FIND,
    CMD_LIST,
    CMD_RESCAN,
    create_server_socket,
    make_error_response,
    make_ok_response,
    recv_message,
    send_message,
)
from grammar_cache.store import GrammarStore, ScanReport
from grammar_cache.watcher import GrammarWatcher

logger = logging.getLogger(__name__)


class GrammarService:
    """
    Grammar cache wired to an engine

    Owns the store, composer and watcher, and answers control requests.
    """

    def __init__(self, config: Config, engine: Optional[EngineAdapter] = None):
        self.config = config
        self.engine = engine if engine is not None else MemoryEngine()
        self.store = GrammarStore(
            language=config.grammar.language,
            hotword=config.grammar.hotword,
        )
        self.composer = GrammarComposer(self.store, self.engine)
        self.watcher = GrammarWatcher(
            self.store,
            self.engine,
            config.get_grammar_root(),
            depth=config.grammar.depth,
        )

    def start(self) -> ScanReport:
        """Initial load, engine push and (optionally) file watching"""
        root = self.config.get_grammar_root()
        with self.store.lock:
            report = self.store.load(root, self.config.grammar.depth)
            self.engine.load_all(self.store.grammars())
        logger.info(
            f"Grammar cache ready: {len(self.store)} grammars "
            f"({report.skipped} skipped, {report.failed} failed)"
        )
        if self.config.grammar.watch:
            self.watcher.start()
        return report

    def stop(self) -> None:
        self.watcher.stop()

    def handle_request(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Process a control request and return response"""
        command = request.get("command")
        if not command:
            return make_error_response("missing 'command' field")

        if command == CMD_COMPOSE:
            name = request.get("name")
            body = request.get("body")
            if not name or body is None:
                return make_error_response("missing 'name' or 'body' field")
            try:
                dialect = Dialect(request.get("dialect", Dialect.W3C.value))
            except ValueError:
                return make_error_response(f"unknown dialect: {request.get('dialect')}")
            grammar = self.composer.compose(name, body, dialect)
            if grammar is None:
                return make_error_response(f"cannot compose grammar: {name}")
            return make_ok_response(grammar=grammar.to_dict())

        elif command == CMD_FIND:
            name = request.get("name")
            if not name:
                return make_error_response("missing 'name' field")
            with self.store.lock:
                grammar = self.store.find_by_name(name)
                return make_ok_response(grammar=grammar.to_dict() if grammar else None)

        elif command == CMD_EXAMPLE:
            rule_id = request.get("rule_id")
            if not rule_id:
                return make_error_response("missing 'rule_id' field")
            return make_ok_response(text=self.store.find_example(rule_id))

        elif command == CMD_ENABLE:
            name = request.get("name")
            enabled = request.get("enabled")
            if not name or not isinstance(enabled, bool):
                return make_error_response("missing 'name' or 'enabled' field")
            with self.store.lock:
                if not self.store.set_enabled(name, enabled):
                    return make_error_response(f"grammar not found: {name}")
                self.store.sync_enabled_to_engine(self.engine)
            return make_ok_response()

        elif command == CMD_LIST:
            with self.store.lock:
                grammars = {g.name: g.enabled for g in self.store.grammars()}
            return make_ok_response(grammars=grammars)

        elif command == CMD_RESCAN:
            if self.watcher.is_running:
                self.watcher.request_reload()
                return make_ok_response(queued=True)
            report = self.watcher.reload()
            return make_ok_response(
                queued=False,
                loaded=report.loaded,
                unchanged=report.unchanged,
                skipped=report.skipped,
                failed=report.failed,
            )

        else:
            return make_error_response(f"unknown command: {command}")


class Server:
    """
    grammar-cache server daemon

    Manages:
    - Grammar service (cache, engine, watcher)
    - Client connections via Unix socket
    """

    def __init__(self, config: Config, verbose: bool = False):
        """
        Initialize server

        Args:
            config: Server configuration
            verbose: Enable verbose logging
        """
        self.config = config
        self.verbose = verbose
        self._running = False
        self._server_socket: Optional[socket.socket] = None
        self._service: Optional[GrammarService] = None

    def run(self) -> None:
        """Run the server (blocking)"""
        self._running = True

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        self._service = GrammarService(self.config)
        self._service.start()

        socket_path = self.config.get_socket_path()
        self._server_socket = create_server_socket(socket_path)
        self._server_socket.listen(5)
        self._server_socket.settimeout(1.0)  # Allow periodic shutdown check

        logger.info(f"Server listening on {socket_path}")

        self._accept_connections()
        self._cleanup()

    def _signal_handler(self, signum: int, frame) -> None:
        """Handle termination signals"""
        logger.info(f"Received signal {signum}, shutting down...")
        self._running = False

    def _accept_connections(self) -> None:
        """Accept and handle client connections"""
        while self._running:
            try:
                client_sock, _ = self._server_socket.accept()
                threading.Thread(
                    target=self._handle_client,
                    args=(client_sock,),
                    daemon=True,
                ).start()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

    def _handle_client(self, client_sock: socket.socket) -> None:
        """Handle a single client connection"""
        try:
            request = recv_message(client_sock)
            if not request:
                return

            response = self._service.handle_request(request)
            if self.verbose:
                logger.info(f"{request.get('command')}: {response.get('status')}")
            send_message(client_sock, response)

        except ProtocolError as e:
            logger.warning(f"Rejected control request: {e}")
            try:
                send_message(client_sock, make_error_response(f"protocol error: {e}"))
            except OSError:
                pass
        except Exception as e:
            logger.error(f"Client handler error: {e}")
            try:
                send_message(client_sock, make_error_response(str(e)))
            except OSError:
                pass
        finally:
            client_sock.close()

    def _cleanup(self) -> None:
        """Cleanup resources"""
        logger.info("Cleaning up...")

        if self._service:
            self._service.stop()

        if self._server_socket:
            self._server_socket.close()

        socket_path = self.config.get_socket_path()
        if socket_path.exists():
            try:
                socket_path.unlink()
            except OSError:
                pass

        logger.info("Server stopped")


def run_server(config: Config, verbose: bool = False) -> None:
    """
    Run the grammar-cache server

    Args:
        config: Server configuration
        verbose: Enable verbose logging
    """
    server = Server(config, verbose=verbose)
    server.run()
