from __future__ import annotations

import logging
import socket
import sqlite3
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import urlparse

from .config import OpenclawMemConfig
from .errors import NotFoundError, UnavailableError, ValidationError
from .store import MemoryStore
from .worker_http import read_json_body, reject_cross_origin, send_json_response
from .worker_routes import context as worker_routes_context
from .worker_routes import hooks as worker_routes_hooks
from .worker_routes import observations as worker_routes_observations
from .worker_routes import search as worker_routes_search
from .worker_routes import sessions as worker_routes_sessions
from .worker_routes import stats as worker_routes_stats

logger = logging.getLogger(__name__)


class WorkerServer(HTTPServer):
    """Single-threaded HTTP server bound to one store handle."""

    def __init__(
        self,
        server_address: tuple[str, int],
        store: MemoryStore,
        config: OpenclawMemConfig,
    ) -> None:
        super().__init__(server_address, WorkerHandler)
        self.store = store
        self.config = config


class WorkerHandler(BaseHTTPRequestHandler):
    server: WorkerServer

    def _send_json(self, payload: dict[str, Any] | list[Any], status: int = 200) -> None:
        send_json_response(self, payload, status=status)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A003
        logger.debug("%s - %s", self.address_string(), format % args)

    def _dispatch(self, route: Callable[[MemoryStore, str, str], bool]) -> None:
        parsed = urlparse(self.path)
        try:
            if route(self.server.store, parsed.path.rstrip("/") or "/", parsed.query):
                return
            self._send_json({"error": "not found"}, status=404)
        except ValidationError as exc:
            self._send_json({"error": str(exc)}, status=400)
        except NotFoundError as exc:
            self._send_json({"error": str(exc)}, status=404)
        except (UnavailableError, sqlite3.Error) as exc:
            logger.error("storage failure on %s %s: %s", self.command, parsed.path, exc)
            self._send_json({"error": f"storage unavailable: {exc}"}, status=503)
        except Exception:
            logger.exception("unhandled error on %s %s", self.command, parsed.path)
            self._send_json({"error": "internal server error"}, status=500)

    def _route_get(self, store: MemoryStore, path: str, query: str) -> bool:
        settings = self.server.config.context_injection
        return (
            worker_routes_stats.handle_get(self, store, path, query)
            or worker_routes_sessions.handle_get(self, store, path, query)
            or worker_routes_observations.handle_get(self, store, path, query)
            or worker_routes_context.handle_get(self, store, path, query, settings=settings)
        )

    def _route_post(self, store: MemoryStore, path: str, query: str) -> bool:
        payload = read_json_body(self)
        if payload is None:
            self._send_json({"error": "invalid json"}, status=400)
            return True
        settings = self.server.config.context_injection
        return (
            worker_routes_hooks.handle_post(self, store, path, payload, settings=settings)
            or worker_routes_sessions.handle_post(self, store, path, payload)
            or worker_routes_observations.handle_post(self, store, path, payload)
            or worker_routes_search.handle_post(self, store, path, payload)
        )

    def do_GET(self) -> None:  # noqa: N802
        if reject_cross_origin(self):
            return
        self._dispatch(self._route_get)

    def do_POST(self) -> None:  # noqa: N802
        if reject_cross_origin(self):
            return
        self._dispatch(self._route_post)


def create_server(
    config: OpenclawMemConfig,
    store: MemoryStore,
    *,
    host: str | None = None,
    port: int | None = None,
) -> WorkerServer:
    address = (host or config.host, config.port if port is None else port)
    return WorkerServer(address, store, config)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def serve(config: OpenclawMemConfig, *, host: str | None = None, port: int | None = None) -> None:
    store = MemoryStore(config.database_path)
    try:
        server = create_server(config, store, host=host, port=port)
    except OSError:
        store.close()
        raise
    bound_host, bound_port = server.server_address[:2]
    logger.info("worker listening on http://%s:%s (db %s)", bound_host, bound_port, store.db_path)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        store.close()
        logger.info("worker stopped")


def port_open(host: str, port: int, timeout: float = 0.2) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        try:
            return sock.connect_ex((host, port)) == 0
        except OSError:
            return False
