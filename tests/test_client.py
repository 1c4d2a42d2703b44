import socket
import threading
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from openclaw_mem.client import WorkerClient, WorkerResponse, memory_context_text
from openclaw_mem.config import OpenclawMemConfig
from openclaw_mem.worker import WorkerServer


def _client(server: WorkerServer) -> WorkerClient:
    return WorkerClient(f"127.0.0.1:{server.server_address[1]}")


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def test_unreachable_worker_is_unavailable_not_an_exception() -> None:
    client = WorkerClient(f"http://127.0.0.1:{_unused_port()}", timeout_s=0.5)
    response = client.session_start("s1", "/work/app")
    assert response.status == "unavailable"
    assert response.available is False
    assert response.error
    assert client.is_available() is False
    assert memory_context_text(response) == ""


def test_client_from_config_uses_loopback_for_wildcard_host() -> None:
    config = OpenclawMemConfig(host="0.0.0.0", port=4321)
    assert WorkerClient.from_config(config).base_url == "http://127.0.0.1:4321"


def test_hook_round_trip(server: WorkerServer) -> None:
    client = _client(server)
    assert client.is_available() is True

    start = client.session_start("s1", "/work/app")
    assert start.ok
    assert memory_context_text(start) == ""

    captured = client.tool_result("s1", "Edit", {"path": "a.py"}, "fixed the off-by-one")
    assert captured.ok
    assert captured.data["type"] == "bugfix"

    found = client.search("fixed")
    assert found.ok
    assert found.data["count"] == 1

    ended = client.session_end("s1", "done")
    assert ended.data == {"success": True}

    start = client.session_start("s2", "/work/app")
    text = memory_context_text(start)
    assert text.startswith("<memory-context>\n## Recent Memory (100 tokens)\n\n")
    assert f"[#{captured.data['id']} " in text
    assert text.endswith("fixed the off-by-one\n</memory-context>")


def test_error_responses_are_available_but_not_ok(server: WorkerServer) -> None:
    client = _client(server)
    missing = client.get_observation(404)
    assert missing.status == "error"
    assert missing.available is True
    assert missing.http_status == 404

    bad = client.timeline(1, range_hours=-2)
    assert bad.status == "error"
    assert bad.http_status == 400


def test_read_calls(server: WorkerServer) -> None:
    client = _client(server)
    obs = client.tool_result("s1", "Read", "notes.md", "architecture notes").data
    batch = client.get_observations([obs["id"], 999])
    assert batch.ok
    assert [item["id"] for item in batch.data] == [obs["id"]]
    assert client.timeline(obs["id"]).data["center_id"] == obs["id"]
    assert client.context(max_tokens=10).data == {
        "observations": [],
        "totalTokens": 0,
        "contextText": "",
    }
    assert client.stats().data["totalObservations"] == 1


def test_storage_failure_reads_as_unavailable() -> None:
    response = WorkerResponse(status="unavailable", http_status=503, error="locked")
    assert response.available is False
    assert response.ok is False


class _HtmlHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        body = b"<html>not the worker</html>"
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass


@pytest.fixture
def html_server() -> Iterator[HTTPServer]:
    httpd = HTTPServer(("127.0.0.1", 0), _HtmlHandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield httpd
    finally:
        httpd.shutdown()
        httpd.server_close()


def test_non_json_answer_is_unavailable(html_server: HTTPServer) -> None:
    client = WorkerClient(f"127.0.0.1:{html_server.server_address[1]}")
    response = client.health()
    assert response.status == "unavailable"
    assert "non-json" in (response.error or "")
    assert client.is_available() is False


def test_url_drops_unset_params() -> None:
    client = WorkerClient("http://127.0.0.1:37778/")
    assert client.url("/api/context") == "http://127.0.0.1:37778/api/context"
    assert (
        client.url("/api/context", {"project_path": "/work/app", "max_tokens": None})
        == "http://127.0.0.1:37778/api/context?project_path=%2Fwork%2Fapp"
    )
