from __future__ import annotations

import io
import json

import pytest

from openclaw_mem.errors import ValidationError
from openclaw_mem.worker_http import (
    clamp_limit,
    parse_float_value,
    parse_int_value,
    query_param,
    read_json_body,
    reject_cross_origin,
    required_str,
    send_json_response,
)


class DummyHandler:
    def __init__(self, body: bytes = b"", headers: dict[str, str] | None = None) -> None:
        self.headers = headers or {}
        self.rfile = io.BytesIO(body)
        self.wfile = io.BytesIO()
        self.status: int | None = None
        self.response_headers: list[tuple[str, str]] = []
        self.headers_ended = False

    def send_response(self, status: int) -> None:
        self.status = status

    def send_header(self, key: str, value: str) -> None:
        self.response_headers.append((key, value))

    def end_headers(self) -> None:
        self.headers_ended = True


def _header_value(handler: DummyHandler, name: str) -> str | None:
    for key, value in handler.response_headers:
        if key == name:
            return value
    return None


def test_send_json_response() -> None:
    handler = DummyHandler()
    payload = {"ok": True, "text": "naïve"}
    expected_body = json.dumps(payload, ensure_ascii=False).encode("utf-8")

    send_json_response(handler, payload, status=201)

    assert handler.status == 201
    assert _header_value(handler, "Content-Type") == "application/json; charset=utf-8"
    assert _header_value(handler, "Content-Length") == str(len(expected_body))
    assert handler.headers_ended is True
    assert handler.wfile.getvalue() == expected_body


def test_read_json_body() -> None:
    body = json.dumps({"session_key": "s1"}).encode("utf-8")
    handler = DummyHandler(body=body, headers={"Content-Length": str(len(body))})
    assert read_json_body(handler) == {"session_key": "s1"}


def test_read_json_body_empty_invalid_or_not_object() -> None:
    assert read_json_body(DummyHandler(headers={"Content-Length": "0"})) == {}
    invalid = DummyHandler(body=b"not-json", headers={"Content-Length": "8"})
    assert read_json_body(invalid) is None
    listing = DummyHandler(body=b"[1]", headers={"Content-Length": "3"})
    assert read_json_body(listing) is None


@pytest.mark.parametrize(
    "origin",
    ["http://127.0.0.1:37778", "http://localhost", "http://[::1]:9000"],
)
def test_loopback_origins_allowed(origin: str) -> None:
    handler = DummyHandler(headers={"Origin": origin})
    assert reject_cross_origin(handler) is False
    assert handler.status is None


def test_missing_origin_allowed() -> None:
    assert reject_cross_origin(DummyHandler()) is False


@pytest.mark.parametrize(
    "origin",
    ["https://evil.example", "http://127.0.0.1.evil.example", "http://user@localhost", "null"],
)
def test_foreign_origins_rejected(origin: str) -> None:
    handler = DummyHandler(headers={"Origin": origin})
    assert reject_cross_origin(handler) is True
    assert handler.status == 403
    assert json.loads(handler.wfile.getvalue()) == {"error": "forbidden"}


def test_value_parsers() -> None:
    assert parse_int_value(None, field="limit") is None
    assert parse_int_value("7", field="limit") == 7
    with pytest.raises(ValidationError, match="limit must be an integer"):
        parse_int_value("seven", field="limit")
    with pytest.raises(ValidationError):
        parse_int_value(True, field="limit")
    with pytest.raises(ValidationError, match="tokens must be >= 0"):
        parse_int_value(-1, field="tokens", minimum=0)
    assert parse_float_value("1.5", field="range_hours") == 1.5
    with pytest.raises(ValidationError):
        parse_float_value("wide", field="range_hours")
    for raw in ("nan", "inf", float("-inf")):
        with pytest.raises(ValidationError, match="finite"):
            parse_float_value(raw, field="range_hours")


def test_required_str_and_query_param() -> None:
    assert required_str({"session_key": " s1 "}, "session_key") == "s1"
    with pytest.raises(ValidationError, match="session_key required"):
        required_str({}, "session_key")
    with pytest.raises(ValidationError):
        required_str({"session_key": 5}, "session_key")
    assert query_param("project_path=%2Fwork%2Fapp&max_tokens=", "project_path") == "/work/app"
    assert query_param("max_tokens=", "max_tokens") is None


def test_clamp_limit() -> None:
    assert clamp_limit(None, default=10, maximum=200) == 10
    assert clamp_limit(0, default=10, maximum=200) == 1
    assert clamp_limit(5000, default=10, maximum=200) == 200
