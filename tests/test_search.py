import sqlite3
from typing import Any

import pytest

from openclaw_mem.errors import QuerySyntaxError, ValidationError
from openclaw_mem.store import MemoryStore, search_response


def _seed(store: MemoryStore) -> dict[str, int]:
    alpha = store.create_session("alpha", "/work/alpha")
    beta = store.create_session("beta", "/work/beta")
    ids = {
        "login_fix": store.create_observation(
            alpha.id,
            "bugfix",
            tool_name="Edit",
            input="fix login redirect",
            output="login redirect fixed",
            created_at="2026-03-01T10:00:00Z",
        ).id,
        "login_note": store.create_observation(
            alpha.id,
            "research",
            tool_name="web_search",
            input="oauth login flows",
            created_at="2026-03-02T10:00:00Z",
        ).id,
        "beta_login": store.create_observation(
            beta.id,
            "decision",
            summary="keep the login page server-rendered",
            created_at="2026-03-03T10:00:00Z",
        ).id,
    }
    return ids


def test_search_ranks_and_returns_result_fields(store: MemoryStore) -> None:
    ids = _seed(store)
    results = store.search("login")
    assert {r.id for r in results} == set(ids.values())
    ranks = [r.rank for r in results]
    assert ranks == sorted(ranks)
    # Two mentions of "login" beat one.
    assert results[0].id == ids["login_fix"]
    assert results[0].tool_name == "Edit"
    assert results[0].type == "bugfix"


def test_search_order_is_stable(store: MemoryStore) -> None:
    _seed(store)
    first = [r.id for r in store.search("login")]
    assert first == [r.id for r in store.search("login")]


def test_search_filters_are_conjunctive(store: MemoryStore) -> None:
    ids = _seed(store)
    assert [r.id for r in store.search("login", type="Research")] == [ids["login_note"]]
    assert [r.id for r in store.search("login", project="/work/beta")] == [ids["beta_login"]]
    since = store.search("login", since="2026-03-02T00:00:00Z")
    assert {r.id for r in since} == {ids["login_note"], ids["beta_login"]}
    assert store.search("login", type="bugfix", project="/work/beta") == []


def test_search_since_accepts_offsets(store: MemoryStore) -> None:
    ids = _seed(store)
    results = store.search("login", since="2026-03-03T12:00:00+02:00")
    assert [r.id for r in results] == [ids["beta_login"]]
    with pytest.raises(ValidationError):
        store.search("login", since="last tuesday")


def test_search_limit(store: MemoryStore) -> None:
    _seed(store)
    assert len(store.search("login", limit=2)) == 2
    assert store.search("login", limit=0) == []


def test_empty_corpus_and_unmatched_query(store: MemoryStore) -> None:
    assert search_response(store, "anything") == {"query": "anything", "results": [], "count": 0}
    _seed(store)
    assert search_response(store, "kangaroo")["count"] == 0
    assert store.search("   ") == []


def test_malformed_query(store: MemoryStore) -> None:
    _seed(store)
    with pytest.raises(QuerySyntaxError):
        store.search('"unterminated')
    response = search_response(store, '"unterminated')
    assert response == {
        "query": '"unterminated',
        "results": [],
        "count": 0,
        "error": "Search query syntax error",
    }


def test_column_like_query_is_a_syntax_error(store: MemoryStore) -> None:
    _seed(store)
    with pytest.raises(QuerySyntaxError):
        store.search("readonly:hello")
    response = search_response(store, "readonly:hello")
    assert response["count"] == 0
    assert response["error"] == "Search query syntax error"


class _LockedConnection:
    def execute(self, *_args: Any, **_kwargs: Any) -> Any:
        exc = sqlite3.OperationalError("database is locked")
        exc.sqlite_errorcode = sqlite3.SQLITE_BUSY
        raise exc


def test_storage_failure_propagates_from_search(store: MemoryStore) -> None:
    conn = store.conn
    store.conn = _LockedConnection()  # type: ignore[assignment]
    try:
        with pytest.raises(sqlite3.OperationalError):
            search_response(store, "login")
    finally:
        store.conn = conn


def test_search_response_serializes_results(store: MemoryStore) -> None:
    ids = _seed(store)
    response = search_response(store, "server", limit=5)
    assert response["count"] == 1
    item = response["results"][0]
    assert item["id"] == ids["beta_login"]
    assert set(item) == {"id", "type", "tool_name", "summary", "created_at", "importance", "rank"}
