from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from ..errors import QuerySyntaxError, ValidationError
from ..observation_types import normalize_observation_type
from . import utils as store_utils
from .types import SearchResult

if TYPE_CHECKING:
    from ._store import MemoryStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 200
SYNTAX_ERROR_MESSAGE = "Search query syntax error"

# Primary result codes that mean the database itself failed. MATCH reports
# bad expressions as plain SQLITE_ERROR.
_STORAGE_FAILURE_CODES = frozenset(
    {
        sqlite3.SQLITE_BUSY,
        sqlite3.SQLITE_LOCKED,
        sqlite3.SQLITE_READONLY,
        sqlite3.SQLITE_IOERR,
        sqlite3.SQLITE_CORRUPT,
        sqlite3.SQLITE_FULL,
        sqlite3.SQLITE_CANTOPEN,
        sqlite3.SQLITE_NOTADB,
    }
)


def is_storage_failure(exc: sqlite3.Error) -> bool:
    code = getattr(exc, "sqlite_errorcode", None)
    if code is None:
        return True
    return (code & 0xFF) in _STORAGE_FAILURE_CODES


def normalize_since(since: str | None) -> str | None:
    if since is None or not since.strip():
        return None
    canonical = store_utils.canonical_timestamp(since)
    if canonical is None:
        raise ValidationError(f"invalid since timestamp: {since!r}")
    return canonical


def search(
    store: MemoryStore,
    query: str,
    *,
    type: str | None = None,
    since: str | None = None,
    project: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[SearchResult]:
    """Rank observations against an FTS5 query.

    Results are ordered by bm25 (lower is more relevant), newest id first on
    ties. Malformed FTS expressions raise QuerySyntaxError.
    """

    if not query or not query.strip():
        return []
    if limit <= 0:
        return []
    params: list[Any] = [query]
    where_clauses = ["observations_fts MATCH ?"]
    join_sessions = False
    if type:
        where_clauses.append("o.type = ?")
        params.append(normalize_observation_type(type))
    since_value = normalize_since(since)
    if since_value:
        where_clauses.append("o.created_at >= ?")
        params.append(since_value)
    if project:
        where_clauses.append("s.project_path = ?")
        params.append(project)
        join_sessions = True
    where = " AND ".join(where_clauses)
    join_clause = "JOIN sessions s ON s.id = o.session_id" if join_sessions else ""
    sql = f"""
        SELECT o.id, o.type, o.tool_name, o.summary, o.created_at, o.importance,
            bm25(observations_fts) AS rank
        FROM observations_fts
        JOIN observations o ON o.id = observations_fts.rowid
        {join_clause}
        WHERE {where}
        ORDER BY rank ASC, o.id DESC
        LIMIT ?
    """
    params.append(limit)
    try:
        rows = store.conn.execute(sql, params).fetchall()
    except sqlite3.OperationalError as exc:
        if is_storage_failure(exc):
            raise
        raise QuerySyntaxError(query, str(exc)) from exc
    return [
        SearchResult(
            id=int(row["id"]),
            type=row["type"],
            tool_name=row["tool_name"],
            summary=row["summary"],
            created_at=row["created_at"],
            importance=float(row["importance"]),
            rank=float(row["rank"]),
        )
        for row in rows
    ]


def search_response(
    store: MemoryStore,
    query: str,
    *,
    type: str | None = None,
    since: str | None = None,
    project: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> dict[str, Any]:
    try:
        results = search(store, query, type=type, since=since, project=project, limit=limit)
    except QuerySyntaxError as exc:
        logger.info("search query rejected: %s", exc)
        return {"query": query, "results": [], "count": 0, "error": SYNTAX_ERROR_MESSAGE}
    return {
        "query": query,
        "results": [item.to_dict() for item in results],
        "count": len(results),
    }
