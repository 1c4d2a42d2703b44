from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from .. import db
from ..classifier import clamp_importance
from ..errors import DuplicateSessionError, NotFoundError, UnavailableError, ValidationError
from ..observation_types import DEFAULT_CONTEXT_TYPES, validate_observation_type
from . import context as store_context
from . import search as store_search
from . import timeline as store_timeline
from . import utils as store_utils
from .types import Metadata, Observation, SearchResult, Session, metadata_to_dict

logger = logging.getLogger(__name__)


class MemoryStore:
    INPUT_MAX_CHARS = 5000
    OUTPUT_MAX_CHARS = 10000
    RECENT_SESSIONS_LIMIT = 10
    RECENT_OBSERVATIONS_LIMIT = 50

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        check_same_thread: bool = True,
    ):
        self.db_path = Path(db_path).expanduser()
        try:
            self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
            db.initialize_schema(self.conn)
        except (OSError, sqlite3.Error) as exc:
            raise UnavailableError(f"cannot open memory store at {self.db_path}: {exc}") from exc

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def estimate_tokens(text: str) -> int:
        return max(8, int(len(text) / 4))

    # Sessions

    def create_session(
        self,
        session_key: str,
        project_path: str | None = None,
        metadata: Metadata | dict[str, Any] | None = None,
    ) -> Session:
        session_key = (session_key or "").strip()
        if not session_key:
            raise ValidationError("session_key is required")
        try:
            cur = self.conn.execute(
                """
                INSERT INTO sessions(session_key, project_path, started_at, metadata_json)
                VALUES (?, ?, ?, ?)
                """,
                (
                    session_key,
                    project_path or None,
                    store_utils.now_iso(),
                    db.to_json(metadata_to_dict(metadata)),
                ),
            )
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            raise DuplicateSessionError(session_key) from exc
        self.conn.commit()
        lastrowid = cur.lastrowid
        if lastrowid is None:
            raise RuntimeError("Failed to create session")
        session = self.get_session_by_id(int(lastrowid))
        if session is None:
            raise RuntimeError("Failed to load created session")
        logger.debug("created session %s (%s)", session.id, session_key)
        return session

    def get_session(self, session_key: str) -> Session | None:
        row = self.conn.execute(
            "SELECT * FROM sessions WHERE session_key = ?", (session_key,)
        ).fetchone()
        return Session.from_row(row) if row else None

    def get_session_by_id(self, session_id: int) -> Session | None:
        row = self.conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return Session.from_row(row) if row else None

    def end_session(self, session_key: str, summary: str | None = None) -> bool:
        """Close an open session. Returns False if it was already closed."""

        session = self.get_session(session_key)
        if session is None:
            raise NotFoundError(f"session not found: {session_key}")
        cur = self.conn.execute(
            """
            UPDATE sessions
            SET ended_at = ?, summary = ?, summary_tokens = ?
            WHERE id = ? AND ended_at IS NULL
            """,
            (
                store_utils.now_iso(),
                summary or None,
                self.estimate_tokens(summary) if summary else None,
                session.id,
            ),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def recent_sessions(self, limit: int = RECENT_SESSIONS_LIMIT) -> list[Session]:
        rows = self.conn.execute(
            "SELECT * FROM sessions ORDER BY started_at DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [Session.from_row(row) for row in rows]

    # Observations

    def create_observation(
        self,
        session_id: int,
        type: str,
        *,
        tool_name: str | None = None,
        input: str | None = None,
        output: str | None = None,
        summary: str | None = None,
        tokens: int | None = None,
        importance: float = 0.5,
        metadata: Metadata | dict[str, Any] | None = None,
        created_at: str | None = None,
    ) -> Observation:
        """Insert an observation; it is searchable as soon as this returns.

        ``created_at`` is only meant for imports and backfills; it defaults to now.
        """

        obs_type = validate_observation_type(type)
        if self.get_session_by_id(session_id) is None:
            raise NotFoundError(f"session not found: {session_id}")
        if created_at is None:
            stamp = store_utils.now_iso()
        else:
            canonical = store_utils.canonical_timestamp(created_at)
            if canonical is None:
                raise ValidationError(f"invalid created_at: {created_at!r}")
            stamp = canonical
        if tokens is not None and tokens < 0:
            raise ValidationError("tokens must be >= 0")
        cur = self.conn.execute(
            """
            INSERT INTO observations(
                session_id, type, tool_name, input, output, summary,
                tokens, importance, created_at, metadata_json
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session_id,
                obs_type,
                tool_name or None,
                input or None,
                output or None,
                summary or None,
                tokens,
                clamp_importance(importance),
                stamp,
                db.to_json(metadata_to_dict(metadata)),
            ),
        )
        self.conn.commit()
        lastrowid = cur.lastrowid
        if lastrowid is None:
            raise RuntimeError("Failed to create observation")
        observation = self.get_observation(int(lastrowid))
        if observation is None:
            raise RuntimeError("Failed to load created observation")
        return observation

    def get_observation(self, observation_id: int) -> Observation | None:
        row = self.conn.execute(
            "SELECT * FROM observations WHERE id = ?", (observation_id,)
        ).fetchone()
        return Observation.from_row(row) if row else None

    def get_observations(self, ids: Iterable[int]) -> list[Observation]:
        id_list = sorted({int(oid) for oid in ids})
        if not id_list:
            return []
        placeholders = ",".join("?" for _ in id_list)
        rows = self.conn.execute(
            f"""
            SELECT * FROM observations
            WHERE id IN ({placeholders})
            ORDER BY created_at DESC, id DESC
            """,
            id_list,
        ).fetchall()
        return [Observation.from_row(row) for row in rows]

    def session_observations(self, session_id: int) -> list[Observation]:
        rows = self.conn.execute(
            """
            SELECT * FROM observations
            WHERE session_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (session_id,),
        ).fetchall()
        return [Observation.from_row(row) for row in rows]

    def recent_observations(self, limit: int = RECENT_OBSERVATIONS_LIMIT) -> list[Observation]:
        rows = self.conn.execute(
            "SELECT * FROM observations ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [Observation.from_row(row) for row in rows]

    def backfill_observation(
        self,
        observation_id: int,
        *,
        summary: str | None = None,
        metadata: Metadata | dict[str, Any] | None = None,
    ) -> Observation:
        if self.get_observation(observation_id) is None:
            raise NotFoundError(f"observation not found: {observation_id}")
        self.conn.execute(
            """
            UPDATE observations
            SET summary = COALESCE(?, summary),
                metadata_json = COALESCE(?, metadata_json)
            WHERE id = ?
            """,
            (summary or None, db.to_json(metadata_to_dict(metadata)), observation_id),
        )
        self.conn.commit()
        observation = self.get_observation(observation_id)
        if observation is None:
            raise RuntimeError("Failed to load updated observation")
        return observation

    def rebuild_index(self) -> None:
        db.rebuild_fts(self.conn)

    # Retrieval

    def search(
        self,
        query: str,
        *,
        type: str | None = None,
        since: str | None = None,
        project: str | None = None,
        limit: int = store_search.DEFAULT_LIMIT,
    ) -> list[SearchResult]:
        return store_search.search(
            self, query, type=type, since=since, project=project, limit=limit
        )

    def timeline(
        self, center_id: int, range_hours: float = store_timeline.DEFAULT_RANGE_HOURS
    ) -> list[Observation]:
        return store_timeline.timeline(self, center_id, range_hours=range_hours)

    def context_candidates(
        self,
        project_path: str | None = None,
        include_types: Sequence[str] = DEFAULT_CONTEXT_TYPES,
    ) -> list[Observation]:
        return store_context.context_candidates(
            self, project_path=project_path, include_types=include_types
        )

    def get_context_for_injection(
        self,
        project_path: str | None = None,
        max_tokens: int | None = None,
        include_types: Sequence[str] | None = None,
    ) -> store_context.ContextBundle:
        return store_context.get_context_for_injection(
            self,
            project_path=project_path,
            max_tokens=max_tokens,
            include_types=include_types,
        )

    def stats(self) -> dict[str, Any]:
        total_sessions = self.conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]
        open_sessions = self.conn.execute(
            "SELECT COUNT(*) FROM sessions WHERE ended_at IS NULL"
        ).fetchone()[0]
        total_observations = self.conn.execute("SELECT COUNT(*) FROM observations").fetchone()[0]
        by_type = self.conn.execute(
            "SELECT type, COUNT(*) AS count FROM observations GROUP BY type ORDER BY type"
        ).fetchall()
        size_bytes = self.db_path.stat().st_size if self.db_path.exists() else 0
        return {
            "totalSessions": int(total_sessions),
            "openSessions": int(open_sessions),
            "totalObservations": int(total_observations),
            "observationsByType": {row["type"]: int(row["count"]) for row in by_type},
            "database": {"path": str(self.db_path), "size_bytes": size_bytes},
        }
