from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

DEFAULT_DATA_DIR = Path.home() / ".openclaw-mem"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "memory.db"


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_key TEXT UNIQUE NOT NULL,
            project_path TEXT,
            started_at TEXT NOT NULL,
            ended_at TEXT,
            summary TEXT,
            summary_tokens INTEGER,
            metadata_json TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project_path);
        CREATE INDEX IF NOT EXISTS idx_sessions_started ON sessions(started_at DESC);

        CREATE TABLE IF NOT EXISTS observations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id INTEGER NOT NULL REFERENCES sessions(id),
            type TEXT NOT NULL,
            tool_name TEXT,
            input TEXT,
            output TEXT,
            summary TEXT,
            tokens INTEGER,
            importance REAL NOT NULL DEFAULT 0.5
                CHECK (importance >= 0.0 AND importance <= 1.0),
            created_at TEXT NOT NULL,
            metadata_json TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_observations_session ON observations(session_id);
        CREATE INDEX IF NOT EXISTS idx_observations_type ON observations(type);
        CREATE INDEX IF NOT EXISTS idx_observations_created ON observations(created_at);
        CREATE INDEX IF NOT EXISTS idx_observations_importance ON observations(importance);

        CREATE VIRTUAL TABLE IF NOT EXISTS observations_fts USING fts5(
            type, tool_name, input, output, summary,
            content='observations',
            content_rowid='id'
        );

        CREATE TRIGGER IF NOT EXISTS observations_ai AFTER INSERT ON observations BEGIN
            INSERT INTO observations_fts(rowid, type, tool_name, input, output, summary)
            VALUES (new.id, new.type, new.tool_name, new.input, new.output, new.summary);
        END;

        CREATE TRIGGER IF NOT EXISTS observations_ad AFTER DELETE ON observations BEGIN
            INSERT INTO observations_fts(
                observations_fts, rowid, type, tool_name, input, output, summary
            )
            VALUES ('delete', old.id, old.type, old.tool_name, old.input, old.output, old.summary);
        END;

        CREATE TRIGGER IF NOT EXISTS observations_au AFTER UPDATE ON observations BEGIN
            INSERT INTO observations_fts(
                observations_fts, rowid, type, tool_name, input, output, summary
            )
            VALUES ('delete', old.id, old.type, old.tool_name, old.input, old.output, old.summary);
            INSERT INTO observations_fts(rowid, type, tool_name, input, output, summary)
            VALUES (new.id, new.type, new.tool_name, new.input, new.output, new.summary);
        END;
        """
    )
    conn.commit()


def rebuild_fts(conn: sqlite3.Connection) -> None:
    conn.execute("INSERT INTO observations_fts(observations_fts) VALUES ('rebuild')")
    conn.commit()


def to_json(data: Any) -> str | None:
    if data is None:
        return None
    return json.dumps(data, ensure_ascii=False)


def from_json(text: str | None) -> dict[str, Any]:
    if not text:
        return {}
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}
