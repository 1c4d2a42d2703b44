from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Literal

from .. import db


@dataclass(frozen=True)
class CaptureMetadata:
    """Attached to observations recorded by the tool-result hook."""

    source: Literal["hook"] = "hook"
    classified: bool = False
    input_truncated: bool = False
    output_truncated: bool = False
    rule: str | None = None


@dataclass(frozen=True)
class ManualMetadata:
    source: Literal["manual"] = "manual"
    note: str | None = None


@dataclass(frozen=True)
class ExtraMetadata:
    values: dict[str, Any] = field(default_factory=dict)


Metadata = CaptureMetadata | ManualMetadata | ExtraMetadata


def metadata_from_dict(data: dict[str, Any] | None) -> Metadata | None:
    if not data:
        return None
    source = data.get("source")
    if source == "hook":
        rule = data.get("rule")
        return CaptureMetadata(
            classified=bool(data.get("classified", False)),
            input_truncated=bool(data.get("input_truncated", False)),
            output_truncated=bool(data.get("output_truncated", False)),
            rule=str(rule) if rule is not None else None,
        )
    if source == "manual":
        note = data.get("note")
        return ManualMetadata(note=str(note) if note is not None else None)
    return ExtraMetadata(values=dict(data))


def metadata_to_dict(metadata: Metadata | dict[str, Any] | None) -> dict[str, Any] | None:
    if metadata is None:
        return None
    if isinstance(metadata, dict):
        return dict(metadata) or None
    if isinstance(metadata, ExtraMetadata):
        return dict(metadata.values) or None
    if isinstance(metadata, CaptureMetadata):
        payload: dict[str, Any] = {
            "source": metadata.source,
            "classified": metadata.classified,
            "input_truncated": metadata.input_truncated,
            "output_truncated": metadata.output_truncated,
        }
        if metadata.rule:
            payload["rule"] = metadata.rule
        return payload
    payload = {"source": metadata.source}
    if metadata.note:
        payload["note"] = metadata.note
    return payload


@dataclass
class Session:
    id: int
    session_key: str
    project_path: str | None
    started_at: str
    ended_at: str | None
    summary: str | None
    summary_tokens: int | None
    metadata: Metadata | None

    @property
    def active(self) -> bool:
        return self.ended_at is None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Session:
        return cls(
            id=int(row["id"]),
            session_key=row["session_key"],
            project_path=row["project_path"],
            started_at=row["started_at"],
            ended_at=row["ended_at"],
            summary=row["summary"],
            summary_tokens=row["summary_tokens"],
            metadata=metadata_from_dict(db.from_json(row["metadata_json"])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_key": self.session_key,
            "project_path": self.project_path,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "summary": self.summary,
            "summary_tokens": self.summary_tokens,
            "metadata": metadata_to_dict(self.metadata),
        }


@dataclass
class Observation:
    id: int
    session_id: int
    type: str
    tool_name: str | None
    input: str | None
    output: str | None
    summary: str | None
    tokens: int | None
    importance: float
    created_at: str
    metadata: Metadata | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Observation:
        return cls(
            id=int(row["id"]),
            session_id=int(row["session_id"]),
            type=row["type"],
            tool_name=row["tool_name"],
            input=row["input"],
            output=row["output"],
            summary=row["summary"],
            tokens=row["tokens"],
            importance=float(row["importance"]),
            created_at=row["created_at"],
            metadata=metadata_from_dict(db.from_json(row["metadata_json"])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type,
            "tool_name": self.tool_name,
            "input": self.input,
            "output": self.output,
            "summary": self.summary,
            "tokens": self.tokens,
            "importance": self.importance,
            "created_at": self.created_at,
            "metadata": metadata_to_dict(self.metadata),
        }


@dataclass
class SearchResult:
    id: int
    type: str
    tool_name: str | None
    summary: str | None
    created_at: str
    importance: float
    rank: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "tool_name": self.tool_name,
            "summary": self.summary,
            "created_at": self.created_at,
            "importance": self.importance,
            "rank": self.rank,
        }
