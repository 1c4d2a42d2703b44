"""Token-budgeted selection of observations for context injection."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..observation_types import DEFAULT_CONTEXT_TYPES, normalize_observation_type
from . import utils as store_utils
from .types import Observation

if TYPE_CHECKING:
    from ._store import MemoryStore

DEFAULT_MAX_TOKENS = 4000
FALLBACK_TOKENS = 100
MIN_IMPORTANCE = 0.5
CANDIDATE_LIMIT = 100
LINE_TEXT_MAX_CHARS = 200


@dataclass
class BudgetSelection:
    selected: list[Observation] = field(default_factory=list)
    total_tokens: int = 0


@dataclass
class ContextBundle:
    observations: list[Observation]
    total_tokens: int
    context_text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "observations": [obs.to_dict() for obs in self.observations],
            "totalTokens": self.total_tokens,
            "contextText": self.context_text,
        }


def observation_cost(observation: Observation) -> int:
    tokens = observation.tokens
    if tokens is None or tokens <= 0:
        return FALLBACK_TOKENS
    return int(tokens)


def select_for_budget(
    candidates: Sequence[Observation], max_tokens: int | None = None
) -> BudgetSelection:
    """Accept the longest prefix of ``candidates`` that fits ``max_tokens``.

    Stops at the first item that would overflow; later, smaller items are
    not considered.
    """

    budget = DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens
    selection = BudgetSelection()
    for observation in candidates:
        cost = observation_cost(observation)
        if selection.total_tokens + cost > budget:
            break
        selection.selected.append(observation)
        selection.total_tokens += cost
    return selection


def context_candidates(
    store: MemoryStore,
    *,
    project_path: str | None = None,
    include_types: Sequence[str] = DEFAULT_CONTEXT_TYPES,
    min_importance: float = MIN_IMPORTANCE,
    limit: int = CANDIDATE_LIMIT,
) -> list[Observation]:
    types = [normalize_observation_type(t) for t in include_types if t and t.strip()]
    if not types:
        return []
    placeholders = ",".join("?" for _ in types)
    params: list[Any] = [*types, min_importance]
    project_clause = ""
    if project_path:
        project_clause = "AND session_id IN (SELECT id FROM sessions WHERE project_path = ?)"
        params.append(project_path)
    params.append(limit)
    rows = store.conn.execute(
        f"""
        SELECT * FROM observations
        WHERE type IN ({placeholders})
          AND importance >= ?
          {project_clause}
        ORDER BY importance DESC, created_at DESC, id DESC
        LIMIT ?
        """,
        params,
    ).fetchall()
    return [Observation.from_row(row) for row in rows]


def _first_line(text: str | None) -> str:
    if not text:
        return ""
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped[:LINE_TEXT_MAX_CHARS]
    return ""


def observation_line_text(observation: Observation) -> str:
    summary = (observation.summary or "").strip()
    if summary:
        return summary[:LINE_TEXT_MAX_CHARS]
    return (
        _first_line(observation.output)
        or _first_line(observation.input)
        or f"{observation.type}: {observation.tool_name or 'unknown'}"
    )


def observation_date(observation: Observation) -> str:
    parsed = store_utils.parse_iso8601(observation.created_at)
    if parsed is None:
        return observation.created_at[:10]
    return parsed.date().isoformat()


def format_context_line(observation: Observation) -> str:
    date = observation_date(observation)
    return f"[#{observation.id} {date}] {observation_line_text(observation)}"


def format_context_text(observations: Sequence[Observation]) -> str:
    return "\n".join(format_context_line(obs) for obs in observations)


def format_memory_block(context_text: str, total_tokens: int) -> str:
    if not context_text:
        return ""
    return f"## Recent Memory ({total_tokens} tokens)\n\n{context_text}"


def get_context_for_injection(
    store: MemoryStore,
    *,
    project_path: str | None = None,
    max_tokens: int | None = None,
    include_types: Sequence[str] | None = None,
) -> ContextBundle:
    candidates = context_candidates(
        store,
        project_path=project_path,
        include_types=include_types if include_types is not None else DEFAULT_CONTEXT_TYPES,
    )
    selection = select_for_budget(candidates, max_tokens)
    return ContextBundle(
        observations=selection.selected,
        total_tokens=selection.total_tokens,
        context_text=format_context_text(selection.selected),
    )
