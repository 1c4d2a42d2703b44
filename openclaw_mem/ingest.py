"""Write paths shared by the worker routes: session get-or-create and captures."""

from __future__ import annotations

import json
import logging
from typing import Any

from .classifier import classify, score_importance
from .errors import DuplicateSessionError, ValidationError
from .store import CaptureMetadata, MemoryStore, Observation, Session
from .store.types import Metadata
from .store.utils import truncate_for_storage

logger = logging.getLogger(__name__)


def ensure_session(
    store: MemoryStore, session_key: str, project_path: str | None = None
) -> Session:
    existing = store.get_session(session_key)
    if existing is not None:
        return existing
    try:
        return store.create_session(session_key, project_path)
    except DuplicateSessionError:
        # Lost a race with another writer on the same database file.
        session = store.get_session(session_key)
        if session is None:
            raise
        return session


def tool_text(value: Any) -> str | None:
    """Render a hook-supplied tool input/output as stored text."""

    if value is None:
        return None
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return str(value)


def record_observation(
    store: MemoryStore,
    session_key: str,
    observation_type: str,
    *,
    project_path: str | None = None,
    tool_name: str | None = None,
    input: str | None = None,
    output: str | None = None,
    summary: str | None = None,
    tokens: int | None = None,
    importance: float | None = None,
    metadata: Metadata | dict[str, Any] | None = None,
) -> Observation:
    session = ensure_session(store, session_key, project_path)
    if importance is None:
        importance = score_importance(observation_type, output)
    return store.create_observation(
        session.id,
        observation_type,
        tool_name=tool_name,
        input=input,
        output=output,
        summary=summary,
        tokens=tokens,
        importance=importance,
        metadata=metadata,
    )


def capture_tool_result(
    store: MemoryStore,
    session_key: str,
    tool_name: str,
    tool_input: Any,
    tool_output: Any,
    *,
    observation_type: str | None = None,
    importance: float | None = None,
    project_path: str | None = None,
) -> Observation:
    """Classify and store one tool invocation reported by the agent hook.

    Text is truncated to the store limits before it is written. A caller-given
    type or importance overrides the classifier for that field only.
    """

    if not tool_name or not tool_name.strip():
        raise ValidationError("tool_name required")
    raw_input = tool_text(tool_input)
    raw_output = tool_text(tool_output)
    classification = classify(tool_name, raw_input, raw_output)
    stored_input, input_truncated = truncate_for_storage(raw_input, MemoryStore.INPUT_MAX_CHARS)
    stored_output, output_truncated = truncate_for_storage(
        raw_output, MemoryStore.OUTPUT_MAX_CHARS
    )
    classified = not observation_type
    resolved_type = classification.type if classified else str(observation_type)
    if importance is None:
        if classified:
            importance = classification.importance
        else:
            importance = score_importance(resolved_type, raw_output)
    metadata = CaptureMetadata(
        classified=classified,
        input_truncated=input_truncated,
        output_truncated=output_truncated,
        rule=classification.rule if classified else None,
    )
    observation = record_observation(
        store,
        session_key,
        resolved_type,
        project_path=project_path,
        tool_name=tool_name.strip(),
        input=stored_input,
        output=stored_output,
        importance=importance,
        metadata=metadata,
    )
    logger.debug(
        "captured %s as %s (importance %.2f)", tool_name, observation.type, observation.importance
    )
    return observation
