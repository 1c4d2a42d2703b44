from __future__ import annotations

from typing import Final

from .errors import ValidationError

OBSERVATION_TYPES: Final[tuple[str, ...]] = (
    "tool_use",
    "decision",
    "bugfix",
    "architecture",
    "code_change",
    "git_operation",
    "testing",
    "dependency",
    "research",
    "exploration",
    "command",
    "routine",
)

DEFAULT_CONTEXT_TYPES: Final[tuple[str, ...]] = ("decision", "bugfix", "architecture")


def normalize_observation_type(value: str | None) -> str:
    return (value or "").strip().lower()


def validate_observation_type(value: str | None) -> str:
    normalized = normalize_observation_type(value)
    if normalized in OBSERVATION_TYPES:
        return normalized
    if not normalized:
        raise ValidationError("observation type is required")
    raise ValidationError(
        f"Invalid observation type '{normalized}'. Allowed types: {', '.join(OBSERVATION_TYPES)}"
    )
