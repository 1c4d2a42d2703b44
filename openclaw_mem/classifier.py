"""Rule-based classification of tool activity into typed observations.

The rule table is ordered; the first rule whose condition matches decides the
observation type and its base importance. Output-driven adjustments are then
summed and the result is clamped to ``[0.0, 1.0]`` once.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from .observation_types import normalize_observation_type

PACKAGE_MANAGER_KEYWORDS: Final[tuple[str, ...]] = (
    "npm",
    "yarn",
    "pnpm",
    "pip install",
    "poetry add",
    "uv add",
    "cargo add",
    "brew install",
    "apt-get",
    "apt install",
)

# "passed" lifts "fixed, tests passed" to 1.0. It also lifts plain testing
# output such as "tests passed" from 0.6 to 0.7.
OUTCOME_SIGNALS: Final[tuple[str, ...]] = ("error", "failed", "passed")
OUTCOME_BONUS: Final[float] = 0.1
COMPLETION_SIGNALS: Final[tuple[str, ...]] = ("success", "completed")
COMPLETION_BONUS: Final[float] = 0.05

DEFAULT_TYPE: Final[str] = "tool_use"
DEFAULT_IMPORTANCE: Final[float] = 0.5


@dataclass(frozen=True)
class Signals:
    tool: str
    input: str
    output: str

    @classmethod
    def from_raw(cls, tool_name: str | None, input: str | None, output: str | None) -> Signals:
        return cls(
            tool=(tool_name or "").lower(),
            input=(input or "").lower(),
            output=(output or "").lower(),
        )


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    matches: Callable[[Signals], bool]
    type: str
    importance: float


@dataclass(frozen=True)
class Classification:
    type: str
    importance: float
    rule: str = "default"


def _mentions(text: str, *needles: str) -> bool:
    return any(needle in text for needle in needles)


def _is_shell_tool(signals: Signals) -> bool:
    return _mentions(signals.tool, "exec", "bash")


CLASSIFICATION_RULES: Final[tuple[ClassificationRule, ...]] = (
    ClassificationRule(
        "fix_signal",
        lambda s: _mentions(s.input, "fix") or _mentions(s.output, "fixed", "resolved", "error"),
        "bugfix",
        0.9,
    ),
    ClassificationRule(
        "write_tool",
        lambda s: _mentions(s.tool, "write", "edit"),
        "code_change",
        0.7,
    ),
    ClassificationRule(
        "git_command",
        lambda s: _is_shell_tool(s) and _mentions(s.input, "git"),
        "git_operation",
        0.6,
    ),
    ClassificationRule(
        "package_manager",
        lambda s: _is_shell_tool(s) and _mentions(s.input, *PACKAGE_MANAGER_KEYWORDS),
        "dependency",
        0.5,
    ),
    ClassificationRule(
        "test_signal",
        lambda s: _mentions(s.input, "test") or _mentions(s.output, "passed", "failed"),
        "testing",
        0.6,
    ),
    ClassificationRule(
        "search_tool",
        lambda s: _mentions(s.tool, "search") or s.tool.startswith("web"),
        "research",
        0.4,
    ),
    ClassificationRule(
        "read_tool",
        lambda s: _mentions(s.tool, "read"),
        "exploration",
        0.3,
    ),
)

# Base importance for callers that pick the type themselves. Every type the
# rule table emits carries the same base here.
TYPE_BASE_IMPORTANCE: Final[dict[str, float]] = {
    "bugfix": 0.9,
    "architecture": 0.9,
    "decision": 0.85,
    "code_change": 0.7,
    "git_operation": 0.6,
    "testing": 0.6,
    "dependency": 0.5,
    "tool_use": 0.5,
    "research": 0.4,
    "command": 0.4,
    "exploration": 0.3,
    "routine": 0.2,
}


def clamp_importance(value: float) -> float:
    return round(min(1.0, max(0.0, float(value))), 4)


def importance_adjustment(output: str | None) -> float:
    lowered = (output or "").lower()
    bonus = 0.0
    if _mentions(lowered, *OUTCOME_SIGNALS):
        bonus += OUTCOME_BONUS
    if _mentions(lowered, *COMPLETION_SIGNALS):
        bonus += COMPLETION_BONUS
    return bonus


def match_rule(signals: Signals) -> ClassificationRule | None:
    for rule in CLASSIFICATION_RULES:
        if rule.matches(signals):
            return rule
    return None


def classify(tool_name: str | None, input: str | None, output: str | None) -> Classification:
    signals = Signals.from_raw(tool_name, input, output)
    rule = match_rule(signals)
    if rule is None:
        base_type, base, name = DEFAULT_TYPE, DEFAULT_IMPORTANCE, "default"
    else:
        base_type, base, name = rule.type, rule.importance, rule.name
    return Classification(
        type=base_type,
        importance=clamp_importance(base + importance_adjustment(output)),
        rule=name,
    )


def score_importance(observation_type: str, output: str | None) -> float:
    base = TYPE_BASE_IMPORTANCE.get(
        normalize_observation_type(observation_type), DEFAULT_IMPORTANCE
    )
    return clamp_importance(base + importance_adjustment(output))
