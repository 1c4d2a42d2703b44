from __future__ import annotations

from ._store import MemoryStore
from .context import BudgetSelection, ContextBundle, format_context_text, select_for_budget
from .search import search_response
from .types import (
    CaptureMetadata,
    ExtraMetadata,
    ManualMetadata,
    Metadata,
    Observation,
    SearchResult,
    Session,
)

__all__ = [
    "BudgetSelection",
    "CaptureMetadata",
    "ContextBundle",
    "ExtraMetadata",
    "ManualMetadata",
    "MemoryStore",
    "Metadata",
    "Observation",
    "SearchResult",
    "Session",
    "format_context_text",
    "search_response",
    "select_for_budget",
]
