from __future__ import annotations

import datetime as dt

TRUNCATION_MARKER = "... [truncated]"


def format_timestamp(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.UTC)
    return value.astimezone(dt.UTC).isoformat(timespec="microseconds")


def now_iso() -> str:
    return format_timestamp(dt.datetime.now(dt.UTC))


def parse_iso8601(value: str) -> dt.datetime | None:
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def canonical_timestamp(value: str) -> str | None:
    """Rewrite any ISO-8601 string into the stored created_at format."""
    parsed = parse_iso8601(value)
    if parsed is None:
        return None
    return format_timestamp(parsed)


def truncate_for_storage(text: str | None, max_chars: int) -> tuple[str | None, bool]:
    if text is None:
        return None, False
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars] + TRUNCATION_MARKER, True
