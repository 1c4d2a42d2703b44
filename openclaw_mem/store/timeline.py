from __future__ import annotations

import datetime as dt
import math
from typing import TYPE_CHECKING

from ..errors import ValidationError
from . import utils as store_utils
from .types import Observation

if TYPE_CHECKING:
    from ._store import MemoryStore

DEFAULT_RANGE_HOURS = 2

_WINDOW_FLOOR = dt.datetime.min.replace(tzinfo=dt.UTC)
_WINDOW_CEILING = dt.datetime.max.replace(tzinfo=dt.UTC)


def window_bounds(created_at: str, range_hours: float) -> tuple[str, str] | None:
    center = store_utils.parse_iso8601(created_at)
    if center is None:
        return None
    # Ranges past the datetime limits clamp to the whole representable span.
    try:
        delta = dt.timedelta(hours=range_hours)
    except OverflowError:
        delta = dt.timedelta.max
    try:
        start = center - delta
    except OverflowError:
        start = _WINDOW_FLOOR
    try:
        end = center + delta
    except OverflowError:
        end = _WINDOW_CEILING
    return store_utils.format_timestamp(start), store_utils.format_timestamp(end)


def timeline(
    store: MemoryStore,
    center_id: int,
    *,
    range_hours: float = DEFAULT_RANGE_HOURS,
) -> list[Observation]:
    """Observations within ``range_hours`` of the center, oldest first.

    Both window edges are inclusive. An unknown center yields an empty list.
    """

    if not math.isfinite(range_hours):
        raise ValidationError("range_hours must be a finite number")
    if range_hours < 0:
        raise ValidationError("range_hours must be >= 0")
    center = store.get_observation(center_id)
    if center is None:
        return []
    bounds = window_bounds(center.created_at, range_hours)
    if bounds is None:
        return [center]
    start, end = bounds
    rows = store.conn.execute(
        """
        SELECT * FROM observations
        WHERE created_at BETWEEN ? AND ?
        ORDER BY created_at ASC, id ASC
        """,
        (start, end),
    ).fetchall()
    return [Observation.from_row(row) for row in rows]
