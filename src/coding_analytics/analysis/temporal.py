"""Temporal evolution of code usage.

Counts annotations per code in consecutive time buckets.

Bucketing rule
--------------
Boundaries are generated from ``start`` by stepping one interval at a time
while ``boundary <= end``; boundary ``k`` is ``start + k`` intervals, so month
steps never drift (Jan 31 → Feb 29 → Mar 31 in a leap year).  An annotation
belongs to the last boundary ``<= created_at``.  Annotations outside
``[start, end]`` are not counted.  For ``[2024-01-01, 2024-03-01]`` by month
the boundaries are Jan 1, Feb 1 and Mar 1, so annotations made on Jan 5 and
Feb 10 give the series ``[1, 1, 0]``.
"""

from __future__ import annotations

import calendar
import uuid
from bisect import bisect_right
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.analysis._filters import AnalysisFilter, fetch_coded_annotations
from coding_analytics.core.exceptions import InvalidArgumentError
from coding_analytics.core.models.codes import Code

logger = structlog.get_logger(__name__)

VALID_INTERVALS = frozenset({"day", "week", "month"})


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """Shift *value* by whole months, clamping the day to the month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _step(start: datetime, interval: str, k: int) -> datetime:
    if interval == "day":
        return start + timedelta(days=k)
    if interval == "week":
        return start + timedelta(weeks=k)
    return add_months(start, k)


def generate_boundaries(start: datetime, end: datetime, interval: str) -> list[datetime]:
    """Return the bucket boundaries covering ``[start, end]``.

    Raises:
        InvalidArgumentError: If *interval* is not day, week or month.
    """
    if interval not in VALID_INTERVALS:
        raise InvalidArgumentError(
            f"Invalid interval {interval!r}; expected one of {sorted(VALID_INTERVALS)}."
        )
    boundaries: list[datetime] = []
    k = 0
    current = start
    while current <= end:
        boundaries.append(current)
        k += 1
        current = _step(start, interval, k)
    return boundaries


def bucket_index(boundaries: list[datetime], moment: datetime) -> Optional[int]:
    """Index of the last boundary ``<= moment``, or None before the first."""
    position = bisect_right(boundaries, moment) - 1
    return position if position >= 0 else None


def resolve_period(
    start: Optional[datetime],
    end: Optional[datetime],
    default_months: int = 6,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Fill in the default period: ``end`` is now, ``start`` is ``default_months`` earlier."""
    end = _as_utc(end) if end is not None else (now or datetime.now(timezone.utc))
    start = _as_utc(start) if start is not None else add_months(end, -default_months)
    return start, end


async def get_temporal_evolution(
    db: AsyncSession,
    flt: AnalysisFilter,
    interval: str = "month",
    default_months: int = 6,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Annotation counts per code and time bucket.

    The period is ``[flt.date_from, flt.date_to]``; a missing end defaults to
    now and a missing start to ``default_months`` before the end.

    Args:
        db: Active async database session.
        flt: The analytics scope.
        interval: ``"day"``, ``"week"`` or ``"month"``.
        default_months: Look-back used when ``flt.date_from`` is None.
        now: Reference time for the default end (current time if None).

    Returns:
        A dict with keys:

        - ``timeline``: ISO dates of the bucket boundaries.
        - ``series``: ``[{code_id, name, color, data}]`` ordered by name, one
          integer per boundary; codes with no annotation in the period are
          omitted.
        - ``total_annotations``: number of annotations counted.
        - ``period``: ``{start, end, interval}`` as ISO strings.

    Raises:
        InvalidArgumentError: If *interval* is not day, week or month.
    """
    start, end = resolve_period(flt.date_from, flt.date_to, default_months, now)
    boundaries = generate_boundaries(start, end, interval)

    rows = await fetch_coded_annotations(db, replace(flt, date_from=start, date_to=end))

    data: dict[uuid.UUID, list[int]] = {}
    codes: dict[uuid.UUID, Code] = {}
    counted = 0
    for annotation, code in rows:
        position = bucket_index(boundaries, _as_utc(annotation.created_at))
        if position is None:
            continue
        series = data.setdefault(code.id, [0] * len(boundaries))
        series[position] += 1
        codes[code.id] = code
        counted += 1

    ordered = sorted(codes.values(), key=lambda c: (c.name_key, str(c.id)))
    result = {
        "timeline": [b.date().isoformat() for b in boundaries],
        "series": [
            {
                "code_id": str(code.id),
                "name": code.name,
                "color": code.color,
                "data": data[code.id],
            }
            for code in ordered
        ],
        "total_annotations": counted,
        "period": {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "interval": interval,
        },
    }

    logger.debug(
        "analysis.temporal",
        project_id=str(flt.project_id),
        interval=interval,
        buckets=len(boundaries),
        series=len(ordered),
    )
    return result
