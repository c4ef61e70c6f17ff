"""Descriptive statistics over coded annotations.

Computes code frequencies (flat and grouped by parent), the per-user coding
matrix, and the project-level coding statistics.

All public functions are async and accept an ``AsyncSession`` plus an
:class:`~coding_analytics.analysis._filters.AnalysisFilter` (or a project
id).  They return plain Python dicts/lists so callers can pass the results
directly to FastAPI's JSON serializer without further conversion.

Design notes
------------
- Counting is done in SQL with ``GROUP BY``; grouping, percentages and
  ordering are done in Python on the (small) aggregated rows.
- Percentages are distributed with the largest-remainder method on
  hundredths, so the returned values have two decimals and always add up to
  exactly 100 over a non-empty result.
- UUIDs in returned dicts are strings so callers do not need a custom JSON
  encoder.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.analysis._filters import AnalysisFilter, build_annotation_filters
from coding_analytics.core.collaborators import UserDirectory
from coding_analytics.core.models.annotations import Annotation
from coding_analytics.core.models.codes import Code

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _percentages(counts: list[int]) -> list[float]:
    """Return ``count / total * 100`` for each count, rounded to 2 decimals.

    Rounding uses integer hundredths and the largest-remainder method: each
    share is floored, then the missing hundredths go to the shares with the
    largest remainders (earlier entries win ties).
    """
    total = sum(counts)
    if total == 0:
        return [0.0 for _ in counts]
    floors: list[int] = []
    remainders: list[int] = []
    for count in counts:
        q, r = divmod(count * 10000, total)
        floors.append(q)
        remainders.append(r)
    missing = 10000 - sum(floors)
    order = sorted(range(len(counts)), key=lambda i: -remainders[i])
    for i in order[:missing]:
        floors[i] += 1
    return [hundredths / 100 for hundredths in floors]


def group_frequencies(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group flat frequency rows under their top-most ancestor in *rows*.

    A row is a group header when its parent is absent from *rows* (roots, and
    codes whose parent had no annotations in scope).  Any other row is
    attributed to the header reached by following ``parent_id`` through
    *rows*, however deep.

    Args:
        rows: Flat frequency rows with ``code_id``, ``parent_id`` and ``count``.

    Returns:
        Groups ordered by ``total`` descending, each with ``children`` ordered
        by ``count`` descending.
    """
    by_id = {row["code_id"]: row for row in rows}

    def _header_of(row: dict[str, Any]) -> str:
        seen = {row["code_id"]}
        current = row
        while current["parent_id"] in by_id and current["parent_id"] not in seen:
            current = by_id[current["parent_id"]]
            seen.add(current["code_id"])
        return current["code_id"]

    groups: dict[str, dict[str, Any]] = {}
    for row in rows:
        header_id = _header_of(row)
        if header_id not in groups:
            header = by_id[header_id]
            groups[header_id] = {
                "code_id": header["code_id"],
                "name": header["name"],
                "color": header["color"],
                "count": header["count"],
                "percentage": header["percentage"],
                "total": header["count"],
                "children": [],
            }
        if row["code_id"] != header_id:
            groups[header_id]["children"].append(row)
            groups[header_id]["total"] += row["count"]

    ordered = sorted(groups.values(), key=lambda g: (-g["total"], g["name"].casefold()))
    for group in ordered:
        group["children"].sort(key=lambda c: (-c["count"], c["name"].casefold()))
    return ordered


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def get_code_frequencies(db: AsyncSession, flt: AnalysisFilter) -> dict[str, Any]:
    """Annotation counts per code, flat and grouped by parent.

    Only codes with at least one annotation in scope are returned.

    Args:
        db: Active async database session.
        flt: The analytics scope.

    Returns:
        A dict with keys:

        - ``frequencies``: ``[{code_id, name, color, parent_id, count,
          percentage}]`` ordered by count descending.
        - ``groups``: see :func:`group_frequencies`.
        - ``total_annotations``: sum of all counts.
    """
    stmt = (
        select(
            Code.id,
            Code.name,
            Code.color,
            Code.parent_id,
            func.count(Annotation.id).label("cnt"),
        )
        .join(Annotation, Annotation.code_id == Code.id)
        .where(*build_annotation_filters(flt))
        .group_by(Code.id, Code.name, Code.color, Code.parent_id)
    )
    result = await db.execute(stmt)
    raw = sorted(result.all(), key=lambda r: (-r.cnt, r.name.casefold()))

    counts = [int(r.cnt) for r in raw]
    shares = _percentages(counts)
    frequencies = [
        {
            "code_id": str(r.id),
            "name": r.name,
            "color": r.color,
            "parent_id": str(r.parent_id) if r.parent_id else None,
            "count": count,
            "percentage": share,
        }
        for r, count, share in zip(raw, counts, shares)
    ]
    total = sum(counts)

    logger.debug(
        "analysis.frequencies",
        project_id=str(flt.project_id),
        codes=len(frequencies),
        total_annotations=total,
    )
    return {
        "frequencies": frequencies,
        "groups": group_frequencies(frequencies),
        "total_annotations": total,
    }


async def get_user_comparison(
    db: AsyncSession,
    flt: AnalysisFilter,
    users: UserDirectory,
) -> dict[str, Any]:
    """Per-user annotation counts for every code observed in scope.

    Args:
        db: Active async database session.
        flt: The analytics scope.
        users: Directory used to label rows with display names.

    Returns:
        A dict with keys:

        - ``users``: ``[{user_id, user_name, total, percentage, codes:
          {code_id: count}}]`` ordered by total descending; ``percentage`` is
          the user's share of all in-scope annotations (the column sums to
          100); every observed code appears in ``codes``, with 0 where the
          user never applied it.
        - ``codes``: the observed codes ``[{code_id, name, color}]`` ordered
          by name, i.e. the column headers.
        - ``summary``: ``{total_users, total_annotations, average_per_user}``.
    """
    stmt = (
        select(
            Annotation.user_id,
            Code.id,
            Code.name,
            Code.color,
            func.count(Annotation.id).label("cnt"),
        )
        .join(Code, Code.id == Annotation.code_id)
        .where(*build_annotation_filters(flt))
        .group_by(Annotation.user_id, Code.id, Code.name, Code.color)
    )
    result = await db.execute(stmt)
    rows = result.all()

    columns: dict[uuid.UUID, dict[str, Any]] = {}
    per_user: dict[uuid.UUID, dict[str, int]] = {}
    for r in rows:
        columns.setdefault(r.id, {"code_id": str(r.id), "name": r.name, "color": r.color})
        per_user.setdefault(r.user_id, {})[str(r.id)] = int(r.cnt)

    code_columns = sorted(columns.values(), key=lambda c: (c["name"].casefold(), c["code_id"]))

    table: list[dict[str, Any]] = []
    for user_id, counts in per_user.items():
        table.append(
            {
                "user_id": str(user_id),
                "user_name": await users.display_name(user_id),
                "total": sum(counts.values()),
                "codes": {c["code_id"]: counts.get(c["code_id"], 0) for c in code_columns},
            }
        )
    table.sort(key=lambda u: (-u["total"], u["user_name"].casefold(), u["user_id"]))
    for row, share in zip(table, _percentages([u["total"] for u in table])):
        row["percentage"] = share

    total_annotations = sum(u["total"] for u in table)
    summary = {
        "total_users": len(table),
        "total_annotations": total_annotations,
        "average_per_user": round(total_annotations / len(table), 2) if table else 0.0,
    }

    logger.debug(
        "analysis.user_comparison",
        project_id=str(flt.project_id),
        users=len(table),
        codes=len(code_columns),
    )
    return {"users": table, "codes": code_columns, "summary": summary}


async def get_coding_statistics(
    db: AsyncSession,
    project_id: uuid.UUID,
    users: UserDirectory,
    top_codes: int = 10,
    top_users: Optional[int] = 5,
) -> dict[str, Any]:
    """Headline numbers for a project's coding effort.

    Args:
        db: Active async database session.
        project_id: Project to summarise.
        users: Directory used to label annotators.
        top_codes: Number of codes to list, most used first.  Codes without
            annotations are listed too when there are fewer used codes.
        top_users: Number of annotators to list, most active first.

    Returns:
        ``{total_codes, total_annotations, top_codes: [{code_id, name, color,
        count}], top_users: [{user_id, user_name, count}]}``.
    """
    total_codes = (
        await db.execute(select(func.count(Code.id)).where(Code.project_id == project_id))
    ).scalar_one()

    scope = build_annotation_filters(AnalysisFilter(project_id=project_id))
    total_annotations = (
        await db.execute(
            select(func.count(Annotation.id))
            .join(Code, Code.id == Annotation.code_id)
            .where(*scope)
        )
    ).scalar_one()

    cnt = func.count(Annotation.id).label("cnt")
    code_rows = (
        await db.execute(
            select(Code.id, Code.name, Code.color, cnt)
            .outerjoin(Annotation, Annotation.code_id == Code.id)
            .where(Code.project_id == project_id)
            .group_by(Code.id, Code.name, Code.color)
            .order_by(cnt.desc(), Code.name_key)
            .limit(top_codes)
        )
    ).all()

    user_cnt = func.count(Annotation.id).label("cnt")
    user_rows = (
        await db.execute(
            select(Annotation.user_id, user_cnt)
            .join(Code, Code.id == Annotation.code_id)
            .where(*scope)
            .group_by(Annotation.user_id)
            .order_by(user_cnt.desc(), Annotation.user_id)
            .limit(top_users)
        )
    ).all()

    return {
        "total_codes": int(total_codes),
        "total_annotations": int(total_annotations),
        "top_codes": [
            {"code_id": str(r.id), "name": r.name, "color": r.color, "count": int(r.cnt)}
            for r in code_rows
        ],
        "top_users": [
            {
                "user_id": str(r.user_id),
                "user_name": await users.display_name(r.user_id),
                "count": int(r.cnt),
            }
            for r in user_rows
        ],
    }
