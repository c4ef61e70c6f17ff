"""Shared filter and row loader for the analysis layer.

Every aggregate in this package reads the same slice of the ``annotations``
table: the annotations of one project, optionally restricted to some codes
and to a date range, joined to their (still existing) code.  Keeping the
predicate construction in one place guarantees that frequencies, word cloud,
co-occurrence, temporal evolution and user comparison always agree on which
annotations are in scope.

Design notes
------------
- The inner join to ``codes`` is what excludes orphaned annotations (those
  whose code was deleted) from every aggregate.
- Both ends of the date range are inclusive.
- An empty ``code_ids`` sequence means "no restriction", the same as None.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.core.models.annotations import Annotation
from coding_analytics.core.models.codes import Code


@dataclass(frozen=True)
class AnalysisFilter:
    """Scope of one analytics call.

    Attributes:
        project_id: Project whose annotations are aggregated.
        code_ids: Optional restriction to these codes.
        date_from: Inclusive lower bound on ``Annotation.created_at``.
        date_to: Inclusive upper bound on ``Annotation.created_at``.
    """

    project_id: uuid.UUID
    code_ids: Optional[tuple[uuid.UUID, ...]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @classmethod
    def from_dates(
        cls,
        project_id: uuid.UUID,
        code_ids: Optional[Sequence[uuid.UUID]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> AnalysisFilter:
        """Build a filter from calendar dates, covering whole UTC days.

        ``date_to`` is widened to the last microsecond of that day so that an
        annotation created during it is still in range.
        """
        return cls(
            project_id=project_id,
            code_ids=tuple(code_ids) if code_ids else None,
            date_from=(
                datetime.combine(date_from, time.min, tzinfo=timezone.utc)
                if date_from is not None
                else None
            ),
            date_to=(
                datetime.combine(date_to, time.max, tzinfo=timezone.utc)
                if date_to is not None
                else None
            ),
        )


def build_annotation_filters(flt: AnalysisFilter) -> list[ColumnElement[bool]]:
    """Return the WHERE predicates for *flt*.

    The predicates reference both ``Annotation`` and ``Code``; the statement
    they are applied to must join the two.

    Args:
        flt: The analytics scope.

    Returns:
        A non-empty list of SQLAlchemy boolean clauses.
    """
    clauses: list[ColumnElement[bool]] = [
        Annotation.project_id == flt.project_id,
        Code.project_id == flt.project_id,
    ]

    if flt.code_ids:
        clauses.append(Annotation.code_id.in_(flt.code_ids))

    if flt.date_from is not None:
        clauses.append(Annotation.created_at >= flt.date_from)

    if flt.date_to is not None:
        clauses.append(Annotation.created_at <= flt.date_to)

    return clauses


async def fetch_coded_annotations(
    db: AsyncSession, flt: AnalysisFilter
) -> list[tuple[Annotation, Code]]:
    """Load every in-scope annotation together with its code.

    Rows are ordered by ``created_at`` so that callers iterating them see a
    stable, chronological order.
    """
    stmt = (
        select(Annotation, Code)
        .join(Code, Code.id == Annotation.code_id)
        .where(*build_annotation_filters(flt))
        .order_by(Annotation.created_at, Annotation.id)
    )
    result = await db.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


def code_ref(code: Code) -> dict[str, Any]:
    """The ``{code_id, name, color}`` triple every aggregate labels codes with."""
    return {"code_id": str(code.id), "name": code.name, "color": code.color}
