"""Persistent storage of text-span annotations.

``AnnotationStore`` is a thin repository over the ``annotations`` table.
Validation and authorization live in
:class:`coding_analytics.core.annotation_index.AnnotationIndex`.

All write methods flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.core.models.annotations import Annotation
from coding_analytics.core.models.codes import Code
from coding_analytics.core.targets import AnnotationTarget, target_key


class AnnotationStore:
    """Repository for :class:`Annotation` rows.

    Args:
        session: An open :class:`sqlalchemy.ext.asyncio.AsyncSession`.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, annotation_id: uuid.UUID) -> Optional[Annotation]:
        return await self.session.get(Annotation, annotation_id)

    async def list_for_target(self, target: AnnotationTarget) -> list[Annotation]:
        """Return the target's annotations ordered by ``start_index`` ascending.

        Ties are broken by ``end_index`` and then ``created_at`` so the order
        is stable between calls.
        """
        kind, target_id = target_key(target)
        stmt = (
            select(Annotation)
            .where(
                Annotation.target_kind == kind,
                Annotation.target_id == target_id,
            )
            .order_by(
                Annotation.start_index,
                Annotation.end_index,
                Annotation.created_at,
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_code(self, code_id: uuid.UUID) -> list[Annotation]:
        """Return the code's annotations, newest first."""
        stmt = (
            select(Annotation)
            .where(Annotation.code_id == code_id)
            .order_by(Annotation.created_at.desc(), Annotation.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_orphaned(self, project_id: uuid.UUID) -> list[Annotation]:
        """Return annotations of the project whose code no longer exists."""
        stmt = (
            select(Annotation)
            .outerjoin(Code, Code.id == Annotation.code_id)
            .where(
                Annotation.project_id == project_id,
                Code.id.is_(None),
            )
            .order_by(Annotation.created_at, Annotation.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, annotation: Annotation) -> Annotation:
        self.session.add(annotation)
        await self.session.flush()
        return annotation

    async def delete(self, annotation: Annotation) -> None:
        await self.session.delete(annotation)
        await self.session.flush()
