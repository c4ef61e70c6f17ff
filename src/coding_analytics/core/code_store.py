"""Persistent storage of code taxonomy nodes.

``CodeStore`` is a thin repository over the ``codes`` table.  It does not
enforce taxonomy rules (authorization, acyclicity, hoisting order); that is
the job of :class:`coding_analytics.core.taxonomy.TaxonomyManager`.  The one
rule it does guarantee is name uniqueness, because that lives in the
``uq_code_project_name_key`` constraint: :meth:`add` and :meth:`flush`
translate the constraint violation into :class:`ConflictError`.

All write methods flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.core.exceptions import ConflictError
from coding_analytics.core.models.annotations import Annotation
from coding_analytics.core.models.codes import Code

logger = structlog.get_logger(__name__)


class CodeStore:
    """Repository for :class:`Code` rows.

    Args:
        session: An open :class:`sqlalchemy.ext.asyncio.AsyncSession`.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, code_id: uuid.UUID) -> Optional[Code]:
        return await self.session.get(Code, code_id)

    async def get_in_project(
        self, code_id: uuid.UUID, project_id: uuid.UUID
    ) -> Optional[Code]:
        """Return the code only if it belongs to *project_id*."""
        stmt = select(Code).where(Code.id == code_id, Code.project_id == project_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_name_key(
        self, project_id: uuid.UUID, name_key: str
    ) -> Optional[Code]:
        stmt = select(Code).where(
            Code.project_id == project_id,
            Code.name_key == name_key,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_project(self, project_id: uuid.UUID) -> list[Code]:
        """Return every code of the project as a flat list ordered by name."""
        stmt = (
            select(Code)
            .where(Code.project_id == project_id)
            .order_by(Code.name_key, Code.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_children(self, code_id: uuid.UUID) -> list[Code]:
        stmt = select(Code).where(Code.parent_id == code_id).order_by(Code.name_key)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def parent_id_of(self, code_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Return the parent id of a code (None for roots and unknown ids).

        Used by the cycle check, which only needs one column per step.
        """
        stmt = select(Code.parent_id).where(Code.id == code_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def annotation_counts(self, project_id: uuid.UUID) -> dict[uuid.UUID, int]:
        """Return ``{code_id: annotation count}`` for codes of the project.

        Codes without annotations are absent from the mapping.
        """
        stmt = (
            select(Annotation.code_id, func.count(Annotation.id))
            .join(Code, Code.id == Annotation.code_id)
            .where(Code.project_id == project_id)
            .group_by(Annotation.code_id)
        )
        result = await self.session.execute(stmt)
        return {code_id: int(count) for code_id, count in result.all()}

    async def annotation_count(self, code_id: uuid.UUID) -> int:
        stmt = select(func.count(Annotation.id)).where(Annotation.code_id == code_id)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add(self, code: Code) -> Code:
        """Insert *code* and flush.

        Raises:
            ConflictError: If the project already has a code with the same
                name key (including a concurrent insert that won the race).
        """
        self.session.add(code)
        await self.flush(code)
        return code

    async def flush(self, code: Code) -> None:
        """Flush pending changes of *code*, mapping name collisions to ConflictError.

        After a ConflictError the session must be rolled back by its owner.
        """
        try:
            await self.session.flush()
        except IntegrityError as exc:
            logger.info(
                "code_store.name_conflict",
                project_id=str(code.project_id),
                name=code.name,
            )
            raise ConflictError(code.project_id, code.name) from exc

    async def reparent_children(
        self, code_id: uuid.UUID, new_parent_id: Optional[uuid.UUID]
    ) -> int:
        """Point every direct child of *code_id* at *new_parent_id*.

        Returns:
            Number of children moved.
        """
        stmt = (
            update(Code)
            .where(Code.parent_id == code_id)
            .values(parent_id=new_parent_id)
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return int(result.rowcount or 0)

    async def delete(self, code: Code) -> None:
        await self.session.delete(code)
        await self.session.flush()
