"""Annotation index: span and target rules on top of the AnnotationStore.

Every annotation must satisfy, at creation time:

- ``0 <= start_index < end_index``;
- ``len(selected_text) == end_index - start_index``;
- its code exists, its target exists, and both belong to the same project;
- the actor is a member of that project.

Deletion is allowed to the annotation's author and to project owners and
editors.  Annotations are never updated in place.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.core.annotation_store import AnnotationStore
from coding_analytics.core.code_store import CodeStore
from coding_analytics.core.collaborators import Collaborators
from coding_analytics.core.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from coding_analytics.core.models.annotations import Annotation
from coding_analytics.core.rendering import Segment, merge_segments
from coding_analytics.core.roles import can_annotate, can_delete_annotation
from coding_analytics.core.targets import (
    AnnotationTarget,
    DocumentTarget,
    TranscriptTarget,
)

logger = structlog.get_logger(__name__)


class AnnotationIndex:
    """Create, list and delete annotations.

    Methods flush but never commit; the caller owns the transaction.

    Args:
        session: An open :class:`sqlalchemy.ext.asyncio.AsyncSession`.
        collaborators: Membership, document, transcription and user services.
    """

    def __init__(self, session: AsyncSession, collaborators: Collaborators) -> None:
        self.session = session
        self.collaborators = collaborators
        self.annotations = AnnotationStore(session)
        self.codes = CodeStore(session)

    async def _target_project(self, target: AnnotationTarget) -> uuid.UUID:
        """Resolve the project owning *target*.

        Raises:
            InvalidArgumentError: If *target* is not a document or transcription.
            NotFoundError: If the target does not exist.
        """
        if isinstance(target, DocumentTarget):
            provider, entity = self.collaborators.documents, "document"
        elif isinstance(target, TranscriptTarget):
            provider, entity = self.collaborators.transcriptions, "transcription"
        else:
            raise InvalidArgumentError(
                "An annotation target must be a document or a transcription."
            )
        if not await provider.exists(target.target_id):
            raise NotFoundError(entity, target.target_id)
        project_id = await provider.project_of(target.target_id)
        if project_id is None:
            raise NotFoundError(entity, target.target_id)
        return project_id

    async def create(
        self,
        code_id: uuid.UUID,
        target: AnnotationTarget,
        start_index: int,
        end_index: int,
        selected_text: str,
        actor_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> Annotation:
        """Persist a new annotation.

        Raises:
            InvalidArgumentError: On a bad target kind, a bad span, a selected
                text whose length does not match the span, or a target from
                another project than the code.
            NotFoundError: If the code or the target does not exist.
            ForbiddenError: If the actor is not a member of the project.
        """
        if start_index < 0 or start_index >= end_index:
            raise InvalidArgumentError(
                f"Invalid span [{start_index}, {end_index}): "
                "start must be >= 0 and strictly before end."
            )
        if len(selected_text) != end_index - start_index:
            raise InvalidArgumentError(
                f"Selected text has length {len(selected_text)}, "
                f"expected {end_index - start_index} for span "
                f"[{start_index}, {end_index})."
            )

        target_project_id = await self._target_project(target)

        code = await self.codes.get(code_id)
        if code is None:
            raise NotFoundError("code", code_id)
        if code.project_id != target_project_id:
            raise InvalidArgumentError(
                "The code and the annotated target belong to different projects."
            )

        role = await self.collaborators.membership.role_of(code.project_id, actor_id)
        if not can_annotate(role):
            logger.warning(
                "annotation.forbidden",
                action="create",
                project_id=str(code.project_id),
                actor_id=str(actor_id),
            )
            raise ForbiddenError(
                "Only project members may annotate.",
                actor_id=actor_id,
                project_id=code.project_id,
            )

        annotation = Annotation(
            id=uuid.uuid4(),
            project_id=code.project_id,
            code_id=code.id,
            target_kind=target.kind.value,
            target_id=target.target_id,
            start_index=start_index,
            end_index=end_index,
            selected_text=selected_text,
            notes=notes,
            user_id=actor_id,
        )
        await self.annotations.add(annotation)

        logger.info(
            "annotation.created",
            annotation_id=str(annotation.id),
            code_id=str(code.id),
            target_kind=annotation.target_kind,
            target_id=str(annotation.target_id),
            actor_id=str(actor_id),
        )
        return annotation

    async def list_for_target(self, target: AnnotationTarget) -> list[Annotation]:
        """Return the target's annotations sorted by ``start_index`` ascending."""
        return await self.annotations.list_for_target(target)

    async def list_for_code(self, code_id: uuid.UUID) -> list[Annotation]:
        """Return the code's annotations, newest first.

        Raises:
            NotFoundError: If the code does not exist.
        """
        if await self.codes.get(code_id) is None:
            raise NotFoundError("code", code_id)
        return await self.annotations.list_for_code(code_id)

    async def list_orphaned(self, project_id: uuid.UUID) -> list[Annotation]:
        """Return annotations of the project whose code has been deleted.

        Raises:
            NotFoundError: If the project does not exist.
        """
        if not await self.collaborators.membership.project_exists(project_id):
            raise NotFoundError("project", project_id)
        return await self.annotations.list_orphaned(project_id)

    async def render(self, target: AnnotationTarget, text: str) -> list[Segment]:
        """Return *text* split into segments under the target's annotations."""
        return merge_segments(text, await self.list_for_target(target))

    async def delete(self, annotation_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        """Delete an annotation.

        Raises:
            NotFoundError: If the annotation does not exist.
            ForbiddenError: If the actor is neither the author nor an owner
                or editor of the project.
        """
        annotation = await self.annotations.get(annotation_id)
        if annotation is None:
            raise NotFoundError("annotation", annotation_id)

        role = await self.collaborators.membership.role_of(annotation.project_id, actor_id)
        is_author = annotation.user_id == actor_id
        if not can_delete_annotation(role, is_author):
            logger.warning(
                "annotation.forbidden",
                action="delete",
                annotation_id=str(annotation_id),
                actor_id=str(actor_id),
            )
            raise ForbiddenError(
                "Only the author or a project owner or editor may delete this annotation.",
                actor_id=actor_id,
                project_id=annotation.project_id,
            )

        await self.annotations.delete(annotation)
        logger.info(
            "annotation.deleted",
            annotation_id=str(annotation_id),
            code_id=str(annotation.code_id),
            by_author=is_author,
            actor_id=str(actor_id),
        )
