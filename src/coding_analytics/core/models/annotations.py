"""Annotation model: a highlighted span of source text tagged with one code.

Stores one coding decision made by a researcher: which code applies to which
character range of which document or transcription.

Key design choices:
- The target is stored as ``(target_kind, target_id)`` and exposed as the
  :data:`~coding_analytics.core.targets.AnnotationTarget` union through the
  ``target`` property.  A CHECK constraint restricts ``target_kind`` to the
  two known kinds.
- ``code_id`` is a logical reference with no DB-level FK.  Deleting a code
  leaves its annotations in place ("orphaned"); they are excluded from
  analytics and listed by ``AnnotationIndex.list_orphaned``.
- ``project_id`` is copied from the code at creation time so orphaned
  annotations stay scoped to their project.
- Span validity ``0 <= start_index < end_index`` is enforced both by the
  AnnotationIndex and by a CHECK constraint.
- Annotations are never updated in place, so there is no ``updated_at``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from coding_analytics.core.models.base import Base, UTCDateTime, utcnow
from coding_analytics.core.targets import AnnotationTarget, target_from_row


class Annotation(Base):
    """A span of a document or transcription classified with a code.

    Attributes:
        id: UUID primary key (application-generated via uuid.uuid4).
        project_id: Project of the code at creation time.
        code_id: Logical reference to codes.id (may dangle after deletion).
        target_kind: ``"document"`` or ``"transcription"``.
        target_id: Id of the document or transcription.
        start_index: Inclusive start offset of the span in the source text.
        end_index: Exclusive end offset of the span.
        selected_text: The text of the span as seen by the author.
        notes: Optional free-text note.
        user_id: Author of the annotation.
        created_at: Creation timestamp (UTC).
    """

    __tablename__ = "annotations"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
    )

    # No FK, see module docstring.
    code_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
    )

    target_kind: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
    )

    target_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
    )

    start_index: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
    )

    end_index: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
    )

    selected_text: Mapped[str] = mapped_column(
        sa.Text,
        nullable=False,
    )

    notes: Mapped[Optional[str]] = mapped_column(
        sa.Text,
        nullable=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        index=True,
    )

    __table_args__ = (
        sa.CheckConstraint(
            "target_kind IN ('document', 'transcription')",
            name="ck_annotation_target_kind",
        ),
        sa.CheckConstraint(
            "start_index >= 0 AND start_index < end_index",
            name="ck_annotation_span",
        ),
        # Serves list-by-target, which is ordered by start_index.
        sa.Index(
            "idx_annotation_target",
            "target_kind",
            "target_id",
            "start_index",
        ),
    )

    @property
    def target(self) -> AnnotationTarget:
        """The document or transcription this annotation points at."""
        return target_from_row(self.target_kind, self.target_id)

    def __repr__(self) -> str:
        return (
            f"<Annotation id={self.id} "
            f"code_id={self.code_id} "
            f"target={self.target_kind}:{self.target_id} "
            f"span={self.start_index}:{self.end_index}>"
        )
