"""Pydantic request/response schemas for annotations."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from coding_analytics.core.targets import (
    AnnotationTarget,
    DocumentTarget,
    TargetKind,
    TranscriptTarget,
)


class TargetRef(BaseModel):
    """Wire form of an annotation target: ``{"kind": "document", "id": "…"}``."""

    kind: Literal["document", "transcription"]
    id: uuid.UUID

    def to_target(self) -> AnnotationTarget:
        if self.kind == TargetKind.DOCUMENT.value:
            return DocumentTarget(self.id)
        return TranscriptTarget(self.id)


class AnnotationCreate(BaseModel):
    """Payload for creating an annotation.

    Span validity (``start_index < end_index`` and the selected text length)
    is checked by the AnnotationIndex, not here, so that every caller gets
    the same ``InvalidArgumentError``.
    """

    code_id: uuid.UUID
    target: TargetRef
    start_index: int
    end_index: int
    selected_text: str
    notes: Optional[str] = Field(default=None)


class AnnotationRead(BaseModel):
    """Full representation of a persisted annotation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: uuid.UUID
    code_id: uuid.UUID
    target_kind: str
    target_id: uuid.UUID
    start_index: int
    end_index: int
    selected_text: str
    notes: Optional[str]
    user_id: uuid.UUID
    created_at: datetime
