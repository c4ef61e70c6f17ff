"""Annotation targets: the document or transcription a span is measured against.

A target is one of two frozen dataclasses rather than a pair of nullable ids,
so "exactly one of document / transcription" holds by construction::

    target: AnnotationTarget = DocumentTarget(document_id)

    match target:
        case DocumentTarget(document_id=doc_id): ...
        case TranscriptTarget(transcription_id=tr_id): ...

In storage the union is flattened to ``(target_kind, target_id)``;
:func:`target_from_row` and :func:`target_key` convert between the two.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Union


class TargetKind(str, Enum):
    """Discriminator stored in ``annotations.target_kind``."""

    DOCUMENT = "document"
    TRANSCRIPTION = "transcription"


@dataclass(frozen=True)
class DocumentTarget:
    document_id: uuid.UUID

    @property
    def kind(self) -> TargetKind:
        return TargetKind.DOCUMENT

    @property
    def target_id(self) -> uuid.UUID:
        return self.document_id


@dataclass(frozen=True)
class TranscriptTarget:
    transcription_id: uuid.UUID

    @property
    def kind(self) -> TargetKind:
        return TargetKind.TRANSCRIPTION

    @property
    def target_id(self) -> uuid.UUID:
        return self.transcription_id


AnnotationTarget = Union[DocumentTarget, TranscriptTarget]


def target_from_row(kind: str | TargetKind, target_id: uuid.UUID) -> AnnotationTarget:
    """Rebuild the tagged union from its stored ``(kind, id)`` pair.

    Raises:
        ValueError: If *kind* is not a known target kind.
    """
    if TargetKind(kind) is TargetKind.DOCUMENT:
        return DocumentTarget(target_id)
    return TranscriptTarget(target_id)


def target_key(target: AnnotationTarget) -> tuple[str, uuid.UUID]:
    """Return the ``(kind, id)`` pair used as a storage and grouping key."""
    return target.kind.value, target.target_id
