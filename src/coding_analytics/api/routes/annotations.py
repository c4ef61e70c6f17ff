"""Annotation routes.

Routes:
    POST   /annotations                                  — annotate a span
    GET    /annotations/documents/{document_id}          — a document's annotations
    GET    /annotations/transcriptions/{transcription_id} — a transcription's annotations
    GET    /codes/{code_id}/annotations                  — a code's annotations, newest first
    GET    /projects/{project_id}/annotations/orphaned   — annotations of deleted codes
    DELETE /annotations/{annotation_id}                  — delete (author or editor)

Target listings are ordered by ``start_index`` ascending, which is the order
renderers need to paint highlighted spans over the source text.
"""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from coding_analytics.api.dependencies import (
    get_actor_id,
    get_annotation_index,
    get_collaborators,
    require_project_member,
)
from coding_analytics.core.annotation_index import AnnotationIndex
from coding_analytics.core.collaborators import Collaborators
from coding_analytics.core.exceptions import ForbiddenError, NotFoundError
from coding_analytics.core.roles import can_read_project
from coding_analytics.core.schemas.annotations import AnnotationCreate, AnnotationRead
from coding_analytics.core.targets import DocumentTarget, TranscriptTarget

router = APIRouter()


async def _require_member(
    collaborators: Collaborators, project_id: uuid.UUID, actor_id: uuid.UUID
) -> None:
    role = await collaborators.membership.role_of(project_id, actor_id)
    if not can_read_project(role):
        raise ForbiddenError(
            "Only project members may read these annotations.",
            actor_id=actor_id,
            project_id=project_id,
        )


@router.post(
    "/annotations",
    status_code=status.HTTP_201_CREATED,
    response_model=AnnotationRead,
)
async def create_annotation(
    payload: AnnotationCreate,
    index: Annotated[AnnotationIndex, Depends(get_annotation_index)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
) -> AnnotationRead:
    """Create an annotation authored by the caller.

    Returns 400 for an invalid span or a cross-project target and 404 for an
    unknown code or target.
    """
    annotation = await index.create(
        code_id=payload.code_id,
        target=payload.target.to_target(),
        start_index=payload.start_index,
        end_index=payload.end_index,
        selected_text=payload.selected_text,
        actor_id=actor_id,
        notes=payload.notes,
    )
    return AnnotationRead.model_validate(annotation)


@router.get("/annotations/documents/{document_id}", response_model=list[AnnotationRead])
async def list_document_annotations(
    document_id: uuid.UUID,
    index: Annotated[AnnotationIndex, Depends(get_annotation_index)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> list[AnnotationRead]:
    project_id = await collaborators.documents.project_of(document_id)
    if project_id is None:
        raise NotFoundError("document", document_id)
    await _require_member(collaborators, project_id, actor_id)
    annotations = await index.list_for_target(DocumentTarget(document_id))
    return [AnnotationRead.model_validate(a) for a in annotations]


@router.get(
    "/annotations/transcriptions/{transcription_id}",
    response_model=list[AnnotationRead],
)
async def list_transcription_annotations(
    transcription_id: uuid.UUID,
    index: Annotated[AnnotationIndex, Depends(get_annotation_index)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> list[AnnotationRead]:
    project_id = await collaborators.transcriptions.project_of(transcription_id)
    if project_id is None:
        raise NotFoundError("transcription", transcription_id)
    await _require_member(collaborators, project_id, actor_id)
    annotations = await index.list_for_target(TranscriptTarget(transcription_id))
    return [AnnotationRead.model_validate(a) for a in annotations]


@router.get("/codes/{code_id}/annotations", response_model=list[AnnotationRead])
async def list_code_annotations(
    code_id: uuid.UUID,
    index: Annotated[AnnotationIndex, Depends(get_annotation_index)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> list[AnnotationRead]:
    code = await index.codes.get(code_id)
    if code is None:
        raise NotFoundError("code", code_id)
    await _require_member(collaborators, code.project_id, actor_id)
    annotations = await index.list_for_code(code_id)
    return [AnnotationRead.model_validate(a) for a in annotations]


@router.get(
    "/projects/{project_id}/annotations/orphaned",
    response_model=list[AnnotationRead],
)
async def list_orphaned_annotations(
    project_id: uuid.UUID,
    index: Annotated[AnnotationIndex, Depends(get_annotation_index)],
    _actor_id: Annotated[uuid.UUID, Depends(require_project_member)],
) -> list[AnnotationRead]:
    """List annotations whose code has been deleted."""
    annotations = await index.list_orphaned(project_id)
    return [AnnotationRead.model_validate(a) for a in annotations]


@router.delete("/annotations/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_annotation(
    annotation_id: uuid.UUID,
    index: Annotated[AnnotationIndex, Depends(get_annotation_index)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
) -> Response:
    await index.delete(annotation_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
