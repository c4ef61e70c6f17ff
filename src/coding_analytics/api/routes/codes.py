"""Code taxonomy routes.

Routes:
    POST   /projects/{project_id}/codes       — create a code
    GET    /projects/{project_id}/codes       — flat list with annotation counts
    GET    /projects/{project_id}/codes/tree  — full nested tree
    GET    /codes/{code_id}                   — one code with parent and children
    PATCH  /codes/{code_id}                   — rename / recolor / reparent
    DELETE /codes/{code_id}                   — delete, hoisting children

Mutations require OWNER or EDITOR on the project; reads require membership.
Errors raised by the TaxonomyManager are translated to HTTP responses by the
exception handlers registered in ``api/main.py``.
"""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from coding_analytics.api.dependencies import (
    get_actor_id,
    get_collaborators,
    get_taxonomy,
    require_project_member,
)
from coding_analytics.core.collaborators import Collaborators
from coding_analytics.core.exceptions import ForbiddenError
from coding_analytics.core.roles import can_read_project
from coding_analytics.core.schemas.codes import (
    CodeCreate,
    CodeDetail,
    CodeTreeNode,
    CodeUpdate,
)
from coding_analytics.core.taxonomy import TaxonomyManager

router = APIRouter()


@router.post(
    "/projects/{project_id}/codes",
    status_code=status.HTTP_201_CREATED,
    response_model=CodeDetail,
)
async def create_code(
    project_id: uuid.UUID,
    payload: CodeCreate,
    taxonomy: Annotated[TaxonomyManager, Depends(get_taxonomy)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
) -> CodeDetail:
    """Create a code in the project.

    Returns 409 when the name is already used (case-insensitively) and 404
    when the parent is not a code of the project.
    """
    return await taxonomy.create_code(project_id, payload, actor_id)


@router.get("/projects/{project_id}/codes", response_model=list[CodeDetail])
async def list_codes(
    project_id: uuid.UUID,
    taxonomy: Annotated[TaxonomyManager, Depends(get_taxonomy)],
    _actor_id: Annotated[uuid.UUID, Depends(require_project_member)],
) -> list[CodeDetail]:
    return await taxonomy.list_codes(project_id)


@router.get("/projects/{project_id}/codes/tree", response_model=list[CodeTreeNode])
async def get_code_tree(
    project_id: uuid.UUID,
    taxonomy: Annotated[TaxonomyManager, Depends(get_taxonomy)],
    _actor_id: Annotated[uuid.UUID, Depends(require_project_member)],
) -> list[CodeTreeNode]:
    """Return the roots of the project's taxonomy with their full subtrees."""
    return await taxonomy.get_tree(project_id)


@router.get("/codes/{code_id}", response_model=CodeDetail)
async def get_code(
    code_id: uuid.UUID,
    taxonomy: Annotated[TaxonomyManager, Depends(get_taxonomy)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> CodeDetail:
    detail = await taxonomy.get_code(code_id)
    role = await collaborators.membership.role_of(detail.project_id, actor_id)
    if not can_read_project(role):
        raise ForbiddenError(
            "Only project members may read this code.",
            actor_id=actor_id,
            project_id=detail.project_id,
        )
    return detail


@router.patch("/codes/{code_id}", response_model=CodeDetail)
async def update_code(
    code_id: uuid.UUID,
    patch: CodeUpdate,
    taxonomy: Annotated[TaxonomyManager, Depends(get_taxonomy)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
) -> CodeDetail:
    """Apply a partial update.

    Send ``"parent_id": null`` to move the code to the root; omit the field
    to keep its position.  Returns 422 for a self-parent or cyclic reparent.
    """
    return await taxonomy.update_code(code_id, patch, actor_id)


@router.delete("/codes/{code_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_code(
    code_id: uuid.UUID,
    taxonomy: Annotated[TaxonomyManager, Depends(get_taxonomy)],
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
) -> Response:
    """Delete a code; its children move up to its parent."""
    await taxonomy.delete_code(code_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
