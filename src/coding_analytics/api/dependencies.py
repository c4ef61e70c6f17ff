"""FastAPI dependency injection providers.

Provides the caller identity, the collaborator bundle and the engine
services, each bound to the request's database session.

Dependency hierarchy::

    get_actor_id            — requires a valid ``X-User-ID`` header
    get_collaborators       — the bundle passed to ``create_app``
    get_taxonomy            — TaxonomyManager on the request session
    get_annotation_index    — AnnotationIndex on the request session
    get_analytics           — AnalyticsEngine on the request session
    require_project_member  — 403 unless the actor belongs to the project

Authentication itself is done by the upstream gateway, which forwards the
authenticated user's id in ``X-User-ID``.
"""

from __future__ import annotations

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.analysis.engine import AnalyticsEngine
from coding_analytics.config.settings import get_settings
from coding_analytics.core.annotation_index import AnnotationIndex
from coding_analytics.core.collaborators import Collaborators
from coding_analytics.core.database import get_db
from coding_analytics.core.exceptions import ForbiddenError, NotFoundError
from coding_analytics.core.roles import can_read_project
from coding_analytics.core.taxonomy import TaxonomyManager


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


async def get_actor_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> uuid.UUID:
    """Return the authenticated user's id from the ``X-User-ID`` header.

    Raises:
        HTTPException 401: If the header is missing or not a UUID.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header.",
        )
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is not a valid UUID.",
        )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_collaborators(request: Request) -> Collaborators:
    """Return the collaborator bundle stored on ``app.state`` by ``create_app``."""
    return request.app.state.collaborators


async def get_taxonomy(
    db: Annotated[AsyncSession, Depends(get_db)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> TaxonomyManager:
    return TaxonomyManager(db, collaborators.membership)


async def get_annotation_index(
    db: Annotated[AsyncSession, Depends(get_db)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> AnnotationIndex:
    return AnnotationIndex(db, collaborators)


async def get_analytics(
    db: Annotated[AsyncSession, Depends(get_db)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> AnalyticsEngine:
    return AnalyticsEngine(db, collaborators, get_settings())


# ---------------------------------------------------------------------------
# Authorisation
# ---------------------------------------------------------------------------


async def require_project_member(
    project_id: uuid.UUID,
    actor_id: Annotated[uuid.UUID, Depends(get_actor_id)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> uuid.UUID:
    """Ensure the actor belongs to the project in the path.

    Returns:
        The actor id, so routes can depend on this instead of ``get_actor_id``.

    Raises:
        NotFoundError: If the project does not exist (mapped to 404).
        ForbiddenError: If the actor is not a member (mapped to 403).
    """
    membership = collaborators.membership
    if not await membership.project_exists(project_id):
        raise NotFoundError("project", project_id)
    if not can_read_project(await membership.role_of(project_id, actor_id)):
        raise ForbiddenError(
            "Only project members may read this project.",
            actor_id=actor_id,
            project_id=project_id,
        )
    return actor_id
