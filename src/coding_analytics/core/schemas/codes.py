"""Pydantic request/response schemas for the code taxonomy.

The TaxonomyManager returns these models directly, so the HTTP layer and any
other caller receive the same shapes.  They are kept separate from the
SQLAlchemy ORM models to avoid coupling transport concerns to persistence
concerns.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

_HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CodeCreate(BaseModel):
    """Payload for creating a code.

    Attributes:
        name: Display name, unique (case-insensitively) within the project.
        description: Optional explanation of when to apply the code.
        color: Optional CSS hex color; the configured default is used if omitted.
        parent_id: Optional parent code in the same project.
    """

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    parent_id: Optional[uuid.UUID] = Field(default=None)


class CodeUpdate(BaseModel):
    """Payload for partially updating a code.

    Only fields explicitly present in the payload are applied.  Sending
    ``"parent_id": null`` moves the code to the root of the tree; omitting
    ``parent_id`` leaves its position unchanged.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    parent_id: Optional[uuid.UUID] = Field(default=None)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CodeSummary(BaseModel):
    """Compact reference to a code, used for parent/children links."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    color: str


class CodeRead(BaseModel):
    """Full representation of a persisted code."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    description: Optional[str]
    color: str
    parent_id: Optional[uuid.UUID]
    created_by: Optional[uuid.UUID]
    created_at: datetime
    updated_at: datetime


class CodeDetail(CodeRead):
    """A code with its direct neighbours resolved.

    Attributes:
        parent: The parent code, or None for a root.
        children: Direct children, ordered by name.
        annotation_count: Number of annotations currently using the code.
    """

    parent: Optional[CodeSummary] = None
    children: list[CodeSummary] = Field(default_factory=list)
    annotation_count: int = 0


class CodeTreeNode(CodeRead):
    """A code with its full subtree, as returned by ``get_tree``."""

    annotation_count: int = 0
    children: list[CodeTreeNode] = Field(default_factory=list)


CodeTreeNode.model_rebuild()
