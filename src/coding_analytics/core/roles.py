"""Project roles and the capability checks derived from them.

Membership itself is stored outside this engine (see
:class:`coding_analytics.core.collaborators.ProjectMembership`); this module
only decides what a role may do.  ``None`` stands for "not a member".
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Role(str, Enum):
    OWNER = "OWNER"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


_TAXONOMY_EDITORS = frozenset({Role.OWNER, Role.EDITOR})


def can_mutate_taxonomy(role: Optional[Role]) -> bool:
    """Owners and editors may create, update and delete codes."""
    return role in _TAXONOMY_EDITORS


def can_annotate(role: Optional[Role]) -> bool:
    """Any project member may create annotations."""
    return role is not None


def can_read_project(role: Optional[Role]) -> bool:
    return role is not None


def can_delete_annotation(role: Optional[Role], is_author: bool) -> bool:
    """Authors may delete their own annotations; owners and editors any."""
    return is_author or role in _TAXONOMY_EDITORS
