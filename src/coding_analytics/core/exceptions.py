"""Application-wide exception hierarchy for Coding Analytics.

All custom exceptions subclass ``CodingAnalyticsError``, enabling
consistent error handling and structured logging across the engine and the
HTTP boundary.

Hierarchy::

    CodingAnalyticsError
    ├── NotFoundError            (entity: str, entity_id)
    ├── ConflictError            (project_id, name)
    ├── InvalidOperationError
    ├── InvalidArgumentError
    └── ForbiddenError           (actor_id, project_id)

None of these are fatal to the process.  They are raised by the engine and
translated to HTTP status codes by the exception handlers in ``api/main.py``.
"""

from __future__ import annotations

import uuid


class CodingAnalyticsError(Exception):
    """Base class for all Coding Analytics exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


class NotFoundError(CodingAnalyticsError):
    """Raised when a project, code, annotation or target cannot be resolved.

    Args:
        entity: Kind of entity that was looked up (e.g. ``"code"``).
        entity_id: Identifier that did not resolve.
    """

    def __init__(self, entity: str, entity_id: uuid.UUID | str | None) -> None:
        super().__init__(f"{entity.capitalize()} '{entity_id}' not found.")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(CodingAnalyticsError):
    """Raised when a code name is already taken within a project.

    Name comparison is case-insensitive, so ``"Foo"`` and ``"foo"`` conflict.

    Args:
        project_id: Project in which the name is already used.
        name: The rejected name as supplied by the caller.
    """

    def __init__(self, project_id: uuid.UUID, name: str) -> None:
        super().__init__(
            f"A code named {name!r} already exists in project '{project_id}'."
        )
        self.project_id = project_id
        self.name = name


class InvalidOperationError(CodingAnalyticsError):
    """Raised when a taxonomy change would break the tree.

    Covers making a code its own parent and reparenting a code under one of
    its own descendants.
    """


class InvalidArgumentError(CodingAnalyticsError):
    """Raised when a request carries malformed input.

    Covers bad annotation spans, unknown target kinds, blank code names and
    targets that belong to a different project than the code.
    """


class ForbiddenError(CodingAnalyticsError):
    """Raised when the actor's project role does not allow the operation.

    Args:
        message: Description of the denied action.
        actor_id: The user who attempted the action.
        project_id: The project the action was scoped to.
    """

    def __init__(
        self,
        message: str,
        actor_id: uuid.UUID | None = None,
        project_id: uuid.UUID | None = None,
    ) -> None:
        super().__init__(message)
        self.actor_id = actor_id
        self.project_id = project_id
