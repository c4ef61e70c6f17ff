"""Contracts of the services this engine consumes but does not own.

Project membership, document and transcription storage, and the user
directory belong to the surrounding platform.  The engine talks to them only
through the async protocols below, which keeps it storage- and
transport-agnostic: the platform passes in a :class:`Collaborators` bundle
built from whatever implementations it has (SQL queries, HTTP clients,
in-memory fakes in tests).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from coding_analytics.core.roles import Role


@runtime_checkable
class ProjectMembership(Protocol):
    """Answers who belongs to a project, and with which role."""

    async def project_exists(self, project_id: uuid.UUID) -> bool:
        """Return True if the project exists."""
        ...

    async def role_of(self, project_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Role]:
        """Return the user's role in the project, or None if not a member."""
        ...


@runtime_checkable
class DocumentProvider(Protocol):
    async def exists(self, document_id: uuid.UUID) -> bool:
        ...

    async def project_of(self, document_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Return the owning project id, or None if the document is unknown."""
        ...


@runtime_checkable
class TranscriptionProvider(Protocol):
    async def exists(self, transcription_id: uuid.UUID) -> bool:
        ...

    async def project_of(self, transcription_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Return the owning project id, or None if the transcription is unknown."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    async def display_name(self, user_id: uuid.UUID) -> str:
        """Return a label for the user (never raises for unknown users)."""
        ...


@dataclass(frozen=True)
class Collaborators:
    """The external services one engine instance is wired to."""

    membership: ProjectMembership
    documents: DocumentProvider
    transcriptions: TranscriptionProvider
    users: UserDirectory
