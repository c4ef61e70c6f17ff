"""Code model: one node of a project's qualitative coding taxonomy.

Codes form a tree per project.  The tree is stored flat: every row carries a
``parent_id`` pointing at another row of the same project, or NULL for a
root.  Nested views are assembled on demand by
:class:`coding_analytics.core.taxonomy.TaxonomyManager`.

Key design choices:
- ``name_key`` holds the case-folded, whitespace-collapsed name.  The unique
  constraint on (project_id, name_key) makes case-insensitive name
  uniqueness a storage guarantee, so two concurrent creates of "Foo" and
  "foo" cannot both commit.
- ``parent_id`` references ``codes.id`` without ON DELETE CASCADE: children
  are hoisted to the grandparent before a code is deleted, never cascaded.
- No relationship() attributes: the async session never lazy-loads, and tree
  views are built in one pass from a flat list.
- Projects live outside this engine, so ``project_id`` has no FK.
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from coding_analytics.core.models.base import Base, TimestampMixin


NAME_MAX_LENGTH = 200

# casefold() maps one character to at most three ("ß" -> "ss", "ΐ" -> three).
NAME_KEY_MAX_LENGTH = 3 * NAME_MAX_LENGTH


def name_key_for(name: str) -> str:
    """Return the uniqueness key of a code name.

    ``"  Foo   Bar "`` and ``"foo bar"`` share the key ``"foo bar"``.
    """
    return " ".join(name.split()).casefold()


class Code(Base, TimestampMixin):
    """A named, colored taxonomy node used to classify text spans.

    Attributes:
        id: UUID primary key (application-generated via uuid.uuid4).
        project_id: The project this code belongs to.
        name: Display name as entered, trimmed.
        name_key: Case-normalised name used for the uniqueness constraint.
        description: Optional explanation of when to apply the code.
        color: CSS hex color used when highlighting spans.
        parent_id: Parent code in the same project, or NULL for a root.
        created_by: User who created the code.
    """

    __tablename__ = "codes"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        sa.String(NAME_MAX_LENGTH),
        nullable=False,
    )

    name_key: Mapped[str] = mapped_column(
        sa.String(NAME_KEY_MAX_LENGTH),
        nullable=False,
    )

    description: Mapped[Optional[str]] = mapped_column(
        sa.Text,
        nullable=True,
    )

    color: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
    )

    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.ForeignKey("codes.id"),
        nullable=True,
        index=True,
    )

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        nullable=True,
    )

    __table_args__ = (
        sa.UniqueConstraint(
            "project_id",
            "name_key",
            name="uq_code_project_name_key",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Code id={self.id} "
            f"project_id={self.project_id} "
            f"name={self.name!r} "
            f"parent_id={self.parent_id}>"
        )
