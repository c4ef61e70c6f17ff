"""Initial schema: code taxonomy and span annotations.

Creates the two tables of the coding engine:

1. codes        — per-project taxonomy nodes (self-FK parent_id)
2. annotations  — text spans tagged with one code

Key design choices:
- ``uq_code_project_name_key`` makes code names unique per project on the
  case-folded ``name_key`` column, so concurrent creates with the same name
  cannot both commit.
- ``codes.parent_id`` has no ON DELETE action: children are hoisted by the
  application before their parent is deleted.
- ``annotations.code_id`` has no FK, so deleting a code leaves its
  annotations in place (orphaned) rather than cascading or blocking.
- The annotation target is ``(target_kind, target_id)`` with a CHECK on the
  two allowed kinds, and the span is CHECK-constrained to
  ``0 <= start_index < end_index``.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# Revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create codes and annotations with their constraints and indexes."""
    op.create_table(
        "codes",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("name_key", sa.String(600), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column(
            "parent_id",
            sa.Uuid(),
            sa.ForeignKey("codes.id"),
            nullable=True,
        ),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("project_id", "name_key", name="uq_code_project_name_key"),
    )
    op.create_index("ix_codes_project_id", "codes", ["project_id"])
    op.create_index("ix_codes_parent_id", "codes", ["parent_id"])

    op.create_table(
        "annotations",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        # Logical reference to codes.id with no FK, see module docstring.
        sa.Column("code_id", sa.Uuid(), nullable=False),
        sa.Column("target_kind", sa.String(20), nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column("start_index", sa.Integer(), nullable=False),
        sa.Column("end_index", sa.Integer(), nullable=False),
        sa.Column("selected_text", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "target_kind IN ('document', 'transcription')",
            name="ck_annotation_target_kind",
        ),
        sa.CheckConstraint(
            "start_index >= 0 AND start_index < end_index",
            name="ck_annotation_span",
        ),
    )
    op.create_index("ix_annotations_project_id", "annotations", ["project_id"])
    op.create_index("ix_annotations_code_id", "annotations", ["code_id"])
    op.create_index("ix_annotations_user_id", "annotations", ["user_id"])
    op.create_index("ix_annotations_created_at", "annotations", ["created_at"])
    op.create_index(
        "idx_annotation_target",
        "annotations",
        ["target_kind", "target_id", "start_index"],
    )


def downgrade() -> None:
    """Drop annotations and codes."""
    op.drop_index("idx_annotation_target", table_name="annotations")
    op.drop_index("ix_annotations_created_at", table_name="annotations")
    op.drop_index("ix_annotations_user_id", table_name="annotations")
    op.drop_index("ix_annotations_code_id", table_name="annotations")
    op.drop_index("ix_annotations_project_id", table_name="annotations")
    op.drop_table("annotations")

    op.drop_index("ix_codes_parent_id", table_name="codes")
    op.drop_index("ix_codes_project_id", table_name="codes")
    op.drop_table("codes")
