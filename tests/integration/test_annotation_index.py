"""Integration tests for the AnnotationIndex.

Tests verify against a SQLite database:
- create: span validation, selected-text length, unknown code / target,
  cross-project targets, membership check, notes and author recorded
- list_for_target: ordering by start_index, document and transcription kept
  apart
- list_for_code: newest first, unknown code
- list_orphaned: annotations of deleted codes only
- delete: author, editor, owner allowed; other viewers and outsiders refused
- render: overlapping annotations produce layered segments
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.core.annotation_index import AnnotationIndex
from coding_analytics.core.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from coding_analytics.core.roles import Role
from coding_analytics.core.targets import DocumentTarget, TranscriptTarget
from tests.factories import insert_annotation, insert_code

pytestmark = pytest.mark.integration

TEXT = "Public transport funding was cut again this year."


@pytest.fixture
async def code(db_session: AsyncSession, world):
    return await insert_code(db_session, world.project_id, "Transport")


async def _annotate(
    index: AnnotationIndex,
    code,
    target,
    actor: uuid.UUID,
    start: int = 0,
    end: int = 6,
    text: str | None = None,
):
    return await index.create(
        code_id=code.id,
        target=target,
        start_index=start,
        end_index=end,
        selected_text=TEXT[start:end] if text is None else text,
        actor_id=actor,
    )


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_creates_annotation(self, index: AnnotationIndex, code, world) -> None:
        target = DocumentTarget(world.document_id)
        annotation = await index.create(
            code_id=code.id,
            target=target,
            start_index=7,
            end_index=16,
            selected_text="transport",
            actor_id=world.viewer,
            notes="first pass",
        )
        assert annotation.code_id == code.id
        assert annotation.project_id == world.project_id
        assert annotation.target == target
        assert annotation.user_id == world.viewer
        assert annotation.notes == "first pass"
        assert annotation.created_at.tzinfo is not None

    async def test_transcription_target(self, index: AnnotationIndex, code, world) -> None:
        target = TranscriptTarget(world.transcription_id)
        annotation = await _annotate(index, code, target, world.editor)
        assert annotation.target_kind == "transcription"

    @pytest.mark.parametrize(("start", "end"), [(5, 5), (6, 2), (-1, 3)])
    async def test_invalid_span(self, index: AnnotationIndex, code, world, start, end) -> None:
        with pytest.raises(InvalidArgumentError):
            await index.create(
                code_id=code.id,
                target=DocumentTarget(world.document_id),
                start_index=start,
                end_index=end,
                selected_text="",
                actor_id=world.owner,
            )

    async def test_selected_text_must_match_span_length(
        self, index: AnnotationIndex, code, world
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            await _annotate(
                index, code, DocumentTarget(world.document_id), world.owner, 0, 6, "Pub"
            )

    async def test_unknown_code(self, index: AnnotationIndex, world) -> None:
        with pytest.raises(NotFoundError):
            await index.create(
                code_id=uuid.uuid4(),
                target=DocumentTarget(world.document_id),
                start_index=0,
                end_index=6,
                selected_text="Public",
                actor_id=world.owner,
            )

    async def test_unknown_document(self, index: AnnotationIndex, code, world) -> None:
        with pytest.raises(NotFoundError):
            await _annotate(index, code, DocumentTarget(uuid.uuid4()), world.owner)

    async def test_document_id_used_as_transcription_is_not_found(
        self, index: AnnotationIndex, code, world
    ) -> None:
        with pytest.raises(NotFoundError):
            await _annotate(index, code, TranscriptTarget(world.document_id), world.owner)

    async def test_target_from_another_project(
        self, index: AnnotationIndex, code, world
    ) -> None:
        foreign_doc = world.new_document(world.new_project())
        with pytest.raises(InvalidArgumentError):
            await _annotate(index, code, DocumentTarget(foreign_doc), world.owner)

    async def test_outsider_is_forbidden(self, index: AnnotationIndex, code, world) -> None:
        with pytest.raises(ForbiddenError):
            await _annotate(index, code, DocumentTarget(world.document_id), world.outsider)

    async def test_not_a_target(self, index: AnnotationIndex, code, world) -> None:
        with pytest.raises(InvalidArgumentError):
            await _annotate(index, code, world.document_id, world.owner)


# ---------------------------------------------------------------------------
# listings
# ---------------------------------------------------------------------------


class TestListings:
    async def test_list_for_target_orders_by_start(
        self, index: AnnotationIndex, code, world
    ) -> None:
        target = DocumentTarget(world.document_id)
        late = await _annotate(index, code, target, world.owner, 31, 34)
        early = await _annotate(index, code, target, world.owner, 0, 6)
        middle = await _annotate(index, code, target, world.owner, 17, 24)

        listed = await index.list_for_target(target)
        assert [a.id for a in listed] == [early.id, middle.id, late.id]

    async def test_targets_do_not_mix(self, index: AnnotationIndex, code, world) -> None:
        doc = DocumentTarget(world.document_id)
        other_doc = DocumentTarget(world.new_document())
        transcript = TranscriptTarget(world.transcription_id)
        await _annotate(index, code, doc, world.owner)
        await _annotate(index, code, transcript, world.owner)

        assert len(await index.list_for_target(doc)) == 1
        assert len(await index.list_for_target(transcript)) == 1
        assert await index.list_for_target(other_doc) == []

    async def test_list_for_code_newest_first(
        self, index: AnnotationIndex, db_session: AsyncSession, code, world
    ) -> None:
        target = DocumentTarget(world.document_id)
        older = await insert_annotation(
            db_session, code, target, world.owner,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        newer = await insert_annotation(
            db_session, code, target, world.owner, start=10,
            created_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        )
        listed = await index.list_for_code(code.id)
        assert [a.id for a in listed] == [newer.id, older.id]

    async def test_list_for_unknown_code(self, index: AnnotationIndex) -> None:
        with pytest.raises(NotFoundError):
            await index.list_for_code(uuid.uuid4())

    async def test_list_orphaned(
        self, index: AnnotationIndex, db_session: AsyncSession, code, world
    ) -> None:
        target = DocumentTarget(world.document_id)
        kept_code = await insert_code(db_session, world.project_id, "Kept")
        await insert_annotation(db_session, kept_code, target, world.owner)
        orphan = await insert_annotation(db_session, code, target, world.owner, start=20)

        await db_session.delete(code)
        await db_session.flush()

        assert [a.id for a in await index.list_orphaned(world.project_id)] == [orphan.id]

    async def test_list_orphaned_unknown_project(self, index: AnnotationIndex) -> None:
        with pytest.raises(NotFoundError):
            await index.list_orphaned(uuid.uuid4())


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    @pytest.mark.parametrize("deleter", ["viewer", "editor", "owner"])
    async def test_allowed(self, index: AnnotationIndex, code, world, deleter: str) -> None:
        target = DocumentTarget(world.document_id)
        annotation = await _annotate(index, code, target, world.viewer)

        await index.delete(annotation.id, getattr(world, deleter))

        assert await index.list_for_target(target) == []

    async def test_other_viewer_is_forbidden(self, index: AnnotationIndex, code, world) -> None:
        other_viewer = uuid.uuid4()
        world.membership.grant(world.project_id, other_viewer, Role.VIEWER)
        annotation = await _annotate(index, code, DocumentTarget(world.document_id), world.editor)
        with pytest.raises(ForbiddenError):
            await index.delete(annotation.id, other_viewer)

    async def test_outsider_is_forbidden(self, index: AnnotationIndex, code, world) -> None:
        annotation = await _annotate(index, code, DocumentTarget(world.document_id), world.owner)
        with pytest.raises(ForbiddenError):
            await index.delete(annotation.id, world.outsider)

    async def test_unknown_annotation(self, index: AnnotationIndex, world) -> None:
        with pytest.raises(NotFoundError):
            await index.delete(uuid.uuid4(), world.owner)


# ---------------------------------------------------------------------------
# render
# ---------------------------------------------------------------------------


async def test_render_layers_overlapping_annotations(
    index: AnnotationIndex, code, db_session: AsyncSession, world
) -> None:
    target = DocumentTarget(world.document_id)
    funding = await insert_code(db_session, world.project_id, "Funding")
    wide = await _annotate(index, code, target, world.owner, 0, 24)
    narrow = await _annotate(index, funding, target, world.editor, 17, 24)

    segments = await index.render(target, TEXT)

    assert "".join(s.text for s in segments) == TEXT
    assert [(s.text, [a.id for a in s.layers]) for s in segments] == [
        ("Public transport ", [wide.id]),
        ("funding", [wide.id, narrow.id]),
        (" was cut again this year.", []),
    ]
