"""HTTP tests for the annotation routes.

Tests verify through the FastAPI app:
- POST /annotations creates (201); bad spans are 400, unknown codes 404,
  outsiders 403
- target listings are ordered by start_index and member-only
- code listing and orphan listing
- DELETE by the author is 204, by another viewer 403
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from tests.factories import AnnotationPayloadFactory, as_user

pytestmark = pytest.mark.integration


async def _code(client: AsyncClient, world, name: str = "Health") -> dict:
    response = await client.post(
        f"/projects/{world.project_id}/codes",
        json={"name": name},
        headers=as_user(world.owner),
    )
    assert response.status_code == 201, response.text
    return response.json()


def _doc_ref(world) -> dict:
    return {"kind": "document", "id": str(world.document_id)}


async def _annotate(client: AsyncClient, world, code: dict, actor=None, **overrides):
    body = AnnotationPayloadFactory.build(
        code_id=code["id"], target=_doc_ref(world), **overrides
    )
    return await client.post("/annotations", json=body, headers=as_user(actor or world.viewer))


class TestCreate:
    async def test_create(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        response = await _annotate(client, world, code, selected_text="community health")
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["code_id"] == code["id"]
        assert data["target_kind"] == "document"
        assert data["target_id"] == str(world.document_id)
        assert data["end_index"] - data["start_index"] == len("community health")
        assert data["user_id"] == str(world.viewer)

    async def test_transcription_target(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        body = AnnotationPayloadFactory.build(
            code_id=code["id"],
            target={"kind": "transcription", "id": str(world.transcription_id)},
        )
        response = await client.post("/annotations", json=body, headers=as_user(world.owner))
        assert response.status_code == 201
        assert response.json()["target_kind"] == "transcription"

    async def test_bad_span_is_400(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        response = await _annotate(
            client, world, code, start_index=10, end_index=10, selected_text=""
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgumentError"

    async def test_unknown_target_kind_is_422(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        body = AnnotationPayloadFactory.build(
            code_id=code["id"], target={"kind": "video", "id": str(uuid.uuid4())}
        )
        response = await client.post("/annotations", json=body, headers=as_user(world.owner))
        assert response.status_code == 422

    async def test_unknown_code_is_404(self, client: AsyncClient, world) -> None:
        response = await _annotate(client, world, {"id": str(uuid.uuid4())})
        assert response.status_code == 404

    async def test_outsider_is_403(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        response = await _annotate(client, world, code, actor=world.outsider)
        assert response.status_code == 403


class TestListings:
    async def test_document_listing_is_ordered(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        for start in (200, 0, 100):
            response = await _annotate(
                client, world, code, start_index=start, end_index=start + 4, selected_text="text"
            )
            assert response.status_code == 201

        response = await client.get(
            f"/annotations/documents/{world.document_id}", headers=as_user(world.viewer)
        )
        assert response.status_code == 200
        assert [a["start_index"] for a in response.json()] == [0, 100, 200]

    async def test_transcription_listing(self, client: AsyncClient, world) -> None:
        response = await client.get(
            f"/annotations/transcriptions/{world.transcription_id}",
            headers=as_user(world.viewer),
        )
        assert response.status_code == 200
        assert response.json() == []

    async def test_listing_requires_membership(self, client: AsyncClient, world) -> None:
        response = await client.get(
            f"/annotations/documents/{world.document_id}", headers=as_user(world.outsider)
        )
        assert response.status_code == 403

    async def test_unknown_document_is_404(self, client: AsyncClient, world) -> None:
        response = await client.get(
            f"/annotations/documents/{uuid.uuid4()}", headers=as_user(world.owner)
        )
        assert response.status_code == 404

    async def test_code_listing_and_orphans(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        created = (await _annotate(client, world, code)).json()

        by_code = await client.get(
            f"/codes/{code['id']}/annotations", headers=as_user(world.viewer)
        )
        assert [a["id"] for a in by_code.json()] == [created["id"]]

        await client.delete(f"/codes/{code['id']}", headers=as_user(world.owner))
        orphans = await client.get(
            f"/projects/{world.project_id}/annotations/orphaned", headers=as_user(world.viewer)
        )
        assert orphans.status_code == 200
        assert [a["id"] for a in orphans.json()] == [created["id"]]


class TestDelete:
    async def test_author_can_delete(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        created = (await _annotate(client, world, code)).json()
        response = await client.delete(
            f"/annotations/{created['id']}", headers=as_user(world.viewer)
        )
        assert response.status_code == 204

    async def test_other_viewer_cannot_delete(self, client: AsyncClient, world) -> None:
        code = await _code(client, world)
        created = (await _annotate(client, world, code, actor=world.editor)).json()
        response = await client.delete(
            f"/annotations/{created['id']}", headers=as_user(world.viewer)
        )
        assert response.status_code == 403

    async def test_unknown_annotation_is_404(self, client: AsyncClient, world) -> None:
        response = await client.delete(f"/annotations/{uuid.uuid4()}", headers=as_user(world.owner))
        assert response.status_code == 404
