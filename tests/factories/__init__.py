"""Factory Boy factories and row helpers for test data generation.

Available factories
-------------------
CodePayloadFactory          — CodeCreate request dict
FrenchCodePayloadFactory    — CodeCreate dict with accented names
AnnotationPayloadFactory    — POST /annotations body with a consistent span

Row helpers
-----------
insert_code                 — insert a Code row directly
insert_annotation           — insert an Annotation row directly (pinnable created_at)
as_user                     — X-User-ID headers for the API
"""

from __future__ import annotations

import uuid

from tests.factories.annotations import AnnotationPayloadFactory, insert_annotation
from tests.factories.codes import CodePayloadFactory, FrenchCodePayloadFactory, insert_code


def as_user(user_id: uuid.UUID) -> dict[str, str]:
    """Headers identifying *user_id* to the API."""
    return {"X-User-ID": str(user_id)}


__all__ = [
    "AnnotationPayloadFactory",
    "CodePayloadFactory",
    "FrenchCodePayloadFactory",
    "as_user",
    "insert_annotation",
    "insert_code",
]
