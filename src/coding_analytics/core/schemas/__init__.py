"""Pydantic schemas shared by the engine services and the HTTP layer."""

from __future__ import annotations

from coding_analytics.core.schemas.annotations import (
    AnnotationCreate,
    AnnotationRead,
    TargetRef,
)
from coding_analytics.core.schemas.codes import (
    CodeCreate,
    CodeDetail,
    CodeRead,
    CodeSummary,
    CodeTreeNode,
    CodeUpdate,
)

__all__ = [
    # codes
    "CodeCreate",
    "CodeUpdate",
    "CodeSummary",
    "CodeRead",
    "CodeDetail",
    "CodeTreeNode",
    # annotations
    "TargetRef",
    "AnnotationCreate",
    "AnnotationRead",
]
