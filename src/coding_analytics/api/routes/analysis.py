"""Analysis API routes.

Exposes the AnalyticsEngine aggregates over HTTP.  Every route takes the
same filter query parameters:

    code_ids   — repeatable; restrict to these codes
    date_from  — inclusive start date (YYYY-MM-DD)
    date_to    — inclusive end date (YYYY-MM-DD)

Routes (all under ``/projects/{project_id}/analysis``):
    GET /frequencies        — counts and percentages per code, grouped by parent
    GET /word-cloud         — most frequent terms in annotated text
    GET /co-occurrence      — code co-occurrence matrix and graph
    GET /temporal           — annotations per code per day / week / month
    GET /user-comparison    — per-user coding matrix
    GET /statistics         — project totals and top codes / annotators
    GET /dashboard          — the five aggregates in one response

All routes require project membership and never fail on "no data".
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated, Any, Literal, Optional

from fastapi import APIRouter, Depends, Query

from coding_analytics.analysis._filters import AnalysisFilter
from coding_analytics.analysis.engine import AnalyticsEngine
from coding_analytics.api.dependencies import get_analytics, require_project_member

router = APIRouter()

Interval = Literal["day", "week", "month"]


def get_analysis_filter(
    project_id: uuid.UUID,
    code_ids: Annotated[Optional[list[uuid.UUID]], Query()] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> AnalysisFilter:
    """Build the :class:`AnalysisFilter` from path and query parameters."""
    return AnalysisFilter.from_dates(
        project_id,
        code_ids=code_ids,
        date_from=date_from,
        date_to=date_to,
    )


Engine = Annotated[AnalyticsEngine, Depends(get_analytics)]
Filter = Annotated[AnalysisFilter, Depends(get_analysis_filter)]
Member = Annotated[uuid.UUID, Depends(require_project_member)]


@router.get("/frequencies")
async def frequencies(engine: Engine, flt: Filter, _actor: Member) -> dict[str, Any]:
    return await engine.get_frequencies(flt)


@router.get("/word-cloud")
async def word_cloud(
    engine: Engine,
    flt: Filter,
    _actor: Member,
    max_words: Annotated[Optional[int], Query(ge=1, le=500)] = None,
    min_word_length: Annotated[Optional[int], Query(ge=1, le=50)] = None,
    exclude_common_words: bool = True,
) -> dict[str, Any]:
    return await engine.get_word_cloud(
        flt,
        max_words=max_words,
        min_word_length=min_word_length,
        exclude_common_words=exclude_common_words,
    )


@router.get("/co-occurrence")
async def co_occurrence(engine: Engine, flt: Filter, _actor: Member) -> dict[str, Any]:
    return await engine.get_co_occurrence(flt)


@router.get("/temporal")
async def temporal(
    engine: Engine,
    flt: Filter,
    _actor: Member,
    interval: Interval = "month",
) -> dict[str, Any]:
    return await engine.get_temporal_evolution(flt, interval=interval)


@router.get("/user-comparison")
async def user_comparison(engine: Engine, flt: Filter, _actor: Member) -> dict[str, Any]:
    return await engine.get_user_comparison(flt)


@router.get("/statistics")
async def statistics(
    project_id: uuid.UUID, engine: Engine, _actor: Member
) -> dict[str, Any]:
    return await engine.get_coding_statistics(project_id)


@router.get("/dashboard")
async def dashboard(
    engine: Engine,
    flt: Filter,
    _actor: Member,
    interval: Interval = "month",
) -> dict[str, Any]:
    """All five aggregates for the filter in one response."""
    return await engine.get_project_visualizations(flt, interval=interval)
