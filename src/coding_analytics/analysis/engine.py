"""AnalyticsEngine: read-only aggregates over a project's annotations.

The engine is a thin facade over the module-level query functions in this
package.  It adds the one failure the aggregates report (an unknown project)
and the configured defaults, and it supplies the user directory to the
functions that label users.  It never mutates anything.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.analysis._filters import AnalysisFilter
from coding_analytics.analysis.descriptive import (
    get_code_frequencies,
    get_coding_statistics,
    get_user_comparison,
)
from coding_analytics.analysis.network import get_co_occurrence
from coding_analytics.analysis.temporal import get_temporal_evolution
from coding_analytics.analysis.wordcloud import get_word_cloud
from coding_analytics.config.settings import Settings, get_settings
from coding_analytics.core.collaborators import Collaborators
from coding_analytics.core.exceptions import NotFoundError

logger = structlog.get_logger(__name__)


class AnalyticsEngine:
    """Compute frequency, word-cloud, co-occurrence, temporal and per-user views.

    Every method raises :class:`NotFoundError` when the project does not
    exist and otherwise returns possibly-empty structures.

    Args:
        session: An open :class:`sqlalchemy.ext.asyncio.AsyncSession`.
        collaborators: Used for the project-exists check and user names.
        settings: Defaults for word-cloud, temporal and statistics sizes.
    """

    def __init__(
        self,
        session: AsyncSession,
        collaborators: Collaborators,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.collaborators = collaborators
        self.settings = settings or get_settings()

    async def _require_project(self, project_id: uuid.UUID) -> None:
        if not await self.collaborators.membership.project_exists(project_id):
            logger.debug("analysis.project_not_found", project_id=str(project_id))
            raise NotFoundError("project", project_id)

    async def get_frequencies(self, flt: AnalysisFilter) -> dict[str, Any]:
        await self._require_project(flt.project_id)
        return await get_code_frequencies(self.session, flt)

    async def get_word_cloud(
        self,
        flt: AnalysisFilter,
        max_words: Optional[int] = None,
        min_word_length: Optional[int] = None,
        exclude_common_words: bool = True,
    ) -> dict[str, Any]:
        await self._require_project(flt.project_id)
        return await get_word_cloud(
            self.session,
            flt,
            max_words=max_words if max_words is not None else self.settings.word_cloud_max_words,
            min_word_length=(
                min_word_length
                if min_word_length is not None
                else self.settings.word_cloud_min_word_length
            ),
            exclude_common_words=exclude_common_words,
        )

    async def get_co_occurrence(self, flt: AnalysisFilter) -> dict[str, Any]:
        await self._require_project(flt.project_id)
        return await get_co_occurrence(self.session, flt)

    async def get_temporal_evolution(
        self,
        flt: AnalysisFilter,
        interval: str = "month",
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        await self._require_project(flt.project_id)
        return await get_temporal_evolution(
            self.session,
            flt,
            interval=interval,
            default_months=self.settings.temporal_default_months,
            now=now,
        )

    async def get_user_comparison(self, flt: AnalysisFilter) -> dict[str, Any]:
        await self._require_project(flt.project_id)
        return await get_user_comparison(self.session, flt, self.collaborators.users)

    async def get_coding_statistics(self, project_id: uuid.UUID) -> dict[str, Any]:
        await self._require_project(project_id)
        return await get_coding_statistics(
            self.session,
            project_id,
            self.collaborators.users,
            top_codes=self.settings.top_codes_limit,
            top_users=self.settings.top_users_limit,
        )

    async def get_project_visualizations(
        self, flt: AnalysisFilter, interval: str = "month"
    ) -> dict[str, Any]:
        """All five aggregates for one filter, as a single dashboard payload.

        The aggregates run one after another because they share one session.
        """
        await self._require_project(flt.project_id)
        users = self.collaborators.users
        return {
            "frequencies": await get_code_frequencies(self.session, flt),
            "word_cloud": await get_word_cloud(
                self.session,
                flt,
                max_words=self.settings.word_cloud_max_words,
                min_word_length=self.settings.word_cloud_min_word_length,
            ),
            "co_occurrence": await get_co_occurrence(self.session, flt),
            "temporal": await get_temporal_evolution(
                self.session,
                flt,
                interval=interval,
                default_months=self.settings.temporal_default_months,
            ),
            "user_comparison": await get_user_comparison(self.session, flt, users),
        }
