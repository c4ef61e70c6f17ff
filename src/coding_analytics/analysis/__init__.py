"""Analysis modules: code frequencies, word cloud, co-occurrence, temporal evolution and user comparison."""

from __future__ import annotations

from coding_analytics.analysis._filters import (
    AnalysisFilter,
    build_annotation_filters,
    fetch_coded_annotations,
)
from coding_analytics.analysis.descriptive import (
    get_code_frequencies,
    get_coding_statistics,
    get_user_comparison,
    group_frequencies,
)
from coding_analytics.analysis.engine import AnalyticsEngine
from coding_analytics.analysis.network import build_co_occurrence, get_co_occurrence
from coding_analytics.analysis.temporal import (
    add_months,
    generate_boundaries,
    get_temporal_evolution,
)
from coding_analytics.analysis.wordcloud import build_word_cloud, get_word_cloud

__all__ = [
    # filters (shared by every aggregate)
    "AnalysisFilter",
    "build_annotation_filters",
    "fetch_coded_annotations",
    # descriptive
    "get_code_frequencies",
    "group_frequencies",
    "get_user_comparison",
    "get_coding_statistics",
    # word cloud
    "build_word_cloud",
    "get_word_cloud",
    # network
    "build_co_occurrence",
    "get_co_occurrence",
    # temporal
    "add_months",
    "generate_boundaries",
    "get_temporal_evolution",
    # facade
    "AnalyticsEngine",
]
