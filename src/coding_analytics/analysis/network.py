"""Code co-occurrence network.

Two codes co-occur when both are applied somewhere within the same target
(document or transcription).  The result is a symmetric count matrix plus a
graph view of it.

Graph dict format:
    {
      "nodes": [{"id": str, "name": str, "color": str, "value": int}, ...],
      "links": [{"source": str, "target": str, "value": int}, ...]
    }

Design notes
------------
- Each target contributes its *distinct* code set once, however many times
  a code is applied in it.
- For every unordered pair of distinct codes in a target both
  ``matrix[i][j]`` and ``matrix[j][i]`` are incremented, so the matrix is
  symmetric by construction and its diagonal is always zero.
- Links are emitted for ``i < j`` only, so each pair appears once.
- Empty scopes return empty lists rather than raising.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from itertools import combinations
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.analysis._filters import (
    AnalysisFilter,
    code_ref,
    fetch_coded_annotations,
)
from coding_analytics.core.models.codes import Code

logger = structlog.get_logger(__name__)


def _empty_network() -> dict[str, Any]:
    """Return an empty co-occurrence result."""
    return {"codes": [], "matrix": [], "normalized_matrix": [], "nodes": [], "links": []}


def build_co_occurrence(
    code_sets: list[set[uuid.UUID]], codes: list[Code]
) -> dict[str, Any]:
    """Build the co-occurrence matrix and graph from per-target code sets.

    Args:
        code_sets: One set of distinct code ids per target.
        codes: The codes to index the matrix by, in display order.  Ids in
            *code_sets* that are not in *codes* are ignored.

    Returns:
        ``{codes, matrix, normalized_matrix, nodes, links}``.  ``codes[i]``
        labels row and column ``i`` of both matrices; ``normalized_matrix``
        divides every cell by the largest one.
    """
    if not codes:
        return _empty_network()

    index = {code.id: i for i, code in enumerate(codes)}
    size = len(codes)
    matrix = [[0] * size for _ in range(size)]
    presence = [0] * size

    for code_set in code_sets:
        positions = sorted(index[c] for c in code_set if c in index)
        for i in positions:
            presence[i] += 1
        for i, j in combinations(positions, 2):
            matrix[i][j] += 1
            matrix[j][i] += 1

    peak = max(max(row) for row in matrix)
    normalized = [[cell / peak if peak else 0.0 for cell in row] for row in matrix]

    code_rows = [
        {**code_ref(code), "total_occurrences": sum(matrix[i])}
        for i, code in enumerate(codes)
    ]
    nodes = [
        {"id": str(code.id), "name": code.name, "color": code.color, "value": presence[i]}
        for i, code in enumerate(codes)
    ]
    links = [
        {"source": str(codes[i].id), "target": str(codes[j].id), "value": matrix[i][j]}
        for i in range(size)
        for j in range(i + 1, size)
        if matrix[i][j] > 0
    ]
    return {
        "codes": code_rows,
        "matrix": matrix,
        "normalized_matrix": normalized,
        "nodes": nodes,
        "links": links,
    }


async def get_co_occurrence(db: AsyncSession, flt: AnalysisFilter) -> dict[str, Any]:
    """Co-occurrence of the codes applied in scope, per annotation target.

    Args:
        db: Active async database session.
        flt: The analytics scope.

    Returns:
        See :func:`build_co_occurrence`.  Only codes with at least one
        in-scope annotation are included, ordered by name.
    """
    rows = await fetch_coded_annotations(db, flt)

    per_target: dict[tuple[str, uuid.UUID], set[uuid.UUID]] = defaultdict(set)
    codes: dict[uuid.UUID, Code] = {}
    for annotation, code in rows:
        per_target[(annotation.target_kind, annotation.target_id)].add(code.id)
        codes[code.id] = code

    ordered = sorted(codes.values(), key=lambda c: (c.name_key, str(c.id)))
    result = build_co_occurrence(list(per_target.values()), ordered)

    logger.debug(
        "analysis.co_occurrence",
        project_id=str(flt.project_id),
        targets=len(per_target),
        codes=len(ordered),
        links=len(result["links"]),
    )
    return result
