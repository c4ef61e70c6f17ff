"""SQLAlchemy ORM models for Coding Analytics.

All models are imported here so that:
1. Alembic autogenerate can discover them via Base.metadata.
2. Application code can do `from coding_analytics.core.models import Code`
   without knowing which sub-module a model lives in.
"""

from __future__ import annotations

from coding_analytics.core.models.base import Base, TimestampMixin, UTCDateTime
from coding_analytics.core.models.annotations import Annotation
from coding_analytics.core.models.codes import Code, name_key_for

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    # Taxonomy
    "Code",
    "name_key_for",
    # Annotations
    "Annotation",
]
