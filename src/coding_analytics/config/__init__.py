"""Configuration package for Coding Analytics.

Re-exports the settings symbols so that callers can write::

    from coding_analytics.config import get_settings
"""

from __future__ import annotations

from coding_analytics.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
