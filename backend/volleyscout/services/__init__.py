"""Application services: the point log store, roster lookups and the pure
helpers that derive statistics from point log rows."""

from .validation import ValidationError, action_warnings, rally_warnings
from .consolidation import consolidate
from .stats import (
    calc_percent,
    ratio,
    longest_run,
    plot_score_progression,
)

__all__ = [
    "ValidationError",
    "action_warnings",
    "rally_warnings",
    "consolidate",
    "calc_percent",
    "ratio",
    "longest_run",
    "plot_score_progression",
]
