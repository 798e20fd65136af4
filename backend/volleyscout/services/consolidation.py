from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence, Tuple

Row = Dict[str, Any]

OUTCOME_FIELDS = ("point_won_by", "reason")
DEFAULT_KEY = ("set_no", "rally_no")


def consolidate(
    rows: Iterable[Row], key: Sequence[str] = DEFAULT_KEY
) -> List[Row]:
    """Collapse multi-phase rally rows into one canonical row per rally.

    Rows sharing ``key`` are merged in ascending ``phase`` order: every later
    phase overwrites only the fields it actually carries (non-null), while
    ``point_won_by`` and ``reason`` keep the first non-null value found.  The
    result is sorted by ``key``.  Running it on its own output is a no-op.
    """
    groups: Dict[Tuple, List[Row]] = {}
    for row in rows:
        groups.setdefault(tuple(row.get(k) for k in key), []).append(row)

    merged: List[Row] = []
    for group_key in sorted(groups, key=_sort_key):
        phases = sorted(groups[group_key], key=lambda r: r.get("phase") or 1)
        canonical: Row = dict(phases[0])
        for row in phases[1:]:
            for field, value in row.items():
                if value is None or field in OUTCOME_FIELDS:
                    continue
                canonical[field] = value
        for field in OUTCOME_FIELDS:
            canonical[field] = next(
                (r[field] for r in phases if r.get(field) is not None), None
            )
        merged.append(canonical)
    return merged


def _sort_key(group_key: Tuple) -> Tuple:
    # None sorts first; keys mix ints and ids so compare as (flag, value)
    return tuple((v is not None, v if v is not None else 0) for v in group_key)


def rallies_for_set(rows: Iterable[Row], set_no: int) -> List[Row]:
    """Canonical rallies of one set, ordered by ``rally_no``."""
    return consolidate(r for r in rows if r.get("set_no") == set_no)


def completed(rallies: Iterable[Row]) -> List[Row]:
    """Only rallies that have a winner."""
    return [r for r in rallies if r.get("point_won_by")]
