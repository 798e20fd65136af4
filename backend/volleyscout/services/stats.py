from __future__ import annotations

import math
from typing import Dict, Iterable, Optional, Sequence

try:
    import matplotlib.pyplot as plt  # type: ignore
except Exception:  # pragma: no cover - matplotlib is optional
    plt = None


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half toward positive infinity, so ``-2.5`` becomes ``-2``.

    ``round`` in Python rounds half to even.
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor + 0.0


def calc_percent(num: float, den: float) -> int:
    """Return ``num/den`` as a whole percentage, ``0`` when ``den`` is zero."""
    if not den:
        return 0
    return int(round_half_up(num / den * 100))


def ratio(num: float, den: float, ndigits: int = 2) -> float:
    """Return ``num/den`` rounded to ``ndigits``, ``0`` when ``den`` is zero."""
    if not den:
        return 0
    return round_half_up(num / den, ndigits)


def longest_run(winners: Sequence[Optional[str]], rally_nos: Sequence[int]) -> Optional[Dict]:
    """Find the longest streak of consecutive points won by the same side.

    Args:
        winners: winning side of each rally, in rally order.
        rally_nos: rally number matching each entry of ``winners``.
    Returns:
        ``{"side", "length", "startRally", "endRally"}`` for the first
        longest streak found, or ``None`` when there are no points.
    """
    best = None
    curr_side = None
    curr_len = 0
    curr_start = None
    for side, rally_no in zip(winners, rally_nos):
        if side is None:
            continue
        if side == curr_side:
            curr_len += 1
        else:
            curr_side = side
            curr_len = 1
            curr_start = rally_no
        if best is None or curr_len > best["length"]:
            best = {
                "side": curr_side,
                "length": curr_len,
                "startRally": curr_start,
                "endRally": rally_no,
            }
    return best


def score_progression(rallies: Iterable[Dict]) -> list[Dict[str, int]]:
    """Running score after each rally with a winner."""
    home = away = 0
    progression: list[Dict[str, int]] = []
    for rally in rallies:
        winner = rally.get("point_won_by")
        if winner == "CASA":
            home += 1
        elif winner == "FORA":
            away += 1
        else:
            continue
        progression.append(
            {"rallyNo": rally.get("rally_no"), "home": home, "away": away}
        )
    return progression


def plot_score_progression(rallies: Iterable[Dict], home_name: str = "CASA", away_name: str = "FORA"):
    """Create a matplotlib chart of the score progression of a set.

    Returns a ``matplotlib.figure.Figure`` that has already been closed with
    ``plt.close``. Returns ``None`` if matplotlib is unavailable."""
    if plt is None:
        return None
    points = score_progression(rallies)
    xs = range(1, len(points) + 1)
    fig, ax = plt.subplots()
    ax.step(xs, [p["home"] for p in points], where="post", label=home_name)
    ax.step(xs, [p["away"] for p in points], where="post", label=away_name)
    ax.set_xlabel("Rally")
    ax.set_ylabel("Points")
    ax.legend()
    plt.close(fig)
    return fig
