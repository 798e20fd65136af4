"""Setter distribution: where sets go and whether the choice was available."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .consolidation import consolidate
from .player_stats import as_dict
from .stats import calc_percent, ratio

DESTINATIONS = ("P2", "P3", "P4", "OP", "PIPE", "BACK", "OUTROS")

# Destinations a setter can reasonably reach for each reception quality.
POSITIONS_BY_RECEPTION: Dict[int, tuple] = {
    3: ("P2", "P3", "P4", "OP", "PIPE", "OUTROS"),
    2: ("P2", "P4", "OP", "PIPE", "OUTROS"),
    1: ("P2", "P4", "OP", "OUTROS"),
    0: ("BACK", "OUTROS"),
}


def available_positions(r_code: Optional[int]) -> tuple:
    """Destinations available after a reception of quality ``r_code``."""
    return POSITIONS_BY_RECEPTION.get(r_code, POSITIONS_BY_RECEPTION[0])


def is_within_available(destination: str, r_code: Optional[int]) -> bool:
    return destination in available_positions(r_code)


def _new_setter(setter_id: str, player: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "setterId": setter_id,
        "setterName": player.get("name"),
        "jerseyNumber": player.get("jersey_number"),
        "side": player.get("side"),
        "destinations": {d: 0 for d in DESTINATIONS},
        "total": 0,
        "withinAvailable": 0,
        "availableSum": 0,
        "byReception": {},
    }


def compute_distribution(
    rallies: Iterable[Dict[str, Any]],
    players: Iterable[Any],
    side: Optional[str] = None,
    setter_id: Optional[str] = None,
    key: Iterable[str] = ("set_no", "rally_no"),
) -> List[Dict[str, Any]]:
    """Per-setter distribution over canonical rallies with a destination.

    ``usedWithinAvailable`` is the share of sets whose destination was in the
    available set for the preceding reception quality.  Rallies set by
    players missing from ``players`` are skipped; ``side`` and ``setter_id``
    only narrow which setters are reported.
    """
    roster = {p["id"]: p for p in (as_dict(x) for x in players)}
    setters: Dict[str, Dict[str, Any]] = {}

    for rally in consolidate(rallies, key=tuple(key)):
        sid = rally.get("setter_player_id")
        destination = rally.get("pass_destination")
        if not sid or not destination:
            continue
        player = roster.get(sid)
        if player is None:
            continue
        if side and player.get("side") != side:
            continue
        if setter_id and sid != setter_id:
            continue
        entry = setters.setdefault(sid, _new_setter(sid, player))
        dest = destination if destination in DESTINATIONS else "OUTROS"
        r_code = rally.get("r_code")
        available = available_positions(r_code)
        entry["destinations"][dest] += 1
        entry["total"] += 1
        entry["availableSum"] += len(available)
        if dest in available:
            entry["withinAvailable"] += 1
        bucket = entry["byReception"].setdefault(
            "none" if r_code is None else str(r_code),
            {"total": 0, "withinAvailable": 0, "destinations": {}},
        )
        bucket["total"] += 1
        bucket["destinations"][dest] = bucket["destinations"].get(dest, 0) + 1
        if dest in available:
            bucket["withinAvailable"] += 1

    result = []
    for entry in setters.values():
        ranked = sorted(
            (d for d in DESTINATIONS if entry["destinations"][d]),
            key=lambda d: -entry["destinations"][d],
        )
        entry["preference"] = ranked[0] if ranked else "-"
        entry["top2"] = " | ".join(
            f"{d} {calc_percent(entry['destinations'][d], entry['total'])}%"
            for d in ranked[:2]
        ) or "-"
        entry["avgAvailablePositions"] = ratio(entry.pop("availableSum"), entry["total"])
        entry["usedWithinAvailable"] = calc_percent(entry["withinAvailable"], entry["total"])
        for bucket in entry["byReception"].values():
            bucket["usedWithinAvailable"] = calc_percent(
                bucket["withinAvailable"], bucket["total"]
            )
        result.append(entry)

    result.sort(key=lambda e: (e["side"] != "CASA", e["setterName"] or ""))
    return result


def distribution_summary(setters: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Roll per-setter entries into one within-available percentage."""
    total = within = 0
    for entry in setters:
        total += entry["total"]
        within += entry["withinAvailable"]
    return {
        "total": total,
        "withinAvailable": within,
        "usedWithinAvailable": calc_percent(within, total),
    }
