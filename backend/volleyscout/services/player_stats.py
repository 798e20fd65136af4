from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from .consolidation import consolidate

# (prefix, player columns, code column) per skill; blocks credit all blockers.
SKILLS = (
    ("serve", ("s_player_id",), "s_code"),
    ("rec", ("r_player_id",), "r_code"),
    ("att", ("a_player_id",), "a_code"),
    ("blk", ("b1_player_id", "b2_player_id", "b3_player_id"), "b_code"),
    ("def", ("d_player_id",), "d_code"),
)

AVERAGED = ("serve", "rec", "att", "def")


def as_dict(obj: Any) -> Dict[str, Any]:
    """Roster entries may be ORM rows or plain mappings."""
    if isinstance(obj, dict):
        return obj
    return {k: v for k, v in vars(obj).items() if not k.startswith("_")}


def empty_player_stats(player: Dict[str, Any], player_id: Optional[str] = None) -> Dict[str, Any]:
    stats: Dict[str, Any] = {
        "playerId": player_id or player["id"],
        "playerName": player.get("name"),
        "jerseyNumber": player.get("jersey_number"),
        "side": player.get("side"),
    }
    for prefix, _, _ in SKILLS:
        stats[f"{prefix}Attempts"] = 0
        stats[f"{prefix}Points"] = 0
        stats[f"{prefix}Errors"] = 0
    for prefix in AVERAGED:
        stats[f"{prefix}Avg"] = 0
    stats["attEfficiency"] = 0
    return stats


def skill_average(points: int, errors: int, attempts: int) -> float:
    """Average on the 0-3 scale: a point is 3, an error 0, anything else 1.5."""
    if not attempts:
        return 0
    return (points * 3 + (attempts - points - errors) * 1.5) / attempts


def tally_rally(
    rally: Dict[str, Any],
    stats: Dict[str, Dict[str, Any]],
    key_for: Callable[[str], Optional[str]],
) -> None:
    """Add one canonical rally to per-player counters keyed by ``key_for(player_id)``."""
    for prefix, columns, code_col in SKILLS:
        code = rally.get(code_col)
        if code is None:
            continue
        for col in columns:
            pid = rally.get(col)
            if not pid:
                continue
            key = key_for(pid)
            if key is None or key not in stats:
                continue
            entry = stats[key]
            entry[f"{prefix}Attempts"] += 1
            if code == 3:
                entry[f"{prefix}Points"] += 1
            elif code == 0:
                entry[f"{prefix}Errors"] += 1


def finish_averages(entry: Dict[str, Any]) -> Dict[str, Any]:
    for prefix in AVERAGED:
        entry[f"{prefix}Avg"] = skill_average(
            entry[f"{prefix}Points"], entry[f"{prefix}Errors"], entry[f"{prefix}Attempts"]
        )
    if entry["attAttempts"]:
        entry["attEfficiency"] = (entry["attPoints"] - entry["attErrors"]) / entry["attAttempts"]
    return entry


def compute_player_stats(
    rallies: Iterable[Dict[str, Any]], players: Iterable[Any]
) -> List[Dict[str, Any]]:
    """Box score of every rostered player over the given rallies.

    Rallies are consolidated per ``(set_no, rally_no)``; touches by players
    missing from ``players`` are ignored.
    """
    stats: Dict[str, Dict[str, Any]] = {}
    for player in players:
        data = as_dict(player)
        stats[data["id"]] = empty_player_stats(data)

    for rally in consolidate(rallies):
        tally_rally(rally, stats, lambda pid: pid)

    return [finish_averages(entry) for entry in stats.values()]
