"""Cross-match rollup: player rankings, summary and per-team conversion."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .consolidation import completed, consolidate
from .distribution import compute_distribution, distribution_summary
from .player_stats import as_dict, empty_player_stats, finish_averages, tally_rally
from .stats import calc_percent

MATCH_KEY = ("match_id", "set_no", "rally_no")
RANKING_SIZE = 10
MIN_ATTEMPTS = 5
MIN_BLOCK_ATTEMPTS = 3


def player_key(player: Dict[str, Any]) -> str:
    """Stable identity of a player across matches."""
    return player.get("team_player_id") or player["id"]


def _team_name(player: Dict[str, Any], matches: Dict[str, Dict[str, Any]]) -> str:
    match = matches.get(player.get("match_id"), {})
    if player.get("side") == "CASA":
        return match.get("home_name") or "Casa"
    return match.get("away_name") or "Fora"


def _rank(stats: List[Dict[str, Any]], attempts: str, by: str, minimum: int) -> List[Dict[str, Any]]:
    eligible = [s for s in stats if s[attempts] >= minimum]
    return sorted(eligible, key=lambda s: s[by], reverse=True)[:RANKING_SIZE]


def _player_rollup(
    rallies: List[Dict[str, Any]],
    players: List[Dict[str, Any]],
    matches: Dict[str, Dict[str, Any]],
) -> List[Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = {}
    match_ids: Dict[str, set] = {}
    key_of: Dict[str, str] = {}
    for player in players:
        key = player_key(player)
        key_of[player["id"]] = key
        if key not in stats:
            entry = empty_player_stats(player, player_id=key)
            entry["teamName"] = _team_name(player, matches)
            entry["matchCount"] = 0
            stats[key] = entry
            match_ids[key] = set()
        match_ids[key].add(player.get("match_id"))

    for rally in rallies:
        tally_rally(rally, stats, key_of.get)

    for key, entry in stats.items():
        entry["matchCount"] = len(match_ids[key])
        finish_averages(entry)
    return list(stats.values())


def _team_rollup(
    rallies: List[Dict[str, Any]], matches: Dict[str, Dict[str, Any]]
) -> List[Dict[str, Any]]:
    teams: Dict[str, Dict[str, Any]] = {}

    def team(name: str) -> Dict[str, Any]:
        return teams.setdefault(
            name,
            {
                "teamName": name,
                "matches": set(),
                "pointsWon": 0,
                "sideoutAttempts": 0,
                "sideoutPoints": 0,
                "breakAttempts": 0,
                "breakPoints": 0,
            },
        )

    for rally in rallies:
        match = matches.get(rally.get("match_id"), {})
        names = {
            "CASA": match.get("home_name") or "Casa",
            "FORA": match.get("away_name") or "Fora",
        }
        winner = rally["point_won_by"]
        receiver = team(names[rally["recv_side"]])
        server = team(names[rally["serve_side"]])
        receiver["matches"].add(rally.get("match_id"))
        server["matches"].add(rally.get("match_id"))
        receiver["sideoutAttempts"] += 1
        server["breakAttempts"] += 1
        if winner == rally["recv_side"]:
            receiver["sideoutPoints"] += 1
            receiver["pointsWon"] += 1
        else:
            server["breakPoints"] += 1
            server["pointsWon"] += 1

    result = []
    for entry in teams.values():
        entry["matchCount"] = len(entry.pop("matches"))
        entry["sideoutPercent"] = calc_percent(entry["sideoutPoints"], entry["sideoutAttempts"])
        entry["breakPercent"] = calc_percent(entry["breakPoints"], entry["breakAttempts"])
        result.append(entry)
    result.sort(key=lambda e: e["teamName"])
    return result


def compute_global_stats(
    rallies: Iterable[Dict[str, Any]],
    players: Iterable[Any],
    matches: Iterable[Any],
    match_id: Optional[str] = None,
    side: Optional[str] = None,
) -> Dict[str, Any]:
    """Aggregate the whole point log.

    ``match_id`` and ``side`` only restrict which rallies and players are
    considered; the formulas are the same with or without them.
    """
    match_map = {m["id"]: m for m in (as_dict(m) for m in matches)}
    roster = [as_dict(p) for p in players]
    rows = list(rallies)
    if match_id is not None:
        rows = [r for r in rows if r.get("match_id") == match_id]
        roster = [p for p in roster if p.get("match_id") == match_id]
        match_map = {k: v for k, v in match_map.items() if k == match_id}
    if side is not None:
        roster = [p for p in roster if p.get("side") == side]

    canonical = consolidate(rows, key=MATCH_KEY)
    finished = completed(canonical)
    player_stats = _player_rollup(canonical, roster, match_map)

    aces = sum(1 for r in finished if r.get("reason") == "ACE")
    blocks = sum(1 for r in finished if r.get("reason") == "BLK")
    sideouts = sum(1 for r in finished if r["point_won_by"] == r.get("recv_side"))
    total_matches = len(match_map)
    attackers = [p for p in player_stats if p["attAttempts"] >= MIN_ATTEMPTS]

    summary = {
        "totalMatches": total_matches,
        "totalRallies": len(finished),
        "totalPoints": len(finished),
        "avgAttackEfficiency": (
            sum(p["attEfficiency"] for p in attackers) / len(attackers) if attackers else 0
        ),
        "avgSideoutPercent": calc_percent(sideouts, len(finished)),
        "acesPerMatch": aces / total_matches if total_matches else 0,
        "blocksPerMatch": blocks / total_matches if total_matches else 0,
    }

    setters = compute_distribution(rows, roster, side=side, key=MATCH_KEY)

    return {
        "summary": summary,
        "playerStats": player_stats,
        "topAttackers": _rank(player_stats, "attAttempts", "attEfficiency", MIN_ATTEMPTS),
        "topReceivers": _rank(player_stats, "recAttempts", "recAvg", MIN_ATTEMPTS),
        "topServers": _rank(player_stats, "serveAttempts", "serveAvg", MIN_ATTEMPTS),
        "topBlockers": _rank(player_stats, "blkAttempts", "blkPoints", MIN_BLOCK_ATTEMPTS),
        "teams": _team_rollup(finished, match_map),
        "distribution": {"setters": setters, **distribution_summary(setters)},
    }
