"""Set-level KPI report.

Everything here is derived from the point log on demand; nothing is stored.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .consolidation import consolidate, rallies_for_set
from .stats import calc_percent, longest_run, ratio

SIDES = ("CASA", "FORA")
CLUTCH_SCORE = 20
WORST_ROTATION_MIN_ATTEMPTS = 2
TOP_N = 3
SERVE_TYPES = ("FLOAT", "JUMP_FLOAT", "POWER", "OTHER")

_PERCENTS = {
    "sideoutPercent": ("sideoutPoints", "sideoutAttempts"),
    "breakPercent": ("breakPoints", "breakAttempts"),
    "serveErrorPercent": ("serveErrors", "serveTotal"),
    "serveAcePercent": ("serveAces", "serveTotal"),
    "servePressurePercent": ("servePressure", "serveTotal"),
    "recPerfectPercent": ("recPerfect", "recTotal"),
    "recPositivePercent": ("recPositive", "recTotal"),
    "recErrorPercent": ("recErrors", "recTotal"),
    "recUnderPressurePercent": ("recUnderPressure", "recTotal"),
    "attKillPercent": ("attKills", "attTotal"),
    "attErrorPercent": ("attErrors", "attTotal"),
    "attBlockedPercent": ("attBlocked", "attTotal"),
}

_COUNTERS = (
    "sideoutAttempts",
    "sideoutPoints",
    "breakAttempts",
    "breakPoints",
    "serveTotal",
    "serveErrors",
    "serveAces",
    "servePressure",
    "recTotal",
    "recPerfect",
    "recPositive",
    "recErrors",
    "recUnderPressure",
    "attTotal",
    "attKills",
    "attErrors",
    "attBlocked",
    "unforcedServe",
    "unforcedAttack",
    "unforcedOther",
    "pointsOffered",
)


def _other(side: str) -> str:
    return "FORA" if side == "CASA" else "CASA"


def _empty_team() -> Dict[str, Any]:
    return {name: 0 for name in _COUNTERS}


def attacker_side(rally: Dict[str, Any]) -> Optional[str]:
    """Side credited with the attack of a flattened rally.

    The row does not carry the attacker's side, so it is inferred from the
    outcome; without one the receiving team is assumed (first attack after
    reception).
    """
    winner = rally.get("point_won_by")
    reason = rally.get("reason")
    if reason == "KILL" and winner:
        return winner
    if reason in ("AE", "BLK") and winner:
        return _other(winner)
    return rally.get("recv_side")


def _tally(rally: Dict[str, Any], teams: Dict[str, Dict[str, Any]]) -> None:
    serve_side = rally.get("serve_side")
    recv_side = rally.get("recv_side")
    winner = rally["point_won_by"]
    reason = rally.get("reason")
    loser = _other(winner)

    if recv_side in teams:
        team = teams[recv_side]
        team["sideoutAttempts"] += 1
        if winner == recv_side:
            team["sideoutPoints"] += 1
    if serve_side in teams:
        team = teams[serve_side]
        team["breakAttempts"] += 1
        if winner == serve_side:
            team["breakPoints"] += 1

        s_code = rally.get("s_code")
        team["serveTotal"] += 1
        if s_code == 0 or reason == "SE":
            team["serveErrors"] += 1
        if s_code == 3 or reason == "ACE":
            team["serveAces"] += 1
        if s_code in (1, 2):
            team["servePressure"] += 1

    if recv_side in teams and reason != "SE":
        team = teams[recv_side]
        r_code = rally.get("r_code")
        if reason == "ACE":
            team["recTotal"] += 1
            team["recErrors"] += 1
        elif r_code is not None:
            team["recTotal"] += 1
            if r_code == 3:
                team["recPerfect"] += 1
            if r_code >= 2:
                team["recPositive"] += 1
            if r_code == 1:
                team["recUnderPressure"] += 1
            if r_code == 0:
                team["recErrors"] += 1

    a_code = rally.get("a_code")
    if a_code is not None:
        side = attacker_side(rally)
        if side in teams:
            team = teams[side]
            team["attTotal"] += 1
            if a_code == 3:
                team["attKills"] += 1
            if a_code == 0:
                team["attErrors"] += 1
            if reason == "BLK" and winner != side:
                team["attBlocked"] += 1

    if reason == "SE" and serve_side in teams:
        teams[serve_side]["unforcedServe"] += 1
        teams[serve_side]["pointsOffered"] += 1
    elif reason == "AE":
        teams[loser]["unforcedAttack"] += 1
        teams[loser]["pointsOffered"] += 1
    elif reason == "OP":
        teams[loser]["unforcedOther"] += 1
        teams[loser]["pointsOffered"] += 1


def _finish_team(team: Dict[str, Any]) -> Dict[str, Any]:
    for key, (num, den) in _PERCENTS.items():
        team[key] = calc_percent(team[num], team[den])
    team["serveEfficiency"] = ratio(
        team["serveAces"] - team["serveErrors"], team["serveTotal"]
    )
    team["attEfficiency"] = ratio(
        team["attKills"] - team["attErrors"] - team["attBlocked"], team["attTotal"]
    )
    return team


def team_kpis(rallies: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Two-team breakdown over canonical rallies (rallies without a winner skipped)."""
    teams = {side: _empty_team() for side in SIDES}
    for rally in rallies:
        if rally.get("point_won_by") not in SIDES:
            continue
        _tally(rally, teams)
    return {side: _finish_team(team) for side, team in teams.items()}


def _serve_type_row(serve_type: Optional[str], codes: List[int]) -> Dict[str, Any]:
    total = len(codes)
    aces = codes.count(3)
    errors = codes.count(0)
    return {
        "type": serve_type,
        "total": total,
        "aces": aces,
        "errors": errors,
        "neutral": total - aces - errors,
        "aceRate": ratio(aces, total),
        "errorRate": ratio(errors, total),
        "efficiency": ratio(aces - errors, total),
    }


def serve_type_breakdown(rallies: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Ace, error and efficiency per serve type for each serving side.

    Only rallies with a serve code count.  Types never used are left out;
    serves recorded without a type come last with ``type=None``.
    """
    codes: Dict[str, Dict[Optional[str], List[int]]] = {side: {} for side in SIDES}
    for rally in rallies:
        side = rally.get("serve_side")
        s_code = rally.get("s_code")
        if side not in codes or s_code is None:
            continue
        codes[side].setdefault(rally.get("s_type") or None, []).append(s_code)
    result: Dict[str, List[Dict[str, Any]]] = {}
    for side, by_type in codes.items():
        result[side] = [
            _serve_type_row(t, by_type[t]) for t in SERVE_TYPES + (None,) if t in by_type
        ]
    return result


def rotation_breakdown(rallies: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Per side and rotation: points won/lost, sideout and break conversion.

    Sideout stats are keyed on the receiving rotation, break stats on the
    serving rotation.
    """
    table = {
        side: {
            rot: {
                "rotation": rot,
                "pointsFor": 0,
                "pointsAgainst": 0,
                "sideoutAttempts": 0,
                "sideoutPoints": 0,
                "breakAttempts": 0,
                "breakPoints": 0,
            }
            for rot in range(1, 7)
        }
        for side in SIDES
    }
    for rally in rallies:
        winner = rally.get("point_won_by")
        if winner not in SIDES:
            continue
        recv_side, recv_rot = rally.get("recv_side"), rally.get("recv_rot")
        serve_side, serve_rot = rally.get("serve_side"), rally.get("serve_rot")
        if recv_side in table and recv_rot in table[recv_side]:
            row = table[recv_side][recv_rot]
            row["sideoutAttempts"] += 1
            if winner == recv_side:
                row["sideoutPoints"] += 1
                row["pointsFor"] += 1
            else:
                row["pointsAgainst"] += 1
        if serve_side in table and serve_rot in table[serve_side]:
            row = table[serve_side][serve_rot]
            row["breakAttempts"] += 1
            if winner == serve_side:
                row["breakPoints"] += 1
                row["pointsFor"] += 1
            else:
                row["pointsAgainst"] += 1

    result: Dict[str, List[Dict[str, Any]]] = {}
    for side, rows in table.items():
        result[side] = []
        for rot in range(1, 7):
            row = rows[rot]
            row["sideoutPercent"] = calc_percent(row["sideoutPoints"], row["sideoutAttempts"])
            row["breakPercent"] = calc_percent(row["breakPoints"], row["breakAttempts"])
            result[side].append(row)
    return result


def _worst_rotation(rows: Sequence[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    worst = None
    for row in rows:
        if row["sideoutAttempts"] < WORST_ROTATION_MIN_ATTEMPTS:
            continue
        if worst is None or row["sideoutPercent"] < worst["percent"]:
            worst = {
                "rotation": row["rotation"],
                "attempts": row["sideoutAttempts"],
                "points": row["sideoutPoints"],
                "percent": row["sideoutPercent"],
            }
    return worst


def _clutch(rallies: Iterable[Dict[str, Any]]) -> Optional[Dict[str, int]]:
    score = {"CASA": 0, "FORA": 0}
    tally = {"homePoints": 0, "awayPoints": 0, "totalRallies": 0}
    for rally in rallies:
        winner = rally.get("point_won_by")
        if winner not in SIDES:
            continue
        if score["CASA"] >= CLUTCH_SCORE or score["FORA"] >= CLUTCH_SCORE:
            tally["totalRallies"] += 1
            tally["homePoints" if winner == "CASA" else "awayPoints"] += 1
        score[winner] += 1
    return tally if tally["totalRallies"] else None


def _player_index(players: Optional[Iterable[Any]]) -> Dict[str, Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = {}
    for p in players or ():
        data = p if isinstance(p, dict) else vars(p)
        index[data["id"]] = data
    return index


def _player_side(
    player_id: str, roster: Dict[str, Dict[str, Any]], fallback: Optional[str]
) -> Optional[str]:
    player = roster.get(player_id)
    if player is not None:
        return player.get("side")
    return fallback


def _top_players(
    rows: Iterable[Dict[str, Any]],
    id_col: str,
    no_col: str,
    roster: Dict[str, Dict[str, Any]],
    fallback_col: Optional[str],
) -> Dict[str, List[Dict[str, Any]]]:
    counts: Dict[str, Counter] = {side: Counter() for side in SIDES}
    numbers: Dict[str, Any] = {}
    for row in rows:
        player_id = row.get(id_col)
        if not player_id:
            continue
        side = _player_side(
            player_id, roster, row.get(fallback_col) if fallback_col else None
        )
        if side not in counts:
            continue
        counts[side][player_id] += 1
        numbers.setdefault(player_id, row.get(no_col))
    result: Dict[str, List[Dict[str, Any]]] = {}
    for side, counter in counts.items():
        # Counter.most_common keeps insertion order for equal counts
        result[side] = [
            {
                "playerId": pid,
                "jerseyNumber": roster.get(pid, {}).get("jersey_number", numbers.get(pid)),
                "name": roster.get(pid, {}).get("name"),
                "count": count,
            }
            for pid, count in counter.most_common(TOP_N)
        ]
    return result


def _top_zones(
    rows: Iterable[Dict[str, Any]], roster: Dict[str, Dict[str, Any]]
) -> Dict[str, Optional[Dict[str, Any]]]:
    counts: Dict[str, Counter] = {side: Counter() for side in SIDES}
    for row in rows:
        destination = row.get("pass_destination")
        if not destination:
            continue
        setter = row.get("setter_player_id")
        side = _player_side(setter, roster, None) if setter else None
        if side is None:
            side = row.get("recv_side")
        if side in counts:
            counts[side][destination] += 1
    result: Dict[str, Optional[Dict[str, Any]]] = {}
    for side, counter in counts.items():
        if not counter:
            result[side] = None
            continue
        zone, count = counter.most_common(1)[0]
        result[side] = {
            "zone": zone,
            "count": count,
            "percent": calc_percent(count, sum(counter.values())),
        }
    return result


def compute_set_kpis(
    rallies: Iterable[Dict[str, Any]],
    set_no: int,
    previous_rallies: Optional[Iterable[Dict[str, Any]]] = None,
    players: Optional[Iterable[Any]] = None,
) -> Dict[str, Any]:
    """Compute the KPI report of one set.

    Args:
        rallies: raw point log rows; rows of other sets are ignored.
        set_no: set to report on.
        previous_rallies: raw rows of the previous set, for sideout deltas.
        players: roster entries (``id``, ``side``, ``jersey_number``,
            ``name``) used to attribute attackers, servers and setters.
    """
    raw = [r for r in rallies if r.get("set_no") == set_no]
    canonical = rallies_for_set(raw, set_no)
    with_winner = [r for r in canonical if r.get("point_won_by") in SIDES]
    roster = _player_index(players)

    teams = team_kpis(with_winner)
    rotations = rotation_breakdown(with_winner)
    attackers = _top_players(raw, "a_player_id", "a_no", roster, None)
    servers = _top_players(raw, "s_player_id", "s_no", roster, "serve_side")
    zones = _top_zones(raw, roster)
    serve_types = serve_type_breakdown(canonical)

    report: Dict[str, Any] = {
        "setNo": set_no,
        "home": teams["CASA"],
        "away": teams["FORA"],
        "longestRun": longest_run(
            [r["point_won_by"] for r in with_winner],
            [r.get("rally_no") for r in with_winner],
        ),
        "clutchPoints": _clutch(with_winner),
        "worstRotationHome": _worst_rotation(rotations["CASA"]),
        "worstRotationAway": _worst_rotation(rotations["FORA"]),
        "topZoneHome": zones["CASA"],
        "topZoneAway": zones["FORA"],
        "topAttackersHome": attackers["CASA"],
        "topAttackersAway": attackers["FORA"],
        "topServersHome": servers["CASA"],
        "topServersAway": servers["FORA"],
        "serveTypesHome": serve_types["CASA"],
        "serveTypesAway": serve_types["FORA"],
        "deltaFromPrevious": None,
    }

    previous = list(previous_rallies or ())
    if previous:
        prev_teams = team_kpis(consolidate(previous))
        report["deltaFromPrevious"] = {
            "homeSideoutDelta": teams["CASA"]["sideoutPercent"]
            - prev_teams["CASA"]["sideoutPercent"],
            "awaySideoutDelta": teams["FORA"]["sideoutPercent"]
            - prev_teams["FORA"]["sideoutPercent"],
        }
    return report
