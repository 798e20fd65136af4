import os, sys
from types import SimpleNamespace

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from volleyscout.services.player_stats import compute_player_stats, skill_average

PLAYERS = [
    {"id": "c9", "side": "CASA", "jersey_number": 9, "name": "Ana"},
    {"id": "c5", "side": "CASA", "jersey_number": 5, "name": "Duda"},
    {"id": "f4", "side": "FORA", "jersey_number": 4, "name": "Cris"},
]


def _rally(no, **fields):
    row = {"set_no": 1, "rally_no": no, "phase": 1, "point_won_by": "CASA", "reason": "KILL"}
    row.update(fields)
    return row


def _by_id(stats):
    return {s["playerId"]: s for s in stats}


def test_skill_average_scale():
    assert skill_average(0, 0, 0) == 0
    assert skill_average(1, 1, 2) == 1.5
    assert skill_average(2, 0, 2) == 3


def test_attack_and_serve_counts():
    rallies = [
        _rally(1, a_player_id="c9", a_code=3),
        _rally(2, a_player_id="c9", a_code=0),
        _rally(3, a_player_id="c9", a_code=2),
        _rally(4, s_player_id="f4", s_code=3),
        _rally(5, a_player_id="c9", a_code=None),
    ]
    stats = _by_id(compute_player_stats(rallies, PLAYERS))
    ana = stats["c9"]
    assert (ana["attAttempts"], ana["attPoints"], ana["attErrors"]) == (3, 1, 1)
    assert ana["attEfficiency"] == 0
    assert ana["attAvg"] == pytest.approx(1.5)
    assert stats["f4"]["servePoints"] == 1
    assert stats["f4"]["serveAvg"] == 3
    assert stats["c5"]["attAttempts"] == 0


def test_block_credits_every_blocker():
    rallies = [_rally(1, b1_player_id="c9", b2_player_id="c5", b_code=3)]
    stats = _by_id(compute_player_stats(rallies, PLAYERS))
    assert stats["c9"]["blkPoints"] == 1
    assert stats["c5"]["blkPoints"] == 1


def test_unknown_players_ignored_and_phases_merged():
    rallies = [
        _rally(1, phase=1, r_player_id="c5", r_code=None),
        _rally(1, phase=2, r_player_id="c5", r_code=2),
        _rally(2, d_player_id="ghost", d_code=3),
    ]
    stats = compute_player_stats(rallies, PLAYERS)
    assert len(stats) == 3
    assert _by_id(stats)["c5"]["recAttempts"] == 1


def test_accepts_orm_like_players():
    player = SimpleNamespace(id="c9", side="CASA", jersey_number=9, name="Ana")
    stats = compute_player_stats([_rally(1, a_player_id="c9", a_code=3)], [player])
    assert stats[0]["playerName"] == "Ana"
    assert stats[0]["attPoints"] == 1
