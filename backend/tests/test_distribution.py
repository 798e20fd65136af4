import os, sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from volleyscout.services.distribution import (
    available_positions,
    compute_distribution,
    distribution_summary,
    is_within_available,
)

PLAYERS = [
    {"id": "c1", "side": "CASA", "jersey_number": 1, "name": "Bia"},
    {"id": "f2", "side": "FORA", "jersey_number": 2, "name": "Lia"},
]


def _rally(no, setter, destination, r_code):
    return {
        "set_no": 1,
        "rally_no": no,
        "phase": 1,
        "setter_player_id": setter,
        "pass_destination": destination,
        "r_code": r_code,
        "point_won_by": "CASA",
        "reason": "KILL",
    }


def test_available_positions_by_reception():
    assert "P3" in available_positions(3)
    assert "P3" not in available_positions(2)
    assert available_positions(None) == available_positions(0)
    assert is_within_available("BACK", 0)
    assert not is_within_available("P4", 0)


def test_per_setter_preference_and_availability():
    rallies = [
        _rally(1, "c1", "P4", 3),
        _rally(2, "c1", "P4", 2),
        _rally(3, "c1", "P3", 1),
        _rally(4, "c1", "P2", 3),
        _rally(5, "f2", "OP", 3),
        _rally(6, "zz", "OP", 3),
        _rally(7, "c1", None, 3),
    ]
    setters = compute_distribution(rallies, PLAYERS)
    assert [s["setterId"] for s in setters] == ["c1", "f2"]
    bia = setters[0]
    assert bia["total"] == 4
    assert bia["preference"] == "P4"
    assert bia["top2"] == "P4 50% | P2 25%"
    assert bia["withinAvailable"] == 3
    assert bia["usedWithinAvailable"] == 75
    assert bia["avgAvailablePositions"] == 5.25
    assert bia["byReception"]["1"] == {
        "total": 1,
        "withinAvailable": 0,
        "destinations": {"P3": 1},
        "usedWithinAvailable": 0,
    }


def test_filters_narrow_setters():
    rallies = [_rally(1, "c1", "P4", 3), _rally(2, "f2", "OP", 3)]
    assert [s["setterId"] for s in compute_distribution(rallies, PLAYERS, side="FORA")] == ["f2"]
    assert [s["setterId"] for s in compute_distribution(rallies, PLAYERS, setter_id="c1")] == ["c1"]


def test_distribution_summary():
    rallies = [_rally(1, "c1", "P4", 3), _rally(2, "f2", "BACK", 3)]
    summary = distribution_summary(compute_distribution(rallies, PLAYERS))
    assert summary == {"total": 2, "withinAvailable": 1, "usedWithinAvailable": 50}
