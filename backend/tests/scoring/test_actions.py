import os, sys
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))
from volleyscout.scoring import actions
from volleyscout.scoring.actions import ActionLogError, parse_action


def _serve(code=None):
    return parse_action({"type": "serve", "side": "CASA", "playerId": "s1", "code": code})


def _reception(code=None):
    return parse_action({"type": "reception", "side": "FORA", "playerId": "r1", "code": code})


def _attack(side="FORA", code=None, **extra):
    return parse_action({"type": "attack", "side": side, "playerId": "a1", "code": code, **extra})


def test_parse_action_picks_variant_by_type():
    action = parse_action({"type": "block", "side": "CASA", "code": 3, "b2PlayerId": "x"})
    assert isinstance(action, actions.BlockAction)
    assert action.b2PlayerId == "x"
    assert parse_action(action) is action


def test_parse_action_rejects_out_of_range_code():
    with pytest.raises(ValueError):
        parse_action({"type": "attack", "side": "CASA", "code": 4})


def test_actions_are_frozen():
    action = _serve(2)
    with pytest.raises(ValueError):
        action.code = 3


def test_upsert_serve_keeps_serve_first_and_single():
    log = actions.add_action((), _attack())
    log = actions.upsert_serve(log, _serve(1))
    assert [a.type for a in log] == ["serve", "attack"]
    log = actions.upsert_serve(log, _serve(2))
    assert [a.type for a in log] == ["serve", "attack"]
    assert log[0].code == 2


def test_upsert_reception_goes_right_after_serve():
    log = actions.upsert_serve((), _serve(2))
    log = actions.add_action(log, _attack())
    log = actions.upsert_reception(log, _reception(2))
    assert [a.type for a in log] == ["serve", "reception", "attack"]
    log = actions.upsert_reception(log, _reception(3))
    assert len(log) == 3
    assert log[1].code == 3


def test_add_action_refuses_second_serve():
    log = actions.upsert_serve((), _serve(2))
    with pytest.raises(ActionLogError):
        actions.add_action(log, _serve(1))


def test_commands_do_not_mutate_previous_log():
    before = actions.upsert_serve((), _serve(2))
    after = actions.add_action(before, _attack(code=3))
    assert len(before) == 1
    assert len(after) == 2


def test_add_combo_carries_pass_code_to_attack():
    setter = parse_action(
        {"type": "setter", "side": "FORA", "playerId": "st", "passDestination": "P4", "passCode": 2}
    )
    log = actions.add_combo((), setter, _attack(code=1))
    assert [a.type for a in log] == ["setter", "attack"]
    assert log[1].passQuality == 2


def test_add_combo_requires_setter_then_attack():
    with pytest.raises(ActionLogError):
        actions.add_combo((), _attack(), _attack())


def test_replace_and_remove_check_index():
    log = actions.add_action(actions.upsert_serve((), _serve(2)), _attack(code=1))
    log = actions.replace_at(log, 1, _attack(code=3))
    assert log[1].code == 3
    with pytest.raises(ActionLogError):
        actions.replace_at(log, 1, _serve(1))
    with pytest.raises(ActionLogError):
        actions.remove_at(log, 5)
    assert [a.type for a in actions.remove_at(log, 1)] == ["serve"]


def test_last_of_looks_strictly_before_index():
    log = (_attack("CASA"), _attack("FORA"), parse_action({"type": "defense", "side": "CASA"}))
    assert actions.last_of(log, "attack", before=1).side == "CASA"
    assert actions.last_of(log, "attack").side == "FORA"
    assert actions.last_of(log, "block") is None


def test_replace_keeps_serve_and_reception_slots():
    log = actions.upsert_reception(actions.upsert_serve((), _serve(2)), _reception(2))
    defense = parse_action({"type": "defense", "side": "FORA", "code": 2})
    with pytest.raises(ActionLogError):
        actions.replace_at(log, 0, defense)
    with pytest.raises(ActionLogError):
        actions.replace_at(log, 1, _attack(code=3))
    assert actions.replace_at(log, 1, _reception(3))[1].code == 3
