import os, sys
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))
from volleyscout.scoring import wizard
from volleyscout.scoring.wizard import WizardError


def _state(**ctx):
    base = {
        "match_id": "m1",
        "set_no": 1,
        "rally_no": 4,
        "serve_side": "CASA",
        "serve_rot": 2,
        "recv_side": "FORA",
        "recv_rot": 5,
        "server_id": "c2",
        "server_no": 7,
    }
    base.update(ctx)
    return wizard.init_state(base)


def _play(state, *events):
    for event in events:
        state = wizard.apply(event, state)
    return state


def test_init_state_starts_at_serve():
    state = _state()
    assert state["step"] == "SERVE"
    assert state["actions"] == ()
    assert wizard.current_outcome(state) is None


def test_serve_uses_scheduled_server():
    state = _play(_state(), {"type": "SERVE", "code": 2})
    serve = state["actions"][0]
    assert (serve.playerId, serve.playerNo, serve.side) == ("c2", 7, "CASA")
    assert state["step"] == "RECEPTION"


def test_serve_toggle_removes_serve():
    state = _play(_state(), {"type": "SERVE", "code": 2}, {"type": "SERVE", "code": 2})
    assert state["actions"] == ()
    assert state["step"] == "SERVE"


def test_serve_with_other_code_replaces():
    state = _play(_state(), {"type": "SERVE", "code": 2}, {"type": "SERVE", "code": 1})
    assert len(state["actions"]) == 1
    assert state["actions"][0].code == 1


def test_serve_ace_goes_straight_to_outcome():
    state = _play(_state(), {"type": "SERVE", "code": 3})
    assert state["step"] == "OUTCOME"
    assert state["outcome"] == {"winner": "CASA", "reason": "ACE"}


def test_cannot_clear_serve_once_reception_exists():
    state = _play(_state(), {"type": "SERVE", "code": 2}, {"type": "SKIP_RECEPTION"})
    with pytest.raises(WizardError):
        wizard.apply({"type": "SERVE", "code": 2}, state)
    with pytest.raises(WizardError):
        wizard.apply({"type": "REMOVE_ACTION", "index": 0}, state)


def test_reception_code_needs_receiver():
    state = _play(_state(), {"type": "SERVE", "code": 2})
    with pytest.raises(WizardError) as exc:
        wizard.apply({"type": "RECEPTION", "code": 2}, state)
    assert "select the receiver first" in exc.value.detail


def test_receiver_then_reception():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "RECEIVER", "playerId": "f5", "playerNo": 5},
        {"type": "RECEPTION", "code": 3},
    )
    reception = state["actions"][1]
    assert (reception.playerId, reception.code, reception.side) == ("f5", 3, "FORA")
    assert state["step"] == "ACTIONS"


def test_reception_error_reaches_outcome():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "RECEPTION", "playerId": "f5", "code": 0},
    )
    assert state["outcome"] == {"winner": "CASA", "reason": "ACE"}


def test_rejected_event_leaves_state_alone():
    state = _play(_state(), {"type": "SERVE", "code": 2})
    snapshot = dict(state)
    with pytest.raises(WizardError):
        wizard.apply({"type": "ADD_ACTION", "action": {"type": "attack", "side": "X"}}, state)
    assert state == snapshot


def test_add_action_kill_then_confirm():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "SKIP_RECEPTION"},
        {
            "type": "ADD_ACTION",
            "action": {"type": "attack", "side": "FORA", "playerId": "f9", "code": 3, "killType": "FLOOR"},
        },
    )
    assert state["step"] == "OUTCOME"
    state = wizard.apply({"type": "CONFIRM"}, state)
    assert state["step"] == "COMMITTED"
    assert state["final"]["manual"] is False
    assert wizard.current_outcome(state)["winner"] == "FORA"


def test_edit_after_confirm_reopens_outcome():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "SKIP_RECEPTION"},
        {"type": "ADD_ACTION", "action": {"type": "attack", "side": "FORA", "playerId": "f9", "code": 3}},
        {"type": "CONFIRM"},
        {"type": "EDIT_ACTION", "index": 2, "action": {"type": "attack", "side": "FORA", "playerId": "f9", "code": 2}},
    )
    assert state["final"] is None
    assert state["outcome"] is None
    assert state["step"] == "ACTIONS"


def test_confirm_without_outcome_fails():
    with pytest.raises(WizardError):
        wizard.apply({"type": "CONFIRM"}, _state())


def test_combo_adds_setter_and_attack():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "SKIP_RECEPTION"},
        {
            "type": "COMBO",
            "setter": {"type": "setter", "side": "FORA", "playerId": "f1", "passDestination": "P3", "passCode": 3},
            "attack": {"type": "attack", "side": "FORA", "playerId": "f3", "code": 1, "blockCode": 3},
        },
    )
    assert [a.type for a in state["actions"]] == ["serve", "reception", "setter", "attack"]
    assert state["outcome"] == {"winner": "CASA", "reason": "BLK"}


def test_quick_attack_repeats_last_attacker():
    state = _state(last_attacker={"playerId": "f9", "playerNo": 9, "side": "FORA"})
    state = _play(state, {"type": "SERVE", "code": 2}, {"type": "SKIP_RECEPTION"}, {"type": "QUICK_ATTACK", "code": 0})
    attack = state["actions"][-1]
    assert (attack.playerId, attack.side, attack.code) == ("f9", "FORA", 0)
    assert state["outcome"] == {"winner": "CASA", "reason": "AE"}


def test_quick_attack_rejects_kill_and_missing_attacker():
    state = _state(last_attacker={"playerId": "f9", "playerNo": 9, "side": "FORA"})
    with pytest.raises(WizardError):
        wizard.apply({"type": "QUICK_ATTACK", "code": 3}, state)
    with pytest.raises(WizardError):
        wizard.apply({"type": "QUICK_ATTACK", "code": 2}, _state())


def test_finish_net_needs_player():
    state = _play(_state(), {"type": "SERVE", "code": 2}, {"type": "SKIP_RECEPTION"})
    with pytest.raises(WizardError):
        wizard.apply({"type": "FINISH", "winner": "CASA", "reason": "NET"}, state)
    state = wizard.apply({"type": "FINISH", "winner": "CASA", "reason": "NET", "playerId": "f4"}, state)
    assert state["final"] == {"winner": "CASA", "reason": "NET", "playerId": "f4", "manual": True}
    assert wizard.summary(state)["confirmed"] is True


def test_cancel_discards_log_but_keeps_context():
    state = _play(_state(), {"type": "SERVE", "code": 2}, {"type": "CANCEL"})
    assert state["actions"] == ()
    assert state["context"]["rally_no"] == 4


def test_unknown_event():
    with pytest.raises(WizardError):
        wizard.apply({"type": "TIMEOUT"}, _state())


def test_summary_reports_warnings():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "SKIP_RECEPTION"},
        {"type": "ADD_ACTION", "action": {"type": "attack", "side": "FORA", "playerId": "f9", "code": 3}},
    )
    summary = wizard.summary(state)
    assert summary["rallyNo"] == 4
    assert summary["outcome"] == {"winner": "FORA", "reason": "KILL"}
    assert "#3 Attack: kill without kill type" in summary["warnings"]


def test_build_record_flattens_first_of_each_type():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 1, "serveType": "JUMP_FLOAT"},
        {"type": "RECEPTION", "playerId": "f5", "playerNo": 5, "code": 2},
        {
            "type": "COMBO",
            "setter": {"type": "setter", "side": "FORA", "playerId": "f1", "passDestination": "P4", "passCode": 2},
            "attack": {"type": "attack", "side": "FORA", "playerId": "f3", "playerNo": 3, "code": 1, "blockCode": 3},
        },
        {"type": "CONFIRM"},
    )
    record = wizard.build_record(state)
    assert list(record) == list(wizard.RECORD_FIELDS)
    assert record["phase"] == 1
    assert (record["serve_rot"], record["recv_rot"]) == (2, 5)
    assert (record["point_won_by"], record["reason"]) == ("CASA", "BLK")
    assert (record["s_player_id"], record["s_code"]) == ("c2", 1)
    assert (record["r_player_id"], record["r_no"], record["r_code"]) == ("f5", 5, 2)
    assert (record["setter_player_id"], record["pass_destination"], record["pass_code"]) == ("f1", "P4", 2)
    assert (record["a_player_id"], record["a_code"], record["a_pass_quality"]) == ("f3", 1, 2)
    assert record["b_code"] == 3
    assert record["b1_player_id"] is None
    assert record["s_type"] == "JUMP_FLOAT"


def test_build_record_requires_confirmed_outcome():
    state = _play(_state(), {"type": "SERVE", "code": 3})
    with pytest.raises(WizardError):
        wizard.build_record(state)


def test_last_attacker_is_latest_attack_with_player():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "SKIP_RECEPTION"},
        {"type": "ADD_ACTION", "action": {"type": "attack", "side": "FORA", "playerId": "f3", "playerNo": 3, "code": 2}},
        {"type": "ADD_ACTION", "action": {"type": "attack", "side": "CASA", "code": 2}},
    )
    assert wizard.last_attacker(state) == {"playerId": "f3", "playerNo": 3, "side": "FORA"}


def test_edit_cannot_turn_serve_or_reception_into_another_touch():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "RECEPTION", "playerId": "f1", "code": 2},
    )
    defense = {"type": "defense", "side": "FORA", "playerId": "f4", "code": 2}
    with pytest.raises(WizardError):
        wizard.apply({"type": "EDIT_ACTION", "index": 0, "action": defense}, state)
    with pytest.raises(WizardError):
        wizard.apply({"type": "EDIT_ACTION", "index": 1, "action": defense}, state)
    assert [a.type for a in state["actions"]] == ["serve", "reception"]

    state = wizard.apply(
        {"type": "EDIT_ACTION", "index": 0, "action": {"type": "serve", "side": "CASA", "playerId": "c2", "code": 1}},
        state,
    )
    assert state["actions"][0].code == 1


def test_added_reception_with_code_needs_receiver():
    state = _play(_state(), {"type": "SERVE", "code": 2})
    reception = {"type": "reception", "side": "FORA", "code": 0}
    with pytest.raises(WizardError) as exc:
        wizard.apply({"type": "ADD_ACTION", "action": reception}, state)
    assert "select the receiver first" in exc.value.detail
    assert state["outcome"] is None

    state = _play(
        state,
        {"type": "RECEIVER", "playerId": "f5", "playerNo": 5},
        {"type": "ADD_ACTION", "action": reception},
    )
    assert state["actions"][1].playerId == "f5"
    assert state["outcome"] == {"winner": "CASA", "reason": "ACE"}


def test_edited_reception_keeps_the_receiver_rule():
    state = _play(
        _state(),
        {"type": "SERVE", "code": 2},
        {"type": "SKIP_RECEPTION"},
    )
    with pytest.raises(WizardError):
        wizard.apply(
            {"type": "EDIT_ACTION", "index": 1, "action": {"type": "reception", "side": "FORA", "code": 1}},
            state,
        )
    state = wizard.apply(
        {"type": "EDIT_ACTION", "index": 1, "action": {"type": "reception", "side": "FORA", "playerId": "f2", "playerNo": 2, "code": 1}},
        state,
    )
    assert state["receiver"] == {"playerId": "f2", "playerNo": 2}
