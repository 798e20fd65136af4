"""Rally recording engine.

Drives one rally from the serve to a finalised point.  Same shape as a
scoring engine: ``init_state`` builds the state, ``apply`` returns a new state
for every operator event and ``summary`` reports it.  ``build_record``
flattens a finished rally into the row stored in the point log.
"""

from typing import Dict, Optional

from ..services.validation import ValidationError, action_warnings
from . import actions as log_ops
from .actions import AttackAction, ReceptionAction, ServeAction, parse_action
from .outcome import infer_from_log

STEPS = ("SERVE", "RECEPTION", "ACTIONS", "OUTCOME", "COMMITTED")
REASONS = ("ACE", "SE", "KILL", "AE", "BLK", "OP", "DEF", "NET")

RECORD_FIELDS = (
    "match_id",
    "set_no",
    "rally_no",
    "phase",
    "serve_side",
    "serve_rot",
    "recv_side",
    "recv_rot",
    "point_won_by",
    "reason",
    "s_player_id",
    "s_no",
    "s_code",
    "s_type",
    "r_player_id",
    "r_no",
    "r_code",
    "setter_player_id",
    "pass_destination",
    "pass_code",
    "a_player_id",
    "a_no",
    "a_code",
    "a_pass_quality",
    "kill_type",
    "b1_player_id",
    "b1_no",
    "b2_player_id",
    "b2_no",
    "b3_player_id",
    "b3_no",
    "b_code",
    "d_player_id",
    "d_no",
    "d_code",
)


class WizardError(ValidationError):
    """Raised when an operator event is not allowed in the current state."""


def init_state(context: Dict) -> Dict:
    """Start a rally.

    ``context`` holds the rally identity (``match_id``, ``set_no``,
    ``rally_no``), who serves and receives in which rotation, optionally the
    scheduled server (``server_id`` / ``server_no``) and the ``last_attacker``
    remembered by the recorder (``{"playerId", "playerNo", "side"}``).
    """

    ctx = {
        "match_id": context.get("match_id"),
        "set_no": context.get("set_no", 1),
        "rally_no": context.get("rally_no", 1),
        "serve_side": context.get("serve_side", "CASA"),
        "serve_rot": context.get("serve_rot", 1),
        "recv_side": context.get("recv_side")
        or log_ops.other_side(context.get("serve_side", "CASA")),
        "recv_rot": context.get("recv_rot", 1),
        "server_id": context.get("server_id"),
        "server_no": context.get("server_no"),
        "last_attacker": context.get("last_attacker"),
    }
    return _fresh(ctx)


def _fresh(ctx: Dict) -> Dict:
    return {
        "context": ctx,
        "step": "SERVE",
        "actions": (),
        "receiver": None,
        "outcome": None,
        "final": None,
    }


def _with_log(state: Dict, log) -> Dict:
    """Return a copy of ``state`` holding ``log`` with step and outcome redone."""
    new = dict(state)
    new["actions"] = tuple(log)
    new["final"] = None
    outcome = infer_from_log(new["actions"], state["context"]["serve_side"])
    new["outcome"] = outcome._asdict() if outcome else None
    new["step"] = _step_for(new)
    return new


def _step_for(state: Dict) -> str:
    if state["final"] is not None:
        return "COMMITTED"
    if state["outcome"] is not None:
        return "OUTCOME"
    log = state["actions"]
    if log_ops.find_first(log, "serve") is None:
        return "SERVE"
    if log_ops.find_first(log, "reception") is None:
        return "RECEPTION"
    return "ACTIONS"


def _require(event: Dict, key: str):
    if key not in event:
        raise WizardError(f"{event.get('type')} event needs '{key}'")
    return event[key]


def _parse(data):
    try:
        return parse_action(data)
    except ValueError as exc:
        raise WizardError(f"invalid action: {exc}") from exc


def _serve(event: Dict, state: Dict) -> Dict:
    ctx = state["context"]
    code = event.get("code")
    current = log_ops.find_first(state["actions"], "serve")
    if current is not None and current.code == code:
        if log_ops.find_first(state["actions"], "reception") is not None:
            raise WizardError("remove the reception before clearing the serve")
        idx = log_ops.index_of(state["actions"], "serve")
        return _with_log(state, log_ops.remove_at(state["actions"], idx))
    serve = _parse(
        {
            "type": "serve",
            "side": ctx["serve_side"],
            "playerId": event.get("playerId", ctx.get("server_id")),
            "playerNo": event.get("playerNo", ctx.get("server_no")),
            "code": code,
            "serveType": event.get("serveType"),
        }
    )
    return _with_log(state, log_ops.upsert_serve(state["actions"], serve))


def _reception(event: Dict, state: Dict) -> Dict:
    ctx = state["context"]
    receiver = dict(state["receiver"] or {})
    if event.get("playerId") is not None:
        receiver = {"playerId": event["playerId"], "playerNo": event.get("playerNo")}
    code = event.get("code")
    if code is not None and not receiver.get("playerId"):
        raise WizardError("select the receiver first")
    reception = _parse(
        {
            "type": "reception",
            "side": ctx["recv_side"],
            "playerId": receiver.get("playerId"),
            "playerNo": receiver.get("playerNo"),
            "code": code,
        }
    )
    new = _with_log(state, log_ops.upsert_reception(state["actions"], reception))
    new["receiver"] = receiver or None
    return new


def _checked_reception(action: ReceptionAction, state: Dict) -> ReceptionAction:
    """Fill the selected receiver in and refuse a graded reception without one."""
    receiver = state["receiver"] or {}
    if not action.playerId and receiver.get("playerId"):
        action = action.model_copy(
            update={"playerId": receiver["playerId"], "playerNo": receiver.get("playerNo")}
        )
    if action.code is not None and not action.playerId:
        raise WizardError("select the receiver first")
    return action


def _with_reception(state: Dict, log) -> Dict:
    new = _with_log(state, log)
    reception = log_ops.find_first(new["actions"], "reception")
    if reception is not None and reception.playerId:
        new["receiver"] = {"playerId": reception.playerId, "playerNo": reception.playerNo}
    return new


def _remove(event: Dict, state: Dict) -> Dict:
    index = _require(event, "index")
    log = state["actions"]
    if not isinstance(index, int) or index < 0 or index >= len(log):
        raise WizardError(f"no action at index {index}")
    target = log[index]
    if target.type == "serve" and log_ops.find_first(log, "reception") is not None:
        raise WizardError("remove the reception before removing the serve")
    new = _with_log(state, log_ops.remove_at(log, index))
    if target.type == "reception":
        new["receiver"] = None
    return new


def _quick_attack(event: Dict, state: Dict) -> Dict:
    code = _require(event, "code")
    if code == 3:
        raise WizardError("a kill needs a kill type; add it as a full attack")
    attacker = state["context"].get("last_attacker")
    if not attacker or not attacker.get("playerId"):
        raise WizardError("no previous attacker to repeat")
    attack = _parse(
        {
            "type": "attack",
            "side": attacker["side"],
            "playerId": attacker["playerId"],
            "playerNo": attacker.get("playerNo"),
            "code": code,
        }
    )
    return _with_log(state, log_ops.add_action(state["actions"], attack))


def _finish(event: Dict, state: Dict) -> Dict:
    winner = _require(event, "winner")
    reason = _require(event, "reason")
    if winner not in log_ops.SIDES:
        raise WizardError(f"unknown side {winner!r}")
    if reason not in REASONS:
        raise WizardError(f"unknown reason {reason!r}")
    if reason == "NET" and not event.get("playerId"):
        raise WizardError("a net fault needs the offending player")
    new = dict(state)
    new["final"] = {
        "winner": winner,
        "reason": reason,
        "playerId": event.get("playerId"),
        "manual": True,
    }
    new["step"] = "COMMITTED"
    return new


def _confirm(state: Dict) -> Dict:
    if state["outcome"] is None:
        raise WizardError("no outcome to confirm")
    new = dict(state)
    new["final"] = dict(state["outcome"], playerId=None, manual=False)
    new["step"] = "COMMITTED"
    return new


def apply(event: Dict, state: Dict) -> Dict:
    etype = event.get("type")
    log = state["actions"]
    try:
        if etype == "SERVE":
            return _serve(event, state)
        if etype == "RECEIVER":
            new = dict(state)
            new["receiver"] = {
                "playerId": _require(event, "playerId"),
                "playerNo": event.get("playerNo"),
            }
            return new
        if etype == "RECEPTION":
            return _reception(event, state)
        if etype == "SKIP_RECEPTION":
            reception = ReceptionAction(side=state["context"]["recv_side"])
            new = _with_log(state, log_ops.upsert_reception(log, reception))
            new["receiver"] = None
            return new
        if etype == "ADD_ACTION":
            action = _parse(_require(event, "action"))
            if isinstance(action, ServeAction):
                return _with_log(state, log_ops.upsert_serve(log, action))
            if isinstance(action, ReceptionAction):
                action = _checked_reception(action, state)
                return _with_reception(state, log_ops.upsert_reception(log, action))
            return _with_log(state, log_ops.add_action(log, action))
        if etype == "COMBO":
            setter = _parse(_require(event, "setter"))
            attack = _parse(_require(event, "attack"))
            if not isinstance(attack, AttackAction):
                raise WizardError("combo needs a setter followed by an attack")
            return _with_log(state, log_ops.add_combo(log, setter, attack))
        if etype == "EDIT_ACTION":
            action = _parse(_require(event, "action"))
            index = _require(event, "index")
            if isinstance(action, ReceptionAction):
                action = _checked_reception(action, state)
                return _with_reception(state, log_ops.replace_at(log, index, action))
            return _with_log(state, log_ops.replace_at(log, index, action))
        if etype == "REMOVE_ACTION":
            return _remove(event, state)
        if etype == "QUICK_ATTACK":
            return _quick_attack(event, state)
        if etype == "FINISH":
            return _finish(event, state)
        if etype == "CONFIRM":
            return _confirm(state)
        if etype == "CANCEL":
            return _fresh(state["context"])
    except log_ops.ActionLogError as exc:
        raise WizardError(exc.detail) from exc
    raise WizardError(f"unknown rally event {etype!r}")


def current_outcome(state: Dict) -> Optional[Dict]:
    """The confirmed outcome if any, otherwise the inferred one."""
    return state["final"] or state["outcome"]


def summary(state: Dict) -> Dict:
    ctx = state["context"]
    outcome = current_outcome(state)
    return {
        "step": state["step"],
        "rallyNo": ctx["rally_no"],
        "setNo": ctx["set_no"],
        "serveSide": ctx["serve_side"],
        "serveRot": ctx["serve_rot"],
        "recvSide": ctx["recv_side"],
        "recvRot": ctx["recv_rot"],
        "actions": [a.model_dump() for a in state["actions"]],
        "receiver": state["receiver"],
        "outcome": outcome,
        "confirmed": state["final"] is not None,
        "lastAttacker": ctx.get("last_attacker"),
        "warnings": action_warnings(state["actions"]),
    }


def build_record(state: Dict) -> Dict:
    """Flatten a finalised rally into a point log row."""

    final = state["final"]
    if final is None:
        raise WizardError("rally has no confirmed outcome")
    ctx = state["context"]
    log = state["actions"]
    record = dict.fromkeys(RECORD_FIELDS)
    record.update(
        match_id=ctx["match_id"],
        set_no=ctx["set_no"],
        rally_no=ctx["rally_no"],
        phase=1,
        serve_side=ctx["serve_side"],
        serve_rot=ctx["serve_rot"],
        recv_side=ctx["recv_side"],
        recv_rot=ctx["recv_rot"],
        point_won_by=final["winner"],
        reason=final["reason"],
    )

    serve = log_ops.find_first(log, "serve")
    if serve is not None:
        record.update(
            s_player_id=serve.playerId,
            s_no=serve.playerNo,
            s_code=serve.code,
            s_type=serve.serveType,
        )
    reception = log_ops.find_first(log, "reception")
    if reception is not None:
        record.update(
            r_player_id=reception.playerId, r_no=reception.playerNo, r_code=reception.code
        )
    setter = log_ops.find_first(log, "setter")
    if setter is not None:
        record.update(
            setter_player_id=setter.setterId or setter.playerId,
            pass_destination=setter.passDestination,
            pass_code=setter.passCode if setter.passCode is not None else setter.code,
        )
    attack = log_ops.find_first(log, "attack")
    if attack is not None:
        record.update(
            a_player_id=attack.playerId,
            a_no=attack.playerNo,
            a_code=attack.code,
            a_pass_quality=attack.passQuality,
            kill_type=attack.killType,
        )
    block = log_ops.find_first(log, "block")
    if block is not None:
        record.update(
            b1_player_id=block.playerId,
            b1_no=block.playerNo,
            b2_player_id=block.b2PlayerId,
            b2_no=block.b2No,
            b3_player_id=block.b3PlayerId,
            b3_no=block.b3No,
            b_code=block.code,
        )
    elif attack is not None and attack.code == 1 and attack.blockCode is not None:
        record["b_code"] = attack.blockCode
    defense = log_ops.find_first(log, "defense")
    if defense is not None:
        record.update(d_player_id=defense.playerId, d_no=defense.playerNo, d_code=defense.code)
    return record


def last_attacker(state: Dict) -> Optional[Dict]:
    """The last attack with a known player in this rally, if any."""
    for action in reversed(state["actions"]):
        if action.type == "attack" and action.playerId:
            return {
                "playerId": action.playerId,
                "playerNo": action.playerNo,
                "side": action.side,
            }
    return None
