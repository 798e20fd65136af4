"""Outcome inference for a rally in progress.

Given the touches recorded so far, decide whether the point is already over
and who won it.  Rules are checked in a fixed order and the first one that
fires wins, so the same log always yields the same outcome.
"""

from typing import Iterable, NamedTuple, Optional

from .actions import other_side


class Outcome(NamedTuple):
    winner: str
    reason: str


def infer_outcome(
    served_code: Optional[int],
    reception_code: Optional[int],
    actions: Iterable,
    serve_side: str,
) -> Optional[Outcome]:
    receive_side = other_side(serve_side)

    if served_code == 3:
        return Outcome(serve_side, "ACE")
    if served_code == 0:
        return Outcome(receive_side, "SE")
    if reception_code == 0:
        return Outcome(serve_side, "ACE")

    actions = list(actions)

    for action in actions:
        if action.type != "attack":
            continue
        if action.code == 3:
            return Outcome(action.side, "KILL")
        if action.code == 0:
            return Outcome(other_side(action.side), "AE")
        if action.code == 1 and action.blockCode is not None:
            if action.blockCode == 3:
                return Outcome(other_side(action.side), "BLK")
            if action.blockCode == 0:
                return Outcome(action.side, "OP")

    for action in actions:
        if action.type != "block":
            continue
        if action.code == 3:
            return Outcome(action.side, "BLK")
        if action.code == 0:
            return Outcome(other_side(action.side), "OP")

    last_attack_side = None
    for action in actions:
        if action.type == "attack":
            last_attack_side = action.side
        elif action.type == "defense" and action.code == 0:
            if last_attack_side is not None:
                return Outcome(last_attack_side, "KILL")

    return None


def infer_from_log(log, serve_side: str) -> Optional[Outcome]:
    """Run :func:`infer_outcome` reading serve/reception codes from ``log``."""
    served_code = reception_code = None
    for action in log:
        if action.type == "serve" and served_code is None:
            served_code = action.code
        elif action.type == "reception" and reception_code is None:
            reception_code = action.code
    return infer_outcome(served_code, reception_code, log, serve_side)
