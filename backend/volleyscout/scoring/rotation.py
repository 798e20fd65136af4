"""Game state between rallies.

Works out who serves next, in which rotation, the running score and the next
rally number from the rallies already stored for a set.
"""

from typing import Dict, Iterable, Optional

from ..services.consolidation import rallies_for_set
from .actions import other_side


def _rotate(rot: int) -> int:
    return 1 if rot == 6 else rot + 1


def init_state(first_serve_side: str, set_no: int = 1) -> Dict:
    """State before the first rally of a set: rotation 1 for both teams."""

    return {
        "setNo": set_no,
        "rallyNo": 1,
        "serveSide": first_serve_side,
        "serveRot": 1,
        "recvSide": other_side(first_serve_side),
        "recvRot": 1,
        "score": {"CASA": 0, "FORA": 0},
    }


def apply(rally: Dict, state: Dict) -> Dict:
    """Advance ``state`` past a finished ``rally``.

    On a sideout the receiving team takes the serve and rotates; otherwise
    the serve and both rotations stay as they were.
    """

    winner = rally.get("point_won_by")
    if winner not in ("CASA", "FORA"):
        raise ValueError("rally has no winner")
    serve_side = rally.get("serve_side", state["serveSide"])
    serve_rot = rally.get("serve_rot", state["serveRot"])
    recv_side = rally.get("recv_side", state["recvSide"])
    recv_rot = rally.get("recv_rot", state["recvRot"])

    score = dict(state["score"])
    score[winner] += 1
    new = dict(state, score=score, rallyNo=rally.get("rally_no", state["rallyNo"]) + 1)
    if winner == recv_side:
        new.update(
            serveSide=recv_side,
            serveRot=_rotate(recv_rot),
            recvSide=serve_side,
            recvRot=serve_rot,
        )
    else:
        new.update(
            serveSide=serve_side,
            serveRot=serve_rot,
            recvSide=recv_side,
            recvRot=recv_rot,
        )
    return new


def derive_state(
    rows: Iterable[Dict], set_no: int, first_serve_side: str
) -> Dict:
    """Rebuild the game state of ``set_no`` from stored point log rows.

    The next serve and rotations follow from the last rally with a winner,
    so a rotation corrected through the edit path carries forward.
    """

    rallies = rallies_for_set(rows, set_no)
    state = init_state(first_serve_side, set_no)
    last: Optional[Dict] = None
    for rally in rallies:
        winner = rally.get("point_won_by")
        if winner in state["score"]:
            state["score"][winner] += 1
            last = rally
    if last is None:
        if rallies:
            state["rallyNo"] = rallies[-1]["rally_no"] + 1
        return state
    score = state["score"]
    state = apply(last, state)
    # apply() already counted the last rally
    state["score"] = score
    state["rallyNo"] = max(r["rally_no"] for r in rallies) + 1
    return state


def summary(state: Dict) -> Dict:
    return {
        "setNo": state["setNo"],
        "rallyNo": state["rallyNo"],
        "serveSide": state["serveSide"],
        "serveRot": state["serveRot"],
        "recvSide": state["recvSide"],
        "recvRot": state["recvRot"],
        "homeScore": state["score"]["CASA"],
        "awayScore": state["score"]["FORA"],
    }
