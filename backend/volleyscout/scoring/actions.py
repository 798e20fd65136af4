"""Rally action log.

Each touch of a rally is one frozen pydantic model; the ``type`` field picks
the variant.  The log itself is a tuple and every command below returns a new
tuple, so a previous log value can be kept around for undo.
"""

from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..services.validation import ValidationError

Side = Literal["CASA", "FORA"]
Code = Annotated[int, Field(ge=0, le=3)]
KillType = Literal["FLOOR", "BLOCKOUT"]
ServeType = Literal["FLOAT", "JUMP_FLOAT", "POWER", "OTHER"]
PassDestination = Literal["P2", "P3", "P4", "OP", "PIPE", "BACK", "OUTROS"]

SIDES = ("CASA", "FORA")
SINGLE_ACTION_TYPES = ("serve", "reception")


def other_side(side: str) -> str:
    return "FORA" if side == "CASA" else "CASA"


class ActionLogError(ValidationError):
    """Raised when a command would leave the action log inconsistent."""


class _ActionBase(BaseModel):
    side: Side
    playerId: Optional[str] = None
    playerNo: Optional[int] = None
    code: Optional[Code] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ServeAction(_ActionBase):
    type: Literal["serve"] = "serve"
    serveType: Optional[ServeType] = None


class ReceptionAction(_ActionBase):
    type: Literal["reception"] = "reception"


class SetterAction(_ActionBase):
    type: Literal["setter"] = "setter"
    setterId: Optional[str] = None
    passDestination: Optional[PassDestination] = None
    passCode: Optional[Code] = None


class AttackAction(_ActionBase):
    type: Literal["attack"] = "attack"
    killType: Optional[KillType] = None
    blockCode: Optional[Code] = None
    passQuality: Optional[Code] = None


class BlockAction(_ActionBase):
    type: Literal["block"] = "block"
    b2PlayerId: Optional[str] = None
    b2No: Optional[int] = None
    b3PlayerId: Optional[str] = None
    b3No: Optional[int] = None


class DefenseAction(_ActionBase):
    type: Literal["defense"] = "defense"


Action = Annotated[
    Union[
        ServeAction,
        ReceptionAction,
        SetterAction,
        AttackAction,
        BlockAction,
        DefenseAction,
    ],
    Field(discriminator="type"),
]

ActionLog = Tuple[_ActionBase, ...]

_action_adapter = TypeAdapter(Action)


def parse_action(data) -> _ActionBase:
    """Build an Action variant from a mapping (or pass a model through)."""
    if isinstance(data, _ActionBase):
        return data
    return _action_adapter.validate_python(data)


def find_first(log: ActionLog, action_type: str) -> Optional[_ActionBase]:
    for action in log:
        if action.type == action_type:
            return action
    return None


def index_of(log: ActionLog, action_type: str) -> Optional[int]:
    for i, action in enumerate(log):
        if action.type == action_type:
            return i
    return None


def last_of(
    log: ActionLog, action_type: str, before: Optional[int] = None
) -> Optional[_ActionBase]:
    """Return the latest action of ``action_type`` strictly before ``before``."""
    end = len(log) if before is None else before
    for action in reversed(log[:end]):
        if action.type == action_type:
            return action
    return None


def upsert_serve(log: ActionLog, action: ServeAction) -> ActionLog:
    if action.type != "serve":
        raise ActionLogError("upsert_serve expects a serve action")
    log = tuple(log)
    idx = index_of(log, "serve")
    if idx is not None:
        return log[:idx] + (action,) + log[idx + 1 :]
    return (action,) + tuple(log)


def upsert_reception(log: ActionLog, action: ReceptionAction) -> ActionLog:
    if action.type != "reception":
        raise ActionLogError("upsert_reception expects a reception action")
    log = tuple(log)
    idx = index_of(log, "reception")
    if idx is not None:
        return log[:idx] + (action,) + log[idx + 1 :]
    serve_idx = index_of(log, "serve")
    insert_at = 0 if serve_idx is None else serve_idx + 1
    return log[:insert_at] + (action,) + log[insert_at:]


def add_action(log: ActionLog, action: _ActionBase) -> ActionLog:
    if action.type in SINGLE_ACTION_TYPES and index_of(log, action.type) is not None:
        raise ActionLogError(f"rally already has a {action.type} action")
    return tuple(log) + (action,)


def add_combo(
    log: ActionLog, setter: SetterAction, attack: AttackAction
) -> ActionLog:
    """Append a setter and the attack it fed as one step."""
    if setter.type != "setter" or attack.type != "attack":
        raise ActionLogError("combo needs a setter followed by an attack")
    if attack.passQuality is None and setter.passCode is not None:
        attack = attack.model_copy(update={"passQuality": setter.passCode})
    return tuple(log) + (setter, attack)


def replace_at(log: ActionLog, index: int, action: _ActionBase) -> ActionLog:
    log = tuple(log)
    if index < 0 or index >= len(log):
        raise ActionLogError(f"no action at index {index}")
    current = log[index]
    if current.type in SINGLE_ACTION_TYPES and action.type != current.type:
        raise ActionLogError(
            f"the {current.type} can only be replaced by another {current.type}"
        )
    if action.type in SINGLE_ACTION_TYPES:
        existing = index_of(log, action.type)
        if existing is not None and existing != index:
            raise ActionLogError(f"rally already has a {action.type} action")
    return log[:index] + (action,) + log[index + 1 :]


def remove_at(log: ActionLog, index: int) -> ActionLog:
    log = tuple(log)
    if index < 0 or index >= len(log):
        raise ActionLogError(f"no action at index {index}")
    return log[:index] + log[index + 1 :]
