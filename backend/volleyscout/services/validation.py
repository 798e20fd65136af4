from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

class ValidationError(Exception):
    """Raised when operator input is rejected before any state changes."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


VALID_SIDES = ("CASA", "FORA")
VALID_REASONS = ("ACE", "SE", "KILL", "AE", "BLK", "OP", "DEF", "NET")
VALID_SERVE_TYPES = ("FLOAT", "JUMP_FLOAT", "POWER", "OTHER")
ROTATIONS = range(1, 7)

# Touch types whose code may legitimately be recorded before the player.
_CODE_WITHOUT_PLAYER_OK = {"block", "setter"}

ACTION_LABELS = {
    "serve": "Serve",
    "reception": "Reception",
    "setter": "Setter",
    "attack": "Attack",
    "block": "Block",
    "defense": "Defense",
}

# (label, player column, code column) for the flattened rally row.
_RECORD_TOUCHES = [
    ("serve", "s_player_id", "s_code"),
    ("reception", "r_player_id", "r_code"),
    ("attack", "a_player_id", "a_code"),
    ("block", "b1_player_id", "b_code"),
    ("defense", "d_player_id", "d_code"),
]


def validate_side(side: Any) -> str:
    if side not in VALID_SIDES:
        raise ValidationError(f"Side must be one of {', '.join(VALID_SIDES)}.")
    return side


def validate_code(code: Any, *, field: str = "code") -> Optional[int]:
    """Validate a 0-3 quality code; ``None`` is allowed."""

    if code is None:
        return None
    # Reject booleans explicitly (bool is a subclass of int in Python)
    if isinstance(code, bool):
        raise ValidationError(f"{field} must be an integer (not a boolean).")
    try:
        value = int(code)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.")
    if value < 0 or value > 3:
        raise ValidationError(f"{field} must be between 0 and 3.")
    return value


def validate_rotation(rotation: Any, *, field: str = "rotation") -> int:
    if isinstance(rotation, bool):
        raise ValidationError(f"{field} must be an integer (not a boolean).")
    try:
        value = int(rotation)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.")
    if value not in ROTATIONS:
        raise ValidationError(f"{field} must be between 1 and 6.")
    return value


def validate_lineup(player_ids: Sequence[Optional[str]]) -> List[Optional[str]]:
    """Validate the six starting slots of a lineup.

    Rules:
    - Exactly six slots (``rot1`` .. ``rot6``)
    - Empty slots are allowed, but a player may appear only once
    """

    if not isinstance(player_ids, Sequence) or isinstance(player_ids, (str, bytes)):
        raise ValidationError("Lineup must be a list of six player ids.")
    if len(player_ids) != 6:
        raise ValidationError("Lineup must have exactly 6 slots.")
    seen = set()
    for i, pid in enumerate(player_ids, start=1):
        if pid is None:
            continue
        if pid in seen:
            raise ValidationError(f"Player in slot #{i} is already in the lineup.")
        seen.add(pid)
    return list(player_ids)


def _warnings_for_touch(
    label: str,
    kind: str,
    player_id: Optional[str],
    code: Optional[int],
) -> List[str]:
    warnings: List[str] = []
    if player_id and code is None:
        warnings.append(f"{label}: player without code")
    if code is not None and not player_id and kind not in _CODE_WITHOUT_PLAYER_OK:
        warnings.append(f"{label}: code without player")
    return warnings


def action_warnings(actions: Iterable[Any]) -> List[str]:
    """Return advisory data-completeness flags for an in-progress rally.

    Nothing here blocks saving; the flags are shown next to the rally so the
    operator can fill the gaps later.
    """

    warnings: List[str] = []
    for i, action in enumerate(actions, start=1):
        kind = action.type
        label = f"#{i} {ACTION_LABELS.get(kind, kind)}"
        code = action.code
        if kind == "setter" and code is None:
            code = action.passCode
        warnings.extend(_warnings_for_touch(label, kind, action.playerId, code))
        if kind == "attack":
            if action.code == 3 and not action.killType:
                warnings.append(f"{label}: kill without kill type")
            if action.code == 1 and action.blockCode is None:
                warnings.append(f"{label}: touched block without block result")
        elif kind == "setter":
            if action.playerId and not action.passDestination:
                warnings.append(f"{label}: setter without destination")
    return warnings


def rally_warnings(record: Mapping[str, Any]) -> List[str]:
    """Same checks as :func:`action_warnings` on a flattened rally row."""

    warnings: List[str] = []
    for kind, player_col, code_col in _RECORD_TOUCHES:
        warnings.extend(
            _warnings_for_touch(
                ACTION_LABELS[kind], kind, record.get(player_col), record.get(code_col)
            )
        )
    if record.get("a_code") == 3 and not record.get("kill_type"):
        warnings.append("Attack: kill without kill type")
    if record.get("a_code") == 1 and record.get("b_code") is None:
        warnings.append("Attack: touched block without block result")
    if record.get("setter_player_id") and not record.get("pass_destination"):
        warnings.append("Setter: setter without destination")
    return warnings


def validate_rally_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a partial rally row submitted through the edit path."""

    cleaned = dict(fields)
    for key, value in fields.items():
        if key.endswith("_code") or key in ("pass_code", "a_pass_quality"):
            cleaned[key] = validate_code(value, field=key)
        elif key in ("serve_side", "recv_side"):
            cleaned[key] = validate_side(value)
        elif key == "point_won_by" and value is not None:
            cleaned[key] = validate_side(value)
        elif key in ("serve_rot", "recv_rot"):
            cleaned[key] = validate_rotation(value, field=key)
        elif key == "reason" and value is not None and value not in VALID_REASONS:
            raise ValidationError(
                f"reason must be one of {', '.join(VALID_REASONS)}."
            )
        elif key == "s_type" and value is not None and value not in VALID_SERVE_TYPES:
            raise ValidationError(
                f"s_type must be one of {', '.join(VALID_SERVE_TYPES)}."
            )
    return cleaned
