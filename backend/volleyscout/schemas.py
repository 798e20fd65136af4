from typing import Any, Dict, List, Literal, Optional
from datetime import date
from pydantic import BaseModel, Field, model_validator, field_validator, ConfigDict

Side = Literal["CASA", "FORA"]
Reason = Literal["ACE", "SE", "KILL", "AE", "BLK", "OP", "DEF", "NET"]
Position = Literal["OH", "OP", "MB", "S", "L"]


class MatchCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    homeName: str = Field(..., min_length=1, max_length=100)
    awayName: str = Field(..., min_length=1, max_length=100)
    firstServeSide: Side = "CASA"
    matchDate: Optional[date] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("title", "homeName", "awayName", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
        return value


class MatchIdOut(BaseModel):
    """Schema returned after creating a match."""

    id: str


class MatchPlayerIn(BaseModel):
    side: Side
    jerseyNumber: int = Field(..., ge=0, le=99)
    name: str = Field(..., min_length=1, max_length=100)
    position: Optional[Position] = None
    teamPlayerId: Optional[str] = None


class MatchPlayerOut(BaseModel):
    id: str
    side: Side
    jerseyNumber: int
    name: str
    position: Optional[str] = None
    teamPlayerId: Optional[str] = None


class LineupIn(BaseModel):
    """Starting six: the player in ``rotN`` starts in zone N."""

    rot1: Optional[str] = None
    rot2: Optional[str] = None
    rot3: Optional[str] = None
    rot4: Optional[str] = None
    rot5: Optional[str] = None
    rot6: Optional[str] = None

    def slots(self) -> List[Optional[str]]:
        return [self.rot1, self.rot2, self.rot3, self.rot4, self.rot5, self.rot6]


class LineupOut(LineupIn):
    setNo: int
    side: Side


class MatchOut(BaseModel):
    """Detailed match information returned by the API."""

    id: str
    title: str
    homeName: str
    awayName: str
    firstServeSide: Side
    matchDate: Optional[date] = None
    players: List[MatchPlayerOut] = Field(default_factory=list)
    lineups: List[LineupOut] = Field(default_factory=list)


class RallyOut(BaseModel):
    """One point log row, field names as stored."""

    match_id: str
    set_no: int
    rally_no: int
    phase: int = 1
    serve_side: Side
    serve_rot: int
    recv_side: Side
    recv_rot: int
    point_won_by: Optional[Side] = None
    reason: Optional[Reason] = None
    s_player_id: Optional[str] = None
    s_no: Optional[int] = None
    s_code: Optional[int] = None
    s_type: Optional[str] = None
    r_player_id: Optional[str] = None
    r_no: Optional[int] = None
    r_code: Optional[int] = None
    setter_player_id: Optional[str] = None
    pass_destination: Optional[str] = None
    pass_code: Optional[int] = None
    a_player_id: Optional[str] = None
    a_no: Optional[int] = None
    a_code: Optional[int] = None
    a_pass_quality: Optional[int] = None
    kill_type: Optional[str] = None
    b1_player_id: Optional[str] = None
    b1_no: Optional[int] = None
    b2_player_id: Optional[str] = None
    b2_no: Optional[int] = None
    b3_player_id: Optional[str] = None
    b3_no: Optional[int] = None
    b_code: Optional[int] = None
    d_player_id: Optional[str] = None
    d_no: Optional[int] = None
    d_code: Optional[int] = None
    warnings: List[str] = Field(default_factory=list)


class RallyPatch(BaseModel):
    """Explicit edit of a committed rally; only the fields sent are changed."""

    serve_side: Optional[Side] = None
    serve_rot: Optional[int] = Field(default=None, ge=1, le=6)
    recv_side: Optional[Side] = None
    recv_rot: Optional[int] = Field(default=None, ge=1, le=6)
    point_won_by: Optional[Side] = None
    reason: Optional[Reason] = None
    s_player_id: Optional[str] = None
    s_no: Optional[int] = None
    s_code: Optional[int] = None
    s_type: Optional[Literal["FLOAT", "JUMP_FLOAT", "POWER", "OTHER"]] = None
    r_player_id: Optional[str] = None
    r_no: Optional[int] = None
    r_code: Optional[int] = None
    setter_player_id: Optional[str] = None
    pass_destination: Optional[Literal["P2", "P3", "P4", "OP", "PIPE", "BACK", "OUTROS"]] = None
    pass_code: Optional[int] = None
    a_player_id: Optional[str] = None
    a_no: Optional[int] = None
    a_code: Optional[int] = None
    a_pass_quality: Optional[int] = None
    kill_type: Optional[Literal["FLOOR", "BLOCKOUT"]] = None
    b1_player_id: Optional[str] = None
    b1_no: Optional[int] = None
    b2_player_id: Optional[str] = None
    b2_no: Optional[int] = None
    b3_player_id: Optional[str] = None
    b3_no: Optional[int] = None
    b_code: Optional[int] = None
    d_player_id: Optional[str] = None
    d_no: Optional[int] = None
    d_code: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class RallyEventIn(BaseModel):
    """Operator command for the rally in progress."""

    type: Literal[
        "SERVE",
        "RECEIVER",
        "RECEPTION",
        "SKIP_RECEPTION",
        "ADD_ACTION",
        "COMBO",
        "EDIT_ACTION",
        "REMOVE_ACTION",
        "QUICK_ATTACK",
        "FINISH",
        "CONFIRM",
        "CANCEL",
    ]
    code: Optional[int] = Field(default=None, ge=0, le=3)
    playerId: Optional[str] = None
    playerNo: Optional[int] = None
    serveType: Optional[Literal["FLOAT", "JUMP_FLOAT", "POWER", "OTHER"]] = None
    action: Optional[Dict[str, Any]] = None
    setter: Optional[Dict[str, Any]] = None
    attack: Optional[Dict[str, Any]] = None
    index: Optional[int] = None
    winner: Optional[Side] = None
    reason: Optional[Reason] = None

    @model_validator(mode="after")
    def _validate_fields(self) -> "RallyEventIn":
        required = {
            "RECEIVER": ("playerId",),
            "ADD_ACTION": ("action",),
            "COMBO": ("setter", "attack"),
            "EDIT_ACTION": ("index", "action"),
            "REMOVE_ACTION": ("index",),
            "QUICK_ATTACK": ("code",),
            "FINISH": ("winner", "reason"),
        }.get(self.type, ())
        missing = [field for field in required if getattr(self, field) is None]
        if missing:
            raise ValueError(
                f"{self.type} events require: {', '.join(missing)}"
            )
        return self


class LiveStateOut(BaseModel):
    matchId: str
    game: Dict[str, Any]
    rally: Dict[str, Any]


class CommitOut(BaseModel):
    rally: RallyOut
    live: LiveStateOut


class PlayerStatsOut(BaseModel):
    """Per-player box score; skill counters are passed through as computed."""

    model_config = ConfigDict(extra="allow")

    playerId: str
    playerName: Optional[str] = None
    jerseyNumber: Optional[int] = None
    side: Optional[str] = None


class SetKPIsOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    setNo: int
    home: Dict[str, Any]
    away: Dict[str, Any]
    rotations: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
