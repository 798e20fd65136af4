from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from .db import Base


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    home_name = Column(String, nullable=False)
    away_name = Column(String, nullable=False)
    first_serve_side = Column(String, nullable=False, default="CASA")  # "CASA" | "FORA"
    match_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class MatchPlayer(Base):
    __tablename__ = "match_player"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id"), nullable=False)
    side = Column(String, nullable=False)
    jersey_number = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    position = Column(String, nullable=True)  # OH | OP | MB | S | L
    # Club-level identity, shared by the same player across matches
    team_player_id = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "match_id",
            "side",
            "jersey_number",
            name="uq_match_player_match_side_jersey",
        ),
        Index("ix_match_player_team_player_id", "team_player_id"),
    )


class Lineup(Base):
    __tablename__ = "lineup"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id"), nullable=False)
    set_no = Column(Integer, nullable=False)
    side = Column(String, nullable=False)
    rot1 = Column(String, ForeignKey("match_player.id"), nullable=True)
    rot2 = Column(String, ForeignKey("match_player.id"), nullable=True)
    rot3 = Column(String, ForeignKey("match_player.id"), nullable=True)
    rot4 = Column(String, ForeignKey("match_player.id"), nullable=True)
    rot5 = Column(String, ForeignKey("match_player.id"), nullable=True)
    rot6 = Column(String, ForeignKey("match_player.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "match_id", "set_no", "side", name="uq_lineup_match_set_side"
        ),
    )

    def slots(self):
        return [self.rot1, self.rot2, self.rot3, self.rot4, self.rot5, self.rot6]


class Rally(Base):
    __tablename__ = "rally"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id"), nullable=False)
    set_no = Column(Integer, nullable=False)
    rally_no = Column(Integer, nullable=False)
    phase = Column(Integer, nullable=False, default=1)
    serve_side = Column(String, nullable=False)
    serve_rot = Column(Integer, nullable=False)
    recv_side = Column(String, nullable=False)
    recv_rot = Column(Integer, nullable=False)
    point_won_by = Column(String, nullable=True)
    reason = Column(String, nullable=True)

    s_player_id = Column(String, nullable=True)
    s_no = Column(Integer, nullable=True)
    s_code = Column(Integer, nullable=True)
    s_type = Column(String, nullable=True)
    r_player_id = Column(String, nullable=True)
    r_no = Column(Integer, nullable=True)
    r_code = Column(Integer, nullable=True)
    setter_player_id = Column(String, nullable=True)
    pass_destination = Column(String, nullable=True)
    pass_code = Column(Integer, nullable=True)
    a_player_id = Column(String, nullable=True)
    a_no = Column(Integer, nullable=True)
    a_code = Column(Integer, nullable=True)
    a_pass_quality = Column(Integer, nullable=True)
    kill_type = Column(String, nullable=True)
    b1_player_id = Column(String, nullable=True)
    b1_no = Column(Integer, nullable=True)
    b2_player_id = Column(String, nullable=True)
    b2_no = Column(Integer, nullable=True)
    b3_player_id = Column(String, nullable=True)
    b3_no = Column(Integer, nullable=True)
    b_code = Column(Integer, nullable=True)
    d_player_id = Column(String, nullable=True)
    d_no = Column(Integer, nullable=True)
    d_code = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "match_id",
            "set_no",
            "rally_no",
            "phase",
            name="uq_rally_match_set_rally_phase",
        ),
        Index("ix_rally_match_id_set_no", "match_id", "set_no"),
    )
