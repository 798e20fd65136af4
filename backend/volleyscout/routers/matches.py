# backend/volleyscout/routers/matches.py
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import live_recorders
from ..db import get_session
from ..exceptions import MatchNotFound, RallyNotFound, http_problem
from ..models import Lineup, Match, MatchPlayer
from ..schemas import (
    LineupIn,
    LineupOut,
    MatchCreate,
    MatchIdOut,
    MatchOut,
    MatchPlayerIn,
    MatchPlayerOut,
    RallyOut,
    RallyPatch,
    Side,
)
from ..services.export import rallies_to_csv
from ..services.point_log import PointLogStore, get_store
from ..services.validation import (
    ValidationError,
    rally_warnings,
    validate_lineup,
    validate_rally_fields,
)

logger = logging.getLogger(__name__)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


async def get_match_or_404(session: AsyncSession, mid: str) -> Match:
    m = (await session.execute(select(Match).where(Match.id == mid))).scalar_one_or_none()
    if not m:
        raise MatchNotFound(mid)
    return m


def _player_out(p: MatchPlayer) -> MatchPlayerOut:
    return MatchPlayerOut(
        id=p.id,
        side=p.side,
        jerseyNumber=p.jersey_number,
        name=p.name,
        position=p.position,
        teamPlayerId=p.team_player_id,
    )


def _lineup_out(l: Lineup) -> LineupOut:
    return LineupOut(
        setNo=l.set_no,
        side=l.side,
        rot1=l.rot1,
        rot2=l.rot2,
        rot3=l.rot3,
        rot4=l.rot4,
        rot5=l.rot5,
        rot6=l.rot6,
    )


def _rally_out(row: dict) -> RallyOut:
    return RallyOut(**row, warnings=rally_warnings(row))


async def _refresh_live(mid: str, set_no: int) -> None:
    """Re-derive the live game state after the point log changed underneath it."""

    recorder = await live_recorders.get((mid, set_no))
    if recorder is None:
        return
    async with recorder.lock:
        if recorder.state["actions"]:
            # keep the rally in progress; score catches up on the next commit
            return
        await recorder.load()


# POST /api/v0/matches
@router.post("", response_model=MatchIdOut)
async def create_match(body: MatchCreate, session: AsyncSession = Depends(get_session)):
    mid = uuid.uuid4().hex
    session.add(
        Match(
            id=mid,
            title=body.title,
            home_name=body.homeName,
            away_name=body.awayName,
            first_serve_side=body.firstServeSide,
            match_date=body.matchDate,
        )
    )
    await session.commit()
    logger.info("Created match %s (%s)", mid, body.title)
    return MatchIdOut(id=mid)


# GET /api/v0/matches/{mid}
@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: str, session: AsyncSession = Depends(get_session)):
    m = await get_match_or_404(session, mid)
    players = (
        await session.execute(
            select(MatchPlayer)
            .where(MatchPlayer.match_id == mid)
            .order_by(MatchPlayer.side, MatchPlayer.jersey_number)
        )
    ).scalars().all()
    lineups = (
        await session.execute(
            select(Lineup)
            .where(Lineup.match_id == mid)
            .order_by(Lineup.set_no, Lineup.side)
        )
    ).scalars().all()
    return MatchOut(
        id=m.id,
        title=m.title,
        homeName=m.home_name,
        awayName=m.away_name,
        firstServeSide=m.first_serve_side,
        matchDate=m.match_date,
        players=[_player_out(p) for p in players],
        lineups=[_lineup_out(l) for l in lineups],
    )


# POST /api/v0/matches/{mid}/players
@router.post("/{mid}/players", response_model=MatchPlayerOut)
async def add_player(
    mid: str, body: MatchPlayerIn, session: AsyncSession = Depends(get_session)
):
    await get_match_or_404(session, mid)
    p = MatchPlayer(
        id=uuid.uuid4().hex,
        match_id=mid,
        side=body.side,
        jersey_number=body.jerseyNumber,
        name=body.name.strip(),
        position=body.position,
        team_player_id=body.teamPlayerId,
    )
    session.add(p)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise http_problem(
            status_code=409,
            detail=f"jersey number {body.jerseyNumber} already used on {body.side}",
            code="match_player_exists",
        )
    # live recorders hold a roster snapshot
    await live_recorders.invalidate_match(mid)
    return _player_out(p)


# PUT /api/v0/matches/{mid}/lineups/{set_no}/{side}
@router.put("/{mid}/lineups/{set_no}/{side}", response_model=LineupOut)
async def set_lineup(
    mid: str,
    set_no: int,
    side: Side,
    body: LineupIn,
    session: AsyncSession = Depends(get_session),
):
    await get_match_or_404(session, mid)
    try:
        slots = validate_lineup(body.slots())
    except ValidationError as exc:
        raise http_problem(status_code=422, detail=exc.detail, code="lineup_invalid")

    ids = {pid for pid in slots if pid}
    if ids:
        known = (
            await session.execute(
                select(MatchPlayer.id).where(
                    MatchPlayer.match_id == mid,
                    MatchPlayer.side == side,
                    MatchPlayer.id.in_(ids),
                )
            )
        ).scalars().all()
        unknown = ids - set(known)
        if unknown:
            raise http_problem(
                status_code=422,
                detail=f"players not on {side} roster: {', '.join(sorted(unknown))}",
                code="lineup_unknown_player",
            )

    lineup = (
        await session.execute(
            select(Lineup).where(
                Lineup.match_id == mid, Lineup.set_no == set_no, Lineup.side == side
            )
        )
    ).scalar_one_or_none()
    if lineup is None:
        lineup = Lineup(id=uuid.uuid4().hex, match_id=mid, set_no=set_no, side=side)
        session.add(lineup)
    for i, pid in enumerate(slots, start=1):
        setattr(lineup, f"rot{i}", pid)
    await session.commit()
    # the server of the next rally may have changed
    await live_recorders.invalidate((mid, set_no))
    return _lineup_out(lineup)


# GET /api/v0/matches/{mid}/rallies
@router.get("/{mid}/rallies", response_model=list[RallyOut])
async def list_rallies(
    mid: str,
    set_no: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    await get_match_or_404(session, mid)
    rows = await store.query(mid, set_no)
    return [_rally_out(r) for r in rows]


# PATCH /api/v0/matches/{mid}/rallies/{set_no}/{rally_no}
@router.patch("/{mid}/rallies/{set_no}/{rally_no}", response_model=RallyOut)
async def update_rally(
    mid: str,
    set_no: int,
    rally_no: int,
    body: RallyPatch,
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    await get_match_or_404(session, mid)
    try:
        fields = validate_rally_fields(body.model_dump(exclude_unset=True))
    except ValidationError as exc:
        raise http_problem(status_code=422, detail=exc.detail, code="rally_invalid")
    row = await store.update(mid, set_no, rally_no, fields)
    if row is None:
        raise RallyNotFound(set_no, rally_no)
    logger.info("Edited rally %s of %s set %s: %s", rally_no, mid, set_no, sorted(fields))
    await _refresh_live(mid, set_no)
    return _rally_out(row)


# DELETE /api/v0/matches/{mid}/sets/{set_no}/last
@router.delete("/{mid}/sets/{set_no}/last", status_code=204)
async def delete_last_rally(
    mid: str,
    set_no: int,
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    await get_match_or_404(session, mid)
    recorder = await live_recorders.get((mid, set_no))
    if recorder is not None:
        async with recorder.lock:
            deleted = await recorder.undo_last()
    else:
        deleted = await store.delete_last(mid, set_no)
    if not deleted:
        raise http_problem(
            status_code=404,
            detail=f"set {set_no} has no rallies to delete",
            code="rally_not_found",
        )
    return Response(status_code=204)


# GET /api/v0/matches/{mid}/export.csv
@router.get("/{mid}/export.csv")
async def export_csv(
    mid: str,
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    m = await get_match_or_404(session, mid)
    rows = await store.query(mid)
    filename = f"{m.id}-rallies.csv"
    return Response(
        content=rallies_to_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
