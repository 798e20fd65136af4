# backend/volleyscout/routers/stats.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Match, MatchPlayer
from ..schemas import PlayerStatsOut, SetKPIsOut, Side
from ..services.global_stats import compute_global_stats
from ..services.kpis import compute_set_kpis, rotation_breakdown
from ..services.player_stats import compute_player_stats
from ..services.consolidation import rallies_for_set
from ..services.stats import score_progression
from ..services.point_log import PointLogStore, get_store
from ..services.roster import player_to_dict
from .matches import get_match_or_404

# Stats span two resources, so paths are spelled out here
router = APIRouter(tags=["stats"])


async def _match_players(session: AsyncSession, mid: str) -> list[dict]:
    rows = (
        await session.execute(select(MatchPlayer).where(MatchPlayer.match_id == mid))
    ).scalars().all()
    return [player_to_dict(p) for p in rows]


# GET /api/v0/matches/{mid}/sets/{set_no}/kpis
@router.get("/matches/{mid}/sets/{set_no}/kpis", response_model=SetKPIsOut)
async def set_kpis(
    mid: str,
    set_no: int,
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    await get_match_or_404(session, mid)
    rows = await store.query(mid, set_no)
    previous = await store.query(mid, set_no - 1) if set_no > 1 else []
    players = await _match_players(session, mid)
    report = compute_set_kpis(rows, set_no, previous_rallies=previous, players=players)
    report["rotations"] = rotation_breakdown(rallies_for_set(rows, set_no))
    return report


# GET /api/v0/matches/{mid}/player-stats
@router.get("/matches/{mid}/player-stats", response_model=list[PlayerStatsOut])
async def player_stats(
    mid: str,
    set_no: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    await get_match_or_404(session, mid)
    rows = await store.query(mid, set_no)
    players = await _match_players(session, mid)
    return compute_player_stats(rows, players)


# GET /api/v0/stats/global
@router.get("/stats/global")
async def global_stats(
    matchId: Optional[str] = None,
    side: Optional[Side] = None,
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    rallies = await store.query_all()
    players = (await session.execute(select(MatchPlayer))).scalars().all()
    matches = (await session.execute(select(Match))).scalars().all()
    return compute_global_stats(
        rallies,
        [player_to_dict(p) for p in players],
        [
            {"id": m.id, "home_name": m.home_name, "away_name": m.away_name}
            for m in matches
        ],
        match_id=matchId,
        side=side,
    )


# GET /api/v0/matches/{mid}/sets/{set_no}/progression
@router.get("/matches/{mid}/sets/{set_no}/progression")
async def set_progression(
    mid: str,
    set_no: int,
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
):
    await get_match_or_404(session, mid)
    rows = await store.query(mid, set_no)
    return score_progression(rallies_for_set(rows, set_no))
