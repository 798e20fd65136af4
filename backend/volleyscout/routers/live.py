# backend/volleyscout/routers/live.py
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import live_recorders
from ..db import get_session
from ..exceptions import LineupMissing, http_problem
from ..limits import limiter, live_events_rate_limit
from ..schemas import CommitOut, LiveStateOut, RallyEventIn, RallyOut
from ..services.point_log import PointLogStore, get_store
from ..services.recording import SetRecorder
from ..services.roster import load_roster
from ..services.validation import ValidationError, rally_warnings
from .matches import get_match_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/matches/{mid}/live", tags=["live"])


async def get_recorder(
    mid: str,
    set_no: int,
    session: AsyncSession = Depends(get_session),
    store: PointLogStore = Depends(get_store),
) -> SetRecorder:
    """The live recorder of a set, created and loaded on first use."""

    m = await get_match_or_404(session, mid)

    async def _create() -> SetRecorder:
        roster = await load_roster(session, mid)
        if roster.lineup(set_no, "CASA") is None or roster.lineup(set_no, "FORA") is None:
            raise LineupMissing(set_no)
        recorder = SetRecorder(mid, set_no, m.first_serve_side, store, roster)
        await recorder.load()
        logger.info("Opened live recorder for %s set %s", mid, set_no)
        return recorder

    return await live_recorders.get_or_create((mid, set_no), _create)


# GET /api/v0/matches/{mid}/live/{set_no}
@router.get("/{set_no}", response_model=LiveStateOut)
async def live_state(recorder: SetRecorder = Depends(get_recorder)):
    async with recorder.lock:
        return recorder.summary()


# POST /api/v0/matches/{mid}/live/{set_no}/events
@router.post("/{set_no}/events", response_model=LiveStateOut)
@limiter.limit(live_events_rate_limit)
async def live_event(
    request: Request,
    ev: RallyEventIn,
    recorder: SetRecorder = Depends(get_recorder),
):
    event = ev.model_dump(exclude_none=True)
    async with recorder.lock:
        try:
            return recorder.handle(event)
        except ValidationError as exc:
            raise http_problem(
                status_code=400,
                detail=exc.detail,
                code="live_invalid_event",
            )


# POST /api/v0/matches/{mid}/live/{set_no}/commit
@router.post("/{set_no}/commit", response_model=CommitOut)
async def live_commit(recorder: SetRecorder = Depends(get_recorder)):
    async with recorder.lock:
        try:
            record = await recorder.commit()
        except ValidationError as exc:
            raise http_problem(
                status_code=400,
                detail=exc.detail,
                code="live_not_finished",
            )
        summary = recorder.summary()
    return CommitOut(
        rally=RallyOut(**record, warnings=rally_warnings(record)),
        live=LiveStateOut(**summary),
    )
