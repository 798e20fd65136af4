"""SQLAlchemy-backed point log.

Stores one flattened row per rally phase.  Writes report failure by return
value: a failed write is logged and never raised, so the caller can keep the
rally in progress and retry.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_sessionmaker
from ..models import Rally
from .consolidation import consolidate
from ..utils.sentry import capture_persistence_failure

logger = logging.getLogger(__name__)

KEY_FIELDS = ("match_id", "set_no", "rally_no", "phase")
OUTCOME_FIELDS = ("point_won_by", "reason")
_SKIP = {"id", "created_at"}
COLUMNS = tuple(c.name for c in Rally.__table__.columns if c.name not in _SKIP)


def rally_to_dict(row: Rally) -> Dict[str, Any]:
    return {name: getattr(row, name) for name in COLUMNS}


class PointLogStore:
    """Point log persistence over a session factory.

    Each call opens its own session so a store can outlive a request.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, record: Dict[str, Any]) -> bool:
        """Insert or replace the row keyed by match, set, rally and phase."""

        values = {k: v for k, v in record.items() if k in COLUMNS}
        values.setdefault("phase", 1)
        key = {k: values.get(k) for k in KEY_FIELDS}
        try:
            async with self._session_factory() as session:
                existing = (
                    await session.execute(
                        select(Rally).where(
                            *(getattr(Rally, k) == v for k, v in key.items())
                        )
                    )
                ).scalar_one_or_none()
                if existing is None:
                    session.add(Rally(id=uuid.uuid4().hex, **values))
                else:
                    for name in COLUMNS:
                        if name not in KEY_FIELDS:
                            setattr(existing, name, values.get(name))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to save rally %s/%s/%s phase %s",
                key["match_id"],
                key["set_no"],
                key["rally_no"],
                key["phase"],
                exc_info=exc,
            )
            capture_persistence_failure(exc, **key)
            return False
        return True

    async def query(self, match_id: str, set_no: Optional[int] = None) -> List[Dict[str, Any]]:
        stmt = select(Rally).where(Rally.match_id == match_id)
        if set_no is not None:
            stmt = stmt.where(Rally.set_no == set_no)
        stmt = stmt.order_by(Rally.set_no, Rally.rally_no, Rally.phase)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [rally_to_dict(r) for r in rows]

    async def query_all(self) -> List[Dict[str, Any]]:
        stmt = select(Rally).order_by(
            Rally.match_id, Rally.set_no, Rally.rally_no, Rally.phase
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [rally_to_dict(r) for r in rows]

    async def delete_last(self, match_id: str, set_no: int) -> bool:
        """Remove the most recent row of a set; ``False`` if there is none."""

        try:
            async with self._session_factory() as session:
                last = (
                    await session.execute(
                        select(Rally)
                        .where(Rally.match_id == match_id, Rally.set_no == set_no)
                        .order_by(Rally.rally_no.desc(), Rally.phase.desc())
                        .limit(1)
                    )
                ).scalar_one_or_none()
                if last is None:
                    return False
                await session.execute(delete(Rally).where(Rally.id == last.id))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to delete last rally of %s set %s",
                match_id,
                set_no,
                exc_info=exc,
            )
            capture_persistence_failure(exc, match_id=match_id, set_no=set_no)
            return False
        logger.info("Deleted rally %s of %s set %s", last.rally_no, match_id, set_no)
        return True

    async def update(
        self, match_id: str, set_no: int, rally_no: int, fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Edit a committed rally and return its consolidated row.

        Touch fields go to the latest phase row and the outcome to the first
        one, so the edit wins when the phases are merged.  Returns ``None``
        when the rally does not exist.
        """

        changes = {
            k: v for k, v in fields.items() if k in COLUMNS and k not in KEY_FIELDS
        }
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(Rally)
                    .where(
                        Rally.match_id == match_id,
                        Rally.set_no == set_no,
                        Rally.rally_no == rally_no,
                    )
                    .order_by(Rally.phase)
                )
            ).scalars().all()
            if not rows:
                return None
            for name, value in changes.items():
                target = rows[0] if name in OUTCOME_FIELDS else rows[-1]
                setattr(target, name, value)
            await session.commit()
            merged = consolidate([rally_to_dict(r) for r in rows])
        return merged[0]


def get_store() -> PointLogStore:
    """FastAPI dependency: a store bound to the application database."""

    return PointLogStore(get_sessionmaker())
