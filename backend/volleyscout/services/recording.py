"""Live recording controller for one set."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..exceptions import PersistenceError
from ..scoring import rotation, wizard
from .consolidation import rallies_for_set
from .kpis import attacker_side
from .point_log import PointLogStore
from .roster import Roster

logger = logging.getLogger(__name__)


class SetRecorder:
    """Owns the rally in progress of one set.

    Besides the rally engine state it keeps the game state (score, serve,
    rotations) and the last attacker, which quick attacks repeat.  The last
    attacker carries over from rally to rally and is forgotten when the set
    changes.
    """

    def __init__(
        self,
        match_id: str,
        set_no: int,
        first_serve_side: str,
        store: PointLogStore,
        roster: Optional[Roster] = None,
    ) -> None:
        self.match_id = match_id
        self.set_no = set_no
        self.first_serve_side = first_serve_side
        self.store = store
        self.roster = roster
        self.lock = asyncio.Lock()
        self.last_attacker: Optional[Dict[str, Any]] = None
        self.game = rotation.init_state(first_serve_side, set_no)
        self.state = wizard.init_state(self._context())

    def _context(self) -> Dict[str, Any]:
        ctx = {
            "match_id": self.match_id,
            "set_no": self.set_no,
            "rally_no": self.game["rallyNo"],
            "serve_side": self.game["serveSide"],
            "serve_rot": self.game["serveRot"],
            "recv_side": self.game["recvSide"],
            "recv_rot": self.game["recvRot"],
            "last_attacker": self.last_attacker,
        }
        if self.roster is not None:
            server = self.roster.get_server(
                self.set_no, self.game["serveSide"], self.game["serveRot"]
            )
            if server is not None:
                ctx["server_id"] = server["id"]
                ctx["server_no"] = server["jersey_number"]
        return ctx

    def _attacker_from_rows(self, rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        for rally in reversed(rallies_for_set(rows, self.set_no)):
            pid = rally.get("a_player_id")
            if not pid:
                continue
            player = self.roster.player(pid) if self.roster is not None else None
            side = player["side"] if player else attacker_side(rally)
            return {"playerId": pid, "playerNo": rally.get("a_no"), "side": side}
        return None

    async def load(self) -> Dict[str, Any]:
        """Rebuild score, serve and rotations from the point log."""

        rows = await self.store.query(self.match_id, self.set_no)
        self.game = rotation.derive_state(rows, self.set_no, self.first_serve_side)
        self.last_attacker = self._attacker_from_rows(rows)
        self.state = wizard.init_state(self._context())
        return self.summary()

    def summary(self) -> Dict[str, Any]:
        return {
            "matchId": self.match_id,
            "game": rotation.summary(self.game),
            "rally": wizard.summary(self.state),
        }

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Apply one operator event; a rejected event leaves the state as it was."""

        self.state = wizard.apply(event, self.state)
        return self.summary()

    async def commit(self) -> Dict[str, Any]:
        """Save the finished rally and move on to the next one.

        The rally in progress is kept when the point log refuses the write,
        so the same commit can be retried.
        """

        record = wizard.build_record(self.state)
        saved = await self.store.save(record)
        if not saved:
            logger.warning(
                "Rally %s of %s set %s not saved; keeping it open",
                record["rally_no"],
                self.match_id,
                self.set_no,
            )
            raise PersistenceError()
        attacker = wizard.last_attacker(self.state)
        if attacker is not None:
            self.last_attacker = attacker
        self.game = rotation.apply(record, self.game)
        self.state = wizard.init_state(self._context())
        logger.info(
            "Committed rally %s of %s set %s (%s, %s)",
            record["rally_no"],
            self.match_id,
            self.set_no,
            record["point_won_by"],
            record["reason"],
        )
        return record

    async def undo_last(self) -> bool:
        """Delete the last committed rally of the set and reload."""

        deleted = await self.store.delete_last(self.match_id, self.set_no)
        if deleted:
            await self.load()
        return deleted

    def cancel(self) -> Dict[str, Any]:
        self.state = wizard.apply({"type": "CANCEL"}, self.state)
        return self.summary()

    async def change_set(self, set_no: int) -> Dict[str, Any]:
        self.set_no = set_no
        self.last_attacker = None
        rows = await self.store.query(self.match_id, set_no)
        self.game = rotation.derive_state(rows, set_no, self.first_serve_side)
        self.state = wizard.init_state(self._context())
        return self.summary()
