from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Lineup, MatchPlayer


def zone_for_slot(slot: int, rotation: int) -> int:
    """Court zone (1-6) of the player who started in ``slot`` at ``rotation``."""
    return ((slot - rotation) % 6) + 1


def server_slot(rotation: int) -> int:
    """Lineup slot of the player serving (zone 1) at ``rotation``."""
    return rotation


def player_to_dict(player: MatchPlayer) -> Dict[str, Any]:
    return {
        "id": player.id,
        "match_id": player.match_id,
        "side": player.side,
        "jersey_number": player.jersey_number,
        "name": player.name,
        "position": player.position,
        "team_player_id": player.team_player_id,
    }


class Roster:
    """Players and lineups of one match.

    ``rally_no`` is accepted by the lookups so substitutions can be layered
    on later; the starting lineup applies for the whole set today.
    """

    def __init__(self, players: List[Dict[str, Any]], lineups: Dict[tuple, List[Optional[str]]]):
        self.players = players
        self._by_id = {p["id"]: p for p in players}
        self._lineups = lineups

    def player(self, player_id: str) -> Optional[Dict[str, Any]]:
        return self._by_id.get(player_id)

    def lineup(self, set_no: int, side: str) -> Optional[List[Optional[str]]]:
        return self._lineups.get((set_no, side))

    def get_players_for_side(self, side: str) -> List[Dict[str, Any]]:
        """Full roster of ``side``, liberos included."""
        return sorted(
            (p for p in self.players if p["side"] == side),
            key=lambda p: p["jersey_number"],
        )

    def get_players_on_court(
        self, set_no: int, side: str, rally_no: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        slots = self.lineup(set_no, side) or []
        return [self._by_id[pid] for pid in slots if pid and pid in self._by_id]

    def get_player_zone(
        self,
        set_no: int,
        side: str,
        player_id: str,
        rotation: int,
        rally_no: Optional[int] = None,
    ) -> Optional[int]:
        slots = self.lineup(set_no, side)
        if not slots or player_id not in slots:
            return None
        return zone_for_slot(slots.index(player_id) + 1, rotation)

    def get_server(self, set_no: int, side: str, rotation: int) -> Optional[Dict[str, Any]]:
        slots = self.lineup(set_no, side)
        if not slots:
            return None
        pid = slots[server_slot(rotation) - 1]
        return self._by_id.get(pid) if pid else None


async def load_roster(session: AsyncSession, match_id: str) -> Roster:
    players = (
        await session.execute(
            select(MatchPlayer).where(MatchPlayer.match_id == match_id)
        )
    ).scalars().all()
    lineups = (
        await session.execute(select(Lineup).where(Lineup.match_id == match_id))
    ).scalars().all()
    return Roster(
        [player_to_dict(p) for p in players],
        {(l.set_no, l.side): l.slots() for l in lineups},
    )
