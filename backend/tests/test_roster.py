import os, sys
import uuid

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from volleyscout import db
from volleyscout.models import Lineup, Match, MatchPlayer
from volleyscout.services.roster import Roster, load_roster, server_slot, zone_for_slot

PLAYERS = [
    {"id": f"c{n}", "side": "CASA", "jersey_number": n, "name": f"Casa {n}"} for n in range(1, 8)
]
LINEUP = ["c1", "c2", "c3", "c4", "c5", "c6"]


def test_zone_for_slot_rotates_with_team():
    assert [zone_for_slot(slot, 1) for slot in range(1, 7)] == [1, 2, 3, 4, 5, 6]
    assert zone_for_slot(2, 2) == 1
    assert zone_for_slot(1, 2) == 6
    assert server_slot(4) == 4


def test_roster_lookups():
    roster = Roster(PLAYERS, {(1, "CASA"): LINEUP})
    assert [p["id"] for p in roster.get_players_for_side("CASA")][-1] == "c7"
    assert [p["id"] for p in roster.get_players_on_court(1, "CASA")] == LINEUP
    assert roster.get_player_zone(1, "CASA", "c3", rotation=2) == 2
    assert roster.get_player_zone(1, "CASA", "c7", rotation=2) is None
    assert roster.get_server(1, "CASA", 3)["id"] == "c3"
    assert roster.get_server(1, "FORA", 3) is None
    assert roster.get_server(2, "CASA", 1) is None


def test_load_roster_from_database(session_loop):
    async def scenario():
        async with db.get_sessionmaker()() as session:
            session.add(Match(id="m1", title="Final", home_name="A", away_name="B"))
            for p in PLAYERS[:6]:
                session.add(MatchPlayer(match_id="m1", **p))
            session.add(
                Lineup(
                    id=uuid.uuid4().hex,
                    match_id="m1",
                    set_no=1,
                    side="CASA",
                    **{f"rot{i}": pid for i, pid in enumerate(LINEUP, start=1)},
                )
            )
            await session.commit()
            return await load_roster(session, "m1")

    roster = session_loop.run_until_complete(scenario())
    assert roster.lineup(1, "CASA") == LINEUP
    assert roster.lineup(1, "FORA") is None
    assert roster.player("c2")["jersey_number"] == 2
    assert roster.player("c2")["match_id"] == "m1"
