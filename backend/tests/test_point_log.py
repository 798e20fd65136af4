import os, sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from volleyscout import db
from volleyscout.models import Rally
from volleyscout.services.point_log import PointLogStore


def _record(rally_no, winner="CASA", reason="KILL", set_no=1, **fields):
    row = {
        "match_id": "m1",
        "set_no": set_no,
        "rally_no": rally_no,
        "phase": 1,
        "serve_side": "CASA",
        "serve_rot": 1,
        "recv_side": "FORA",
        "recv_rot": 1,
        "point_won_by": winner,
        "reason": reason,
    }
    row.update(fields)
    return row


def _store():
    return PointLogStore(db.get_sessionmaker())


def test_save_and_query(session_loop):
    store = _store()

    async def scenario():
        assert await store.save(_record(2, s_code=2, s_type="POWER"))
        assert await store.save(_record(1, a_player_id="c9", a_code=3))
        assert await store.save(_record(1, set_no=2))
        return await store.query("m1", 1), await store.query("m1"), await store.query_all()

    set_one, whole, everything = session_loop.run_until_complete(scenario())
    assert [r["rally_no"] for r in set_one] == [1, 2]
    assert set_one[0]["a_code"] == 3
    assert set_one[1]["s_type"] == "POWER"
    assert "id" not in set_one[0]
    assert len(whole) == 3
    assert len(everything) == 3


def test_save_replaces_same_key(session_loop):
    store = _store()

    async def scenario():
        await store.save(_record(1, a_code=2))
        await store.save(_record(1, winner="FORA", reason="AE", a_code=0))
        return await store.query("m1", 1)

    rows = session_loop.run_until_complete(scenario())
    assert len(rows) == 1
    assert (rows[0]["point_won_by"], rows[0]["a_code"]) == ("FORA", 0)


def test_save_reports_failure_instead_of_raising(session_loop):
    store = _store()

    async def scenario():
        async with db.get_engine().begin() as conn:
            await conn.run_sync(Rally.__table__.drop)
        return await store.save(_record(1))

    assert session_loop.run_until_complete(scenario()) is False


def test_delete_last(session_loop):
    store = _store()

    async def scenario():
        await store.save(_record(1))
        await store.save(_record(2))
        first = await store.delete_last("m1", 1)
        rows = await store.query("m1", 1)
        await store.delete_last("m1", 1)
        last = await store.delete_last("m1", 1)
        return first, rows, last

    first, rows, last = session_loop.run_until_complete(scenario())
    assert first is True
    assert [r["rally_no"] for r in rows] == [1]
    assert last is False


def test_update_routes_fields_by_phase(session_loop):
    store = _store()

    async def scenario():
        await store.save(_record(1, phase=1, winner="CASA", reason="KILL", a_code=1))
        await store.save(_record(1, phase=2, winner=None, reason=None, a_code=2))
        merged = await store.update(
            "m1", 1, 1, {"a_code": 0, "point_won_by": "FORA", "reason": "AE", "serve_rot": 3}
        )
        missing = await store.update("m1", 1, 9, {"a_code": 0})
        return merged, missing, await store.query("m1", 1)

    merged, missing, rows = session_loop.run_until_complete(scenario())
    assert missing is None
    assert (merged["a_code"], merged["point_won_by"], merged["reason"]) == (0, "FORA", "AE")
    assert merged["serve_rot"] == 3
    phase1, phase2 = rows
    assert (phase1["point_won_by"], phase1["a_code"]) == ("FORA", 1)
    assert (phase2["a_code"], phase2["serve_rot"]) == (0, 3)
