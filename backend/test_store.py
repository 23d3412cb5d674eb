"""Tests for the SQLite-backed activity store."""
from conftest import activity_data, make_activity
from dashboard.models import ActivityCache
from dashboard.services.store import SqlActivityStore


def test_load_without_cache(db, user):
    assert SqlActivityStore(db, user.id).load() is None
    assert SqlActivityStore(db, user.id).saved_at() is None


def test_round_trip_is_unmodified(db, user):
    raw = [activity_data(id=1, extra_field={"nested": [1, 2]}), activity_data(id=2, map=None)]
    store = SqlActivityStore(db, user.id)

    store.save([make_activity(**raw[0]), make_activity(**raw[1])])
    loaded = store.load()

    assert [a.raw for a in loaded] == raw
    assert [a.id for a in loaded] == [1, 2]
    assert store.saved_at() is not None


def test_save_replaces_previous_collection(db, user):
    store = SqlActivityStore(db, user.id)
    store.save([make_activity(id=1), make_activity(id=2)])
    store.save([make_activity(id=3)])

    assert [a.id for a in store.load()] == [3]
    row = db.query(ActivityCache).filter(ActivityCache.user_id == user.id).one()
    assert row.activity_count == 1


def test_clear(db, user):
    store = SqlActivityStore(db, user.id)
    store.save([make_activity(id=1)])

    store.clear()

    assert store.load() is None
    store.clear()
