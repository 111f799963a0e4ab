"""
Tests for the SQLite cache mirror and its use by CacheService.
"""
from thirstee.cache import CacheEntry, CacheService, SQLiteCacheMirror


def test_mirror_round_trip(tmp_path):
    mirror = SQLiteCacheMirror(tmp_path / "cache.db")

    assert mirror.save("k", CacheEntry(value={"a": 1}, stored_at=100.0, ttl_seconds=60.0))

    loaded = mirror.load("k")
    assert loaded.value == {"a": 1}
    assert loaded.stored_at == 100.0
    assert loaded.ttl_seconds == 60.0
    assert mirror.count() == 1


def test_mirror_skips_unserializable_values(tmp_path):
    mirror = SQLiteCacheMirror(tmp_path / "cache.db")

    assert mirror.save("k", CacheEntry(value=object(), stored_at=0.0, ttl_seconds=1.0)) is False
    assert mirror.load("k") is None


def test_entries_survive_restart(tmp_path, clock):
    """A new service over the same file restores fresh entries"""
    db_path = tmp_path / "cache.db"
    first = CacheService(mirror=SQLiteCacheMirror(db_path), clock=clock)
    first.set("stats-u1-0", {"total_events": 3}, ttl=60)

    second = CacheService(mirror=SQLiteCacheMirror(db_path), clock=clock)

    assert second.get("stats-u1-0") == {"total_events": 3}
    assert second.get_stats()["mirror_restores"] == 1


def test_stale_mirrored_entries_are_removed(tmp_path, clock):
    db_path = tmp_path / "cache.db"
    mirror = SQLiteCacheMirror(db_path)
    CacheService(mirror=mirror, clock=clock).set("k", "v", ttl=10)
    clock.advance(11)

    service = CacheService(mirror=mirror, clock=clock)

    assert service.get("k") is None
    assert mirror.load("k") is None


def test_invalidate_pattern_reaches_mirror(tmp_path, clock):
    mirror = SQLiteCacheMirror(tmp_path / "cache.db")
    service = CacheService(mirror=mirror, clock=clock)
    service.set("user_stats_42", 1, ttl=60)
    service.set("user_stats_7", 2, ttl=60)

    service.invalidate_pattern("_42")

    assert sorted(mirror.keys()) == ["user_stats_7"]


def test_clear_empties_mirror(tmp_path, clock):
    mirror = SQLiteCacheMirror(tmp_path / "cache.db")
    service = CacheService(mirror=mirror, clock=clock)
    service.set("a", 1, ttl=60)

    service.clear()

    assert mirror.count() == 0


def test_unusable_mirror_falls_back_to_memory(tmp_path, clock):
    """A database path that cannot be opened disables the mirror"""
    mirror = SQLiteCacheMirror(tmp_path)
    service = CacheService(mirror=mirror, clock=clock)

    service.set("k", "v", ttl=60)

    assert mirror.is_available is False
    assert service.get("k") == "v"
    assert service.get_stats()["persisted_size"] == 0


def test_unmirrorable_overwrite_drops_older_mirrored_value(tmp_path, clock):
    """An evicted key never comes back from the mirror with an overwritten value"""
    mirror = SQLiteCacheMirror(tmp_path / "cache.db")
    service = CacheService(max_memory_items=1, mirror=mirror, clock=clock)
    service.set("k", {"count": 1}, ttl=60)

    service.set("k", object(), ttl=60)
    clock.advance(1)
    service.set("other", 1, ttl=60)

    assert service.get("k") is None
    assert mirror.load("k") is None


def test_failed_mirror_write_removes_previous_row(tmp_path, clock):
    """After a write the mirror holds the new value or nothing for the key"""
    db_path = tmp_path / "cache.db"
    service = CacheService(mirror=SQLiteCacheMirror(db_path), clock=clock)
    service.set("k", "v1", ttl=60)
    service.set("k", {1, 2}, ttl=60)

    restarted = CacheService(mirror=SQLiteCacheMirror(db_path), clock=clock)

    assert restarted.get("k") is None
