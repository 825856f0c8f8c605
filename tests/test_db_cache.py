from modcase.database.db_cache import GuildCache


def test_entries_expire_at_ttl(clock):
    cache = GuildCache("test", default_ttl_seconds=60, clock=clock)
    cache.set("G1", "value")

    clock.advance(59.9)
    assert cache.get("G1") == "value"

    clock.advance(0.1)
    assert cache.get("G1") is None
    assert cache.stats()["size"] == 0


def test_per_entry_ttl_overrides_default(clock):
    cache = GuildCache("test", default_ttl_seconds=300, clock=clock)
    cache.set("short", 1, ttl_seconds=30)
    cache.set("long", 2)

    assert cache.expires_in("short") == 30
    clock.advance(30)
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_invalidate_single_and_all(clock):
    cache = GuildCache("test", clock=clock)
    cache.set("G1", 1)
    cache.set("G2", 2)

    assert cache.invalidate("G1") == 1
    assert cache.invalidate("G1") == 0
    assert cache.invalidate() == 1
    assert cache.get("G2") is None


def test_caches_are_isolated(clock):
    first = GuildCache("first", clock=clock)
    second = GuildCache("second", clock=clock)

    first.set("G1", "a")

    assert second.get("G1") is None
    assert second.expires_in("G1") is None
