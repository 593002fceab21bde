from pokepals.services.feed_cache import TTLCache


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = _Clock()
    cache = TTLCache(30, clock=clock)
    cache.set(('', 20), ['page'])

    clock.now += 29.9
    assert cache.get(('', 20)) == ['page']

    clock.now += 0.1
    assert cache.get(('', 20)) is None
    assert len(cache) == 0


def test_clear_drops_every_entry() -> None:
    cache = TTLCache(30, clock=_Clock())
    cache.set('a', 1)
    cache.set('b', 2)

    cache.clear()

    assert cache.get('a') is None
    assert cache.get('b') is None


def test_zero_ttl_disables_caching() -> None:
    cache = TTLCache(0, clock=_Clock())
    cache.set('a', 1)

    assert cache.get('a') is None


def test_set_is_dropped_when_cleared_since_read() -> None:
    cache = TTLCache(30, clock=_Clock())
    generation = cache.generation

    cache.clear()

    assert cache.set('page', ['stale'], generation) is False
    assert cache.get('page') is None
    assert cache.set('page', ['fresh'], cache.generation) is True
    assert cache.get('page') == ['fresh']
