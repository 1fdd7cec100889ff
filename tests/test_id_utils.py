from streamcast_player import constants
from streamcast_player.utils.id_utils import ItemIdGenerator, get_origin_id


class TestOriginId:

    def test_configured_value_wins(self, local_cache):
        assert get_origin_id(local_cache, configured="lobby") == "lobby"
        assert local_cache.get(constants.ORIGIN_ID_CACHE_KEY) is None

    def test_generated_once_and_reused(self, local_cache):
        first = get_origin_id(local_cache)

        assert len(first) == 8
        assert get_origin_id(local_cache) == first


class TestItemIdGenerator:

    def test_ids_are_unique_within_a_millisecond(self):
        generator = ItemIdGenerator("abc", time_ms=lambda: 1717495200000)

        ids = [generator.next_id() for _ in range(3)]

        assert ids == ["abc-1717495200000-0", "abc-1717495200000-1", "abc-1717495200000-2"]

    def test_different_origins_never_collide(self):
        a = ItemIdGenerator("aaa", time_ms=lambda: 5)
        b = ItemIdGenerator("bbb", time_ms=lambda: 5)

        assert a.next_id() != b.next_id()
