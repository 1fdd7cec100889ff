from datetime import datetime

from streamcast_player import active_content_resolver as resolver
from streamcast_player.models import PlayerConfig
from streamcast_player.streamcast_enums import ResolutionReason
from tests.helpers import SATURDAY_10AM, SUNDAY_NOON, TUESDAY_10AM, make_item, weekday_rule


def at(hour, minute, day=TUESDAY_10AM):
    return day.replace(hour=hour, minute=minute)


# =============================================================================
# Scheduled resolution
# =============================================================================


class TestScheduledResolution:

    def setup_method(self):
        self.x, self.y, self.z = make_item("X"), make_item("Y"), make_item("Z")
        self.schedules = [weekday_rule("X")]

    def test_weekday_rule_in_window_returns_target(self):
        item = resolver.resolve(TUESDAY_10AM, self.schedules, [self.y, self.x], PlayerConfig())

        assert item == self.x

    def test_weekend_falls_back_to_current_item(self):
        playlist = [self.y, self.z]
        config = PlayerConfig(use_schedule=True, current_item_id="Y")

        assert resolver.resolve(SATURDAY_10AM, self.schedules, playlist, config) == self.y

    def test_window_is_inclusive_at_both_ends(self):
        playlist = [self.y, self.x]
        config = PlayerConfig()

        assert resolver.resolve(at(9, 0), self.schedules, playlist, config) == self.x
        assert resolver.resolve(at(18, 0), self.schedules, playlist, config) == self.x
        assert resolver.resolve(at(8, 59), self.schedules, playlist, config) == self.y
        assert resolver.resolve(at(18, 1), self.schedules, playlist, config) == self.y

    def test_seconds_are_ignored(self):
        now = datetime(2024, 6, 4, 18, 0, 59)

        assert resolver.resolve(now, self.schedules, [self.y, self.x], PlayerConfig()) == self.x

    def test_first_matching_rule_in_table_order_wins(self):
        schedules = [weekday_rule("Z", rule_id="a"), weekday_rule("X", rule_id="b")]

        resolution = resolver.resolve_active(TUESDAY_10AM, schedules, [self.x, self.y, self.z], PlayerConfig())

        assert resolution.item == self.z
        assert resolution.rule.id == "a"
        assert resolution.reason == ResolutionReason.SCHEDULED

    def test_inactive_rule_is_skipped(self):
        schedules = [weekday_rule("Z", active=False), weekday_rule("X")]

        assert resolver.resolve(TUESDAY_10AM, schedules, [self.x, self.z], PlayerConfig()) == self.x

    def test_sunday_is_day_zero(self):
        schedules = [weekday_rule("X", start="00:00", end="23:59", days=(0,))]

        assert resolver.schedule_weekday(SUNDAY_NOON) == 0
        assert resolver.resolve(SUNDAY_NOON, schedules, [self.y, self.x], PlayerConfig()) == self.x

    def test_disabled_scheduling_uses_playlist_fallback(self):
        config = PlayerConfig(use_schedule=False)

        resolution = resolver.resolve_active(TUESDAY_10AM, self.schedules, [self.y, self.x], config)

        assert resolution.item == self.y
        assert resolution.reason == ResolutionReason.FIRST_ITEM


# =============================================================================
# Malformed and dangling rules
# =============================================================================


class TestRuleEdgeCases:

    def test_dangling_target_gives_no_item(self):
        schedules = [weekday_rule("GONE")]

        resolution = resolver.resolve_active(TUESDAY_10AM, schedules, [make_item("Y")], PlayerConfig())

        assert resolution.item is None
        assert resolution.reason == ResolutionReason.DANGLING_SCHEDULE
        assert resolution.rule.target_item_id == "GONE"

    def test_overnight_window_never_matches(self):
        schedules = [weekday_rule("X", start="22:00", end="06:00")]
        playlist = [make_item("Y"), make_item("X")]

        assert resolver.resolve(at(23, 0), schedules, playlist, PlayerConfig()).id == "Y"
        assert resolver.resolve(at(5, 0), schedules, playlist, PlayerConfig()).id == "Y"

    def test_single_minute_window_matches_only_that_minute(self):
        schedules = [weekday_rule("X", start="10:00", end="10:00")]
        playlist = [make_item("Y"), make_item("X")]

        assert resolver.resolve(at(9, 59), schedules, playlist, PlayerConfig()).id == "Y"
        assert resolver.resolve(at(10, 0), schedules, playlist, PlayerConfig()).id == "X"
        assert resolver.resolve(at(10, 1), schedules, playlist, PlayerConfig()).id == "Y"

    def test_malformed_times_never_match(self):
        for start, end in (("9am", "18:00"), ("09:00", ""), ("25:00", "26:00"), ("09:60", "10:00")):
            rule = weekday_rule("X", start=start, end=end)
            assert not resolver.rule_matches(rule, TUESDAY_10AM)

    def test_parse_minutes(self):
        assert resolver.parse_minutes("00:00") == 0
        assert resolver.parse_minutes("09:30") == 570
        assert resolver.parse_minutes("23:59") == 1439
        assert resolver.parse_minutes("24:00") is None
        assert resolver.parse_minutes(None) is None


# =============================================================================
# Playlist fallback
# =============================================================================


class TestPlaylistFallback:

    def test_no_schedules_no_current_returns_first_item(self):
        y, z = make_item("Y"), make_item("Z")

        assert resolver.resolve(TUESDAY_10AM, [], [y, z], PlayerConfig(current_item_id=None)) == y

    def test_current_item_missing_from_playlist_returns_first_item(self):
        y, z = make_item("Y"), make_item("Z")

        resolution = resolver.resolve_active(TUESDAY_10AM, [], [y, z], PlayerConfig(current_item_id="GONE"))

        assert resolution.item == y
        assert resolution.reason == ResolutionReason.FIRST_ITEM

    def test_current_item_is_preferred(self):
        y, z = make_item("Y"), make_item("Z")

        resolution = resolver.resolve_active(TUESDAY_10AM, [], [y, z], PlayerConfig(current_item_id="Z"))

        assert resolution.item == z
        assert resolution.reason == ResolutionReason.CURRENT_ITEM

    def test_empty_playlist_gives_nothing(self):
        resolution = resolver.resolve_active(TUESDAY_10AM, [], [], PlayerConfig())

        assert resolution.item is None
        assert resolution.reason == ResolutionReason.EMPTY_PLAYLIST

    def test_same_inputs_same_answer(self):
        playlist = [make_item("Y"), make_item("X")]
        schedules = [weekday_rule("X")]

        first = resolver.resolve_active(TUESDAY_10AM, schedules, playlist, PlayerConfig())
        second = resolver.resolve_active(TUESDAY_10AM, schedules, playlist, PlayerConfig())

        assert first == second
