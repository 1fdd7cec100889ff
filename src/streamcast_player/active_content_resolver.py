"""
Streamcast - Active Content Resolver

Decides which playlist item should be playing at a given instant.

Rules:
1. If scheduling is disabled in the config, skip straight to the playlist fallback.
2. Otherwise the FIRST rule in table order that is active, lists today's
   weekday and whose [start, end] window contains the current minute wins.
   Overlapping rules are not ranked any further.
3. A matching rule whose target id is not in the playlist yields no item.
   The caller decides whether to fall back.
4. With no matching rule: the item named by config.current_item_id, else the
   first playlist item, else nothing.

Windows are same-day only. A rule with start > end never matches.

Everything here is pure: the same (now, bundle) always gives the same answer,
so the sync engine re-runs it on every tick and every bundle change.
"""

import typing as tp
from dataclasses import dataclass
from datetime import datetime

from streamcast_player.models import Bundle, ContentItem, PlayerConfig, ScheduleRule, find_item
from streamcast_player.streamcast_enums import ResolutionReason

# Day labels indexed by the schedule weekday convention (0 = Sunday)
DAY_NAMES = ['SUNDAY', 'MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY', 'SATURDAY']


@dataclass(frozen=True)
class ActiveResolution:
    item: tp.Optional[ContentItem]
    reason: ResolutionReason
    rule: tp.Optional[ScheduleRule] = None


def schedule_weekday(now: datetime) -> int:
    """Weekday of now with 0 = Sunday (Python's weekday() has 0 = Monday)."""
    return (now.weekday() + 1) % 7


def parse_minutes(time_str: str) -> tp.Optional[int]:
    """Parse 'HH:MM' into minutes since midnight, or None if malformed."""
    if not time_str or not isinstance(time_str, str):
        return None
    try:
        parts = time_str.strip().split(':')
        hours, minutes = int(parts[0]), int(parts[1])
    except (ValueError, IndexError):
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


def rule_matches(rule: ScheduleRule, now: datetime) -> bool:
    """Check a single rule against now (inclusive at both ends, minute precision)."""
    if not rule.active:
        return False
    if schedule_weekday(now) not in rule.days_of_week:
        return False

    start = parse_minutes(rule.start_time)
    end = parse_minutes(rule.end_time)
    if start is None or end is None:
        return False

    current = now.hour * 60 + now.minute
    return start <= current <= end


def find_matching_rule(now: datetime, schedules: tp.Sequence[ScheduleRule]) -> tp.Optional[ScheduleRule]:
    """Return the first rule in table order that matches now."""
    for rule in schedules:
        if rule_matches(rule, now):
            return rule
    return None


def playlist_fallback(playlist: tp.Sequence[ContentItem], config: PlayerConfig) -> ActiveResolution:
    """Current item if it is still in the playlist, else the first item, else nothing."""
    current = find_item(playlist, config.current_item_id)
    if current is not None:
        return ActiveResolution(current, ResolutionReason.CURRENT_ITEM)
    if playlist:
        return ActiveResolution(playlist[0], ResolutionReason.FIRST_ITEM)
    return ActiveResolution(None, ResolutionReason.EMPTY_PLAYLIST)


def resolve_active(
        now: datetime,
        schedules: tp.Sequence[ScheduleRule],
        playlist: tp.Sequence[ContentItem],
        config: PlayerConfig
) -> ActiveResolution:
    """
    Resolve the active item together with why it was chosen.

    Args:
        now: Local wall-clock instant to evaluate
        schedules: Schedule table, in table order
        playlist: Playlist, in order
        config: Player config (use_schedule, current_item_id)

    Returns:
        ActiveResolution. reason is DANGLING_SCHEDULE with item None when a
        rule matched but its target is missing from the playlist.
    """
    if config.use_schedule:
        rule = find_matching_rule(now, schedules)
        if rule is not None:
            item = find_item(playlist, rule.target_item_id)
            if item is None:
                return ActiveResolution(None, ResolutionReason.DANGLING_SCHEDULE, rule)
            return ActiveResolution(item, ResolutionReason.SCHEDULED, rule)

    return playlist_fallback(playlist, config)


def resolve(
        now: datetime,
        schedules: tp.Sequence[ScheduleRule],
        playlist: tp.Sequence[ContentItem],
        config: PlayerConfig
) -> tp.Optional[ContentItem]:
    """Return the content item that should be playing at now, or None."""
    return resolve_active(now, schedules, playlist, config).item


def resolve_for_bundle(now: datetime, bundle: Bundle) -> ActiveResolution:
    return resolve_active(now, bundle.schedules, bundle.playlist, bundle.config)
