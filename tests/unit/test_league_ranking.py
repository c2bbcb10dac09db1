"""League ranking and rotation zone tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from signquest.league.ranking import rank_participants, rotation_outcome
from signquest.league.week_utils import get_monday, get_week_window, seconds_until

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class TestRankParticipants:
    """Test ordering by weekly XP then join time."""

    def test_orders_by_xp_desc(self):
        ranked = rank_participants([
            {"id": 1, "weekly_xp": 10, "joined_at": T0},
            {"id": 2, "weekly_xp": 30, "joined_at": T0},
            {"id": 3, "weekly_xp": 20, "joined_at": T0},
        ])
        assert [p["id"] for p in ranked] == [2, 3, 1]
        assert [p["rank"] for p in ranked] == [1, 2, 3]

    def test_ties_go_to_earlier_joiner(self):
        ranked = rank_participants([
            {"id": 1, "weekly_xp": 50, "joined_at": T0 + timedelta(hours=2)},
            {"id": 2, "weekly_xp": 50, "joined_at": T0},
        ])
        assert [p["id"] for p in ranked] == [2, 1]

    def test_missing_join_time_sorts_last_among_ties(self):
        ranked = rank_participants([
            {"id": 1, "weekly_xp": 50, "joined_at": None},
            {"id": 2, "weekly_xp": 50, "joined_at": T0},
        ])
        assert [p["id"] for p in ranked] == [2, 1]

    def test_empty(self):
        assert rank_participants([]) == []


class TestRotationOutcome:
    """Test promotion and demotion zones."""

    def _outcome(self, rank: int, xp: int, top: bool = False, bottom: bool = False) -> str | None:
        return rotation_outcome(rank, xp, 10, 100, 20, is_top_tier=top, is_bottom_tier=bottom)

    def test_top_rank_with_enough_xp_promotes(self):
        assert self._outcome(1, 150) == "promote"

    def test_top_rank_without_enough_xp_stays(self):
        assert self._outcome(1, 99) is None

    def test_outside_promotion_zone(self):
        assert self._outcome(11, 500) is None

    def test_below_threshold_demotes(self):
        assert self._outcome(21, 0) == "demote"

    def test_top_tier_never_promotes(self):
        assert self._outcome(1, 1000, top=True) is None

    def test_bottom_tier_never_demotes(self):
        assert self._outcome(30, 0, bottom=True) is None


class TestWeekUtils:
    """Test Monday-anchored weekly windows."""

    def test_monday_of_wednesday(self):
        assert get_monday(datetime(2026, 3, 4, 23, 0, tzinfo=timezone.utc)).isoformat() == "2026-03-02"

    def test_window_is_monday_to_monday(self):
        start, end = get_week_window(datetime(2026, 3, 8, 23, 59, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 2, tzinfo=timezone.utc)
        assert end == datetime(2026, 3, 9, tzinfo=timezone.utc)

    def test_monday_midnight_starts_new_week(self):
        start, _ = get_week_window(datetime(2026, 3, 9, 0, 0, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 9, tzinfo=timezone.utc)

    def test_seconds_until_never_negative(self):
        assert seconds_until(T0, T0 + timedelta(minutes=1)) == 0
        assert seconds_until(T0 + timedelta(minutes=1), T0) == 60
