"""Deterministic weekly ranking and promotion/demotion zones.

Participants are ranked by weekly XP DESC, then by join time ASC (earlier
joiners win ties). Ranks are 1-based.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

_FAR_FUTURE = datetime(2099, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


def rank_participants(participants: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sort participants and add a 1-based ``rank``.

    Input: dicts with at least ``weekly_xp`` and optionally ``joined_at``.
    """
    def sort_key(p: dict[str, Any]) -> tuple[int, datetime]:
        return (-p.get("weekly_xp", 0), p.get("joined_at") or _FAR_FUTURE)

    ranked = sorted(participants, key=sort_key)
    for idx, p in enumerate(ranked):
        p["rank"] = idx + 1
    return ranked


def rotation_outcome(
    rank: int,
    weekly_xp: int,
    max_promotions: int,
    min_xp_to_promote: int,
    demotion_threshold: int,
    is_top_tier: bool,
    is_bottom_tier: bool,
) -> str | None:
    """'promote', 'demote' or None for one participant at the end of the week."""
    if not is_top_tier and rank <= max_promotions and weekly_xp >= min_xp_to_promote:
        return "promote"
    if not is_bottom_tier and rank > demotion_threshold:
        return "demote"
    return None
