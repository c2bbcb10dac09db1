"""Lazy time-based recovery of capped resources (energy, hearts).

Regeneration is a pure function of ``(now - anchor) / interval``. The anchor is
advanced to ``now - remainder`` rather than ``now`` so partial progress towards
the next unit survives between reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class Regen:
    """Result of a regeneration step."""

    gained: int
    anchor: datetime | None


def compute_regen(
    current: int,
    cap: int,
    anchor: datetime | None,
    interval: timedelta,
    now: datetime,
) -> Regen:
    """Units recovered since ``anchor`` and the anchor to persist afterwards.

    A full resource has no anchor. A depleted resource without an anchor starts
    its clock at ``now``.
    """
    if current >= cap:
        return Regen(gained=0, anchor=None)
    if anchor is None:
        return Regen(gained=0, anchor=now)

    elapsed = now - anchor
    if elapsed < interval:
        return Regen(gained=0, anchor=anchor)

    units = elapsed // interval
    gained = min(units, cap - current)
    if current + gained >= cap:
        return Regen(gained=gained, anchor=None)
    return Regen(gained=gained, anchor=now - (elapsed % interval))


def time_until_next(
    current: int,
    cap: int,
    anchor: datetime | None,
    interval: timedelta,
    now: datetime,
) -> timedelta | None:
    """Time left until the next unit, or None when full or the clock has not started."""
    if current >= cap or anchor is None:
        return None
    elapsed = now - anchor
    if elapsed >= interval:
        return timedelta(0)
    return interval - elapsed
