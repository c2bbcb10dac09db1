"""Weekly leagues: session assignment, ranking and promotion/demotion rotation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.db.models import LeagueParticipant, LeagueSession, LeagueTier, UserStats
from signquest.db.upsert import insert_ignore
from signquest.errors import NotFoundError
from signquest.events.channel import EventChannel
from signquest.events.schemas import DomainEvent, LeagueDemoted, LeaguePromoted
from signquest.gamification.ledger import get_or_create_stats
from signquest.league.ranking import rank_participants, rotation_outcome
from signquest.league.week_utils import get_week_window, seconds_until

logger = logging.getLogger(__name__)


async def get_tiers(db: AsyncSession) -> list[LeagueTier]:
    result = await db.execute(select(LeagueTier).order_by(LeagueTier.sort_order))
    return list(result.scalars().all())


async def ensure_session(db: AsyncSession, tier: str, now: datetime) -> LeagueSession:
    """The session for ``tier`` covering this week, created on first use.

    Creation relies on the (tier, start_date) unique key, so concurrent first
    joiners converge on one row.
    """
    start, end = get_week_window(now)
    created = await insert_ignore(
        db,
        LeagueSession,
        {"tier": tier, "start_date": start, "end_date": end, "is_active": True, "participant_count": 0},
        ["tier", "start_date"],
    )
    if created:
        logger.info("Opened %s league session for week of %s", tier, start.date())
    result = await db.execute(
        select(LeagueSession).where(LeagueSession.tier == tier, LeagueSession.start_date == start)
    )
    return result.scalar_one()


async def recompute_ranks(db: AsyncSession, session_id: int) -> list[LeagueParticipant]:
    """Re-rank a session by (weekly_xp DESC, joined_at ASC). Last writer wins."""
    result = await db.execute(
        select(LeagueParticipant)
        .where(LeagueParticipant.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    participants = {p.id: p for p in result.scalars()}
    ranked = rank_participants([
        {"id": p.id, "weekly_xp": p.weekly_xp, "joined_at": p.joined_at} for p in participants.values()
    ])
    for row in ranked:
        participants[row["id"]].rank = row["rank"]
    await db.flush()
    return [participants[row["id"]] for row in ranked]


async def get_or_assign(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> LeagueParticipant:
    """The user's participant row in this week's session for their tier."""
    if now is None:
        now = datetime.now(timezone.utc)
    stats = await get_or_create_stats(db, user_id, now=now)
    session = await ensure_session(db, stats.current_league_tier, now)

    joined = await insert_ignore(
        db,
        LeagueParticipant,
        {"user_id": user_id, "session_id": session.id, "weekly_xp": 0, "joined_at": now},
        ["user_id", "session_id"],
    )
    if joined:
        count = await db.execute(
            select(func.count()).select_from(LeagueParticipant).where(LeagueParticipant.session_id == session.id)
        )
        session.participant_count = count.scalar_one()
        await recompute_ranks(db, session.id)

    result = await db.execute(
        select(LeagueParticipant)
        .where(LeagueParticipant.user_id == user_id, LeagueParticipant.session_id == session.id)
        .execution_options(populate_existing=True)
    )
    participant = result.scalar_one()
    await db.commit()
    return participant


async def update_weekly_xp(
    db: AsyncSession,
    user_id: int,
    xp: int,
    now: datetime | None = None,
    credit_all_time: bool = True,
) -> LeagueParticipant:
    """Add ``xp`` to the user's weekly total (ledger and participant) and re-rank.

    ``credit_all_time`` is False when the caller already credited all-time XP
    through the ledger.
    """
    participant = await get_or_assign(db, user_id, now)
    if xp <= 0:
        return participant

    values = {"weekly_xp": UserStats.weekly_xp + xp, "version": UserStats.version + 1}
    if credit_all_time:
        values["all_time_xp"] = UserStats.all_time_xp + xp
    await db.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(LeagueParticipant)
        .where(LeagueParticipant.id == participant.id)
        .values(weekly_xp=LeagueParticipant.weekly_xp + xp)
        .execution_options(synchronize_session=False)
    )
    await recompute_ranks(db, participant.session_id)
    await db.commit()
    return participant


async def process_rotation(
    db: AsyncSession,
    redis: object,
    now: datetime | None = None,
) -> dict:
    """Close every session whose week has ended and move participants between tiers.

    Per participant: promote one tier when ranked within ``max_promotions`` with
    at least ``min_xp_to_promote``; otherwise demote when ranked below
    ``demotion_threshold``. The top tier never promotes and the bottom tier
    never demotes. Weekly XP resets to 0 and a fresh session opens per tier.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    tiers = await get_tiers(db)
    tier_names = [t.tier for t in tiers]
    by_name = {t.tier: t for t in tiers}

    result = await db.execute(
        select(LeagueSession)
        .where(LeagueSession.is_active.is_(True), LeagueSession.end_date <= now)
        .order_by(LeagueSession.id)
    )
    expired = list(result.scalars().all())

    summary = {"sessions": 0, "promoted": 0, "demoted": 0}
    channel = EventChannel(redis)
    for session in expired:
        session.is_active = False
        session.is_archived = True

        events: list[DomainEvent] = []
        tier = by_name.get(session.tier)
        ranked = await recompute_ranks(db, session.id)
        if tier is not None:
            index = tier_names.index(tier.tier)
            for participant in ranked:
                outcome = rotation_outcome(
                    participant.rank,
                    participant.weekly_xp,
                    tier.max_promotions,
                    tier.min_xp_to_promote,
                    tier.demotion_threshold,
                    is_top_tier=index == len(tier_names) - 1,
                    is_bottom_tier=index == 0,
                )
                if outcome == "promote":
                    new_tier = tier_names[index + 1]
                    participant.promoted = True
                    events.append(LeaguePromoted(
                        user_id=participant.user_id, from_league=tier.tier, to_league=new_tier, rank=participant.rank,
                    ))
                elif outcome == "demote":
                    new_tier = tier_names[index - 1]
                    participant.demoted = True
                    events.append(LeagueDemoted(
                        user_id=participant.user_id, from_league=tier.tier, to_league=new_tier, rank=participant.rank,
                    ))
                else:
                    continue
                await db.execute(
                    update(UserStats)
                    .where(UserStats.user_id == participant.user_id)
                    .values(current_league_tier=new_tier, version=UserStats.version + 1)
                    .execution_options(synchronize_session=False)
                )
        else:
            logger.warning("League session %s has unknown tier %s", session.id, session.tier)

        user_ids = [p.user_id for p in ranked]
        if user_ids:
            await db.execute(
                update(UserStats)
                .where(UserStats.user_id.in_(user_ids))
                .values(weekly_xp=0, version=UserStats.version + 1)
                .execution_options(synchronize_session=False)
            )

        await ensure_session(db, session.tier, now)
        await db.commit()

        promoted = sum(1 for e in events if isinstance(e, LeaguePromoted))
        summary["sessions"] += 1
        summary["promoted"] += promoted
        summary["demoted"] += len(events) - promoted
        logger.info(
            "Rotated %s session %s: %d participants, %d promoted, %d demoted",
            session.tier, session.id, len(ranked), promoted, len(events) - promoted,
        )
        for event in events:
            await channel.publish(event)

    return summary


async def get_leaderboard(db: AsyncSession, session_id: int, limit: int = 50) -> list[LeagueParticipant]:
    result = await db.execute(
        select(LeagueParticipant)
        .where(LeagueParticipant.session_id == session_id)
        .order_by(LeagueParticipant.rank.asc(), LeagueParticipant.joined_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_user_league_status(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict:
    """The user's current session, standing and the tier's promotion/demotion lines."""
    if now is None:
        now = datetime.now(timezone.utc)
    participant = await get_or_assign(db, user_id, now)
    session = await db.get(LeagueSession, participant.session_id)
    if session is None:
        raise NotFoundError("League session not found")
    tier = (await db.execute(select(LeagueTier).where(LeagueTier.tier == session.tier))).scalar_one_or_none()

    return {
        "tier": session.tier,
        "tier_name": tier.name if tier else session.tier,
        "session_id": session.id,
        "start_date": session.start_date,
        "end_date": session.end_date,
        "seconds_remaining": seconds_until(session.end_date, now),
        "rank": participant.rank,
        "weekly_xp": participant.weekly_xp,
        "participant_count": session.participant_count,
        "promotion_threshold": tier.min_xp_to_promote if tier else 0,
        "max_promotions": tier.max_promotions if tier else 0,
        "demotion_threshold": tier.demotion_threshold if tier else 0,
        "leaderboard": await get_leaderboard(db, session.id),
    }


async def get_league_history(db: AsyncSession, user_id: int, limit: int = 10) -> list[dict]:
    """Past and current league weeks, newest first."""
    result = await db.execute(
        select(LeagueParticipant, LeagueSession)
        .join(LeagueSession, LeagueSession.id == LeagueParticipant.session_id)
        .where(LeagueParticipant.user_id == user_id)
        .order_by(LeagueSession.start_date.desc())
        .limit(limit)
    )
    return [
        {
            "session_id": session.id,
            "tier": session.tier,
            "start_date": session.start_date,
            "end_date": session.end_date,
            "is_archived": session.is_archived,
            "rank": participant.rank,
            "weekly_xp": participant.weekly_xp,
            "promoted": participant.promoted,
            "demoted": participant.demoted,
        }
        for participant, session in result.all()
    ]
