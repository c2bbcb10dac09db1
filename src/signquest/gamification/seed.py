"""Reference data: achievements, league tiers, quest templates, streak milestones and shop items.

Seeding is idempotent (upsert on each table's natural key) and runs at app
startup as well as from the test fixtures.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from signquest.db.models import AchievementDefinition, LeagueTier, QuestTemplate, ShopItem, StreakMilestone
from signquest.db.upsert import upsert

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Streaks
    {
        "code": "STREAK_3_DAYS",
        "title": "Warming Up",
        "description": "Keep a 3-day streak",
        "tier": "bronze",
        "xp_reward": 10,
        "gem_reward": 5,
        "sort_order": 1,
    },
    {
        "code": "STREAK_7_DAYS",
        "title": "Week Streak",
        "description": "Keep a 7-day streak",
        "tier": "silver",
        "xp_reward": 25,
        "gem_reward": 10,
        "sort_order": 2,
    },
    {
        "code": "STREAK_14_DAYS",
        "title": "Fortnight Focus",
        "description": "Keep a 14-day streak",
        "tier": "gold",
        "xp_reward": 50,
        "gem_reward": 20,
        "sort_order": 3,
    },
    {
        "code": "STREAK_30_DAYS",
        "title": "Habit Formed",
        "description": "Keep a 30-day streak",
        "tier": "platinum",
        "xp_reward": 100,
        "gem_reward": 50,
        "sort_order": 4,
    },
    # Correct answers
    {
        "code": "TOTAL_CORRECT_100",
        "title": "Sharp Eye",
        "description": "Answer 100 questions correctly",
        "tier": "bronze",
        "xp_reward": 20,
        "gem_reward": 5,
        "sort_order": 10,
    },
    {
        "code": "TOTAL_CORRECT_300",
        "title": "Fluent Hands",
        "description": "Answer 300 questions correctly",
        "tier": "silver",
        "xp_reward": 50,
        "gem_reward": 15,
        "sort_order": 11,
    },
    {
        "code": "TOTAL_CORRECT_600",
        "title": "Signing Scholar",
        "description": "Answer 600 questions correctly",
        "tier": "gold",
        "xp_reward": 100,
        "gem_reward": 30,
        "sort_order": 12,
    },
    # Sessions
    {
        "code": "FIRST_QUIZ_PASS",
        "title": "First Pass",
        "description": "Pass your first quiz",
        "tier": "bronze",
        "xp_reward": 10,
        "gem_reward": 5,
        "sort_order": 20,
    },
    {
        "code": "PERFECT_SCORE",
        "title": "Flawless",
        "description": "Pass a session without a single mistake",
        "tier": "silver",
        "xp_reward": 20,
        "gem_reward": 10,
        "sort_order": 21,
    },
    # Streak milestone badges
    {
        "code": "MONTHLY_MASTER",
        "title": "Monthly Master",
        "description": "Claim the 30-day streak milestone",
        "tier": "gold",
        "xp_reward": 0,
        "gem_reward": 0,
        "sort_order": 30,
    },
    {
        "code": "QUARTER_HERO",
        "title": "Quarter Year Hero",
        "description": "Claim the 90-day streak milestone",
        "tier": "platinum",
        "xp_reward": 0,
        "gem_reward": 0,
        "sort_order": 31,
    },
    {
        "code": "HALF_YEAR_CHAMPION",
        "title": "Half Year Champion",
        "description": "Claim the 180-day streak milestone",
        "tier": "platinum",
        "xp_reward": 0,
        "gem_reward": 0,
        "sort_order": 32,
    },
    {
        "code": "YEAR_LEGEND",
        "title": "Year-Long Legend",
        "description": "Claim the 365-day streak milestone",
        "tier": "diamond",
        "xp_reward": 0,
        "gem_reward": 0,
        "sort_order": 33,
    },
]

LEAGUE_TIER_SEED_DATA: list[dict] = [
    {"tier": "bronze", "name": "Bronze League", "sort_order": 1,
     "min_xp_to_promote": 50, "max_promotions": 10, "demotion_threshold": 25},
    {"tier": "silver", "name": "Silver League", "sort_order": 2,
     "min_xp_to_promote": 100, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "gold", "name": "Gold League", "sort_order": 3,
     "min_xp_to_promote": 150, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "sapphire", "name": "Sapphire League", "sort_order": 4,
     "min_xp_to_promote": 200, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "ruby", "name": "Ruby League", "sort_order": 5,
     "min_xp_to_promote": 250, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "emerald", "name": "Emerald League", "sort_order": 6,
     "min_xp_to_promote": 300, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "amethyst", "name": "Amethyst League", "sort_order": 7,
     "min_xp_to_promote": 350, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "pearl", "name": "Pearl League", "sort_order": 8,
     "min_xp_to_promote": 400, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "obsidian", "name": "Obsidian League", "sort_order": 9,
     "min_xp_to_promote": 450, "max_promotions": 10, "demotion_threshold": 20},
    {"tier": "diamond", "name": "Diamond League", "sort_order": 10,
     "min_xp_to_promote": 500, "max_promotions": 15, "demotion_threshold": 25},
]

QUEST_TEMPLATE_SEED_DATA: list[dict] = [
    {
        "quest_type": "earn_xp",
        "title": "Earn XP",
        "description": "Earn {{target}} XP today",
        "default_target": 50,
        "default_reward": 10,
        "target_min": 40,
        "target_max": 100,
        "priority": 10,
    },
    {
        "quest_type": "maintain_streak",
        "title": "Maintain Your Streak",
        "description": "Maintain your streak for today",
        "default_target": 1,
        "default_reward": 5,
        "target_min": None,
        "target_max": None,
        "priority": 9,
    },
    {
        "quest_type": "complete_lessons",
        "title": "Complete Lessons",
        "description": "Complete {{target}} lessons today",
        "default_target": 2,
        "default_reward": 15,
        "target_min": 2,
        "target_max": 5,
        "priority": 8,
    },
    {
        "quest_type": "practice_skill",
        "title": "Practice Skills",
        "description": "Practice {{target}} skill(s) today",
        "default_target": 1,
        "default_reward": 10,
        "target_min": 1,
        "target_max": 3,
        "priority": 7,
    },
    {
        "quest_type": "complete_quiz",
        "title": "Complete Quiz",
        "description": "Complete {{target}} quiz(zes) today",
        "default_target": 1,
        "default_reward": 15,
        "target_min": 1,
        "target_max": 3,
        "priority": 7,
    },
    {
        "quest_type": "perfect_practice",
        "title": "Perfect Practice",
        "description": "Get 100% correct in a practice session",
        "default_target": 1,
        "default_reward": 20,
        "target_min": None,
        "target_max": None,
        "priority": 6,
    },
]

STREAK_MILESTONE_SEED_DATA: list[dict] = [
    {
        "day": 3,
        "title": "3-Day Streak!",
        "description": "You practiced for 3 days in a row!",
        "celebration_message": "Great start! Keep the momentum going!",
        "reward": {"gems": 5},
    },
    {
        "day": 7,
        "title": "Week Warrior!",
        "description": "A full week of practice!",
        "celebration_message": "One week down! You are building a great habit!",
        "reward": {"gems": 15, "xp_boost_multiplier": 1.5, "xp_boost_duration_minutes": 30},
    },
    {
        "day": 14,
        "title": "Two Week Champion!",
        "description": "14 days of consistent practice!",
        "celebration_message": "Two weeks of dedication! Amazing progress!",
        "reward": {"gems": 30, "streak_freeze": True},
    },
    {
        "day": 30,
        "title": "Monthly Master!",
        "description": "A full month of learning!",
        "celebration_message": "One month! You are truly committed to learning!",
        "reward": {
            "gems": 50,
            "xp_boost_multiplier": 2.0,
            "xp_boost_duration_minutes": 60,
            "special_badge": "MONTHLY_MASTER",
        },
    },
    {
        "day": 60,
        "title": "Two Month Legend!",
        "description": "60 days of dedication!",
        "celebration_message": "Two months strong! Your signing is really taking shape!",
        "reward": {"gems": 100, "streak_freeze": True},
    },
    {
        "day": 90,
        "title": "Quarter Year Hero!",
        "description": "90 days - three months of learning!",
        "celebration_message": "Three months! You are an inspiration!",
        "reward": {
            "gems": 150,
            "xp_boost_multiplier": 2.0,
            "xp_boost_duration_minutes": 120,
            "special_badge": "QUARTER_HERO",
        },
    },
    {
        "day": 180,
        "title": "Half Year Champion!",
        "description": "Six months of incredible dedication!",
        "celebration_message": "Half a year of daily practice. Incredible!",
        "reward": {"gems": 300, "streak_freeze": True, "special_badge": "HALF_YEAR_CHAMPION"},
    },
    {
        "day": 365,
        "title": "Year-Long Legend!",
        "description": "A full year of daily practice!",
        "celebration_message": "365 days! You are a true legend!",
        "reward": {
            "gems": 500,
            "xp_boost_multiplier": 3.0,
            "xp_boost_duration_minutes": 180,
            "streak_freeze": True,
            "special_badge": "YEAR_LEGEND",
        },
    },
]


SHOP_ITEM_SEED_DATA: list[dict] = [
    {
        "code": "streak_freeze",
        "item_type": "streak_freeze",
        "name": "Streak Freeze",
        "description": "Protect your streak for one day",
        "price_gems": 10,
        "effect_config": {},
    },
    {
        "code": "energy_refill",
        "item_type": "energy_refill",
        "name": "Energy Refill",
        "description": "Refill your energy to maximum",
        "price_gems": 15,
        "effect_config": {"energy_amount": 25},
    },
    {
        "code": "xp_boost_1h",
        "item_type": "xp_boost",
        "name": "XP Boost (1 hour)",
        "description": "Earn 1.5x XP for 1 hour",
        "price_gems": 20,
        "effect_config": {"xp_multiplier": 1.5, "duration_minutes": 60},
    },
    {
        "code": "heart_refill",
        "item_type": "heart_refill",
        "name": "Heart Refill",
        "description": "Refill your hearts to maximum (5 hearts)",
        "price_gems": 15,
        "effect_config": {"heart_amount": 5},
    },
    {
        "code": "weekend_amulet",
        "item_type": "weekend_amulet",
        "name": "Weekend Amulet",
        "description": "Protect your streak for the weekend (48 hours)",
        "price_gems": 30,
        "effect_config": {"duration_hours": 48},
    },
    {
        "code": "timer_boost",
        "item_type": "timer_boost",
        "name": "Timer Boost",
        "description": "Increase the time limit for quizzes",
        "price_gems": 10,
        "effect_config": {"time_multiplier": 1.5},
    },
    {
        "code": "streak_repair",
        "item_type": "streak_repair",
        "name": "Streak Repair",
        "description": "Repair your broken streak",
        "price_gems": 50,
        "effect_config": {},
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    for data in ACHIEVEMENT_SEED_DATA:
        await upsert(
            db, AchievementDefinition, {**data, "is_active": True}, ["code"],
            ["title", "description", "tier", "xp_reward", "gem_reward", "sort_order"],
        )
    return len(ACHIEVEMENT_SEED_DATA)


async def seed_league_tiers(db: AsyncSession) -> int:
    for data in LEAGUE_TIER_SEED_DATA:
        await upsert(
            db, LeagueTier, data, ["tier"],
            ["name", "sort_order", "min_xp_to_promote", "max_promotions", "demotion_threshold"],
        )
    return len(LEAGUE_TIER_SEED_DATA)


async def seed_quest_templates(db: AsyncSession) -> int:
    for data in QUEST_TEMPLATE_SEED_DATA:
        await upsert(
            db, QuestTemplate, {**data, "default_expiration_hours": 24, "is_active": True}, ["quest_type"],
            ["title", "description", "default_target", "default_reward", "target_min", "target_max", "priority"],
        )
    return len(QUEST_TEMPLATE_SEED_DATA)


async def seed_streak_milestones(db: AsyncSession) -> int:
    for data in STREAK_MILESTONE_SEED_DATA:
        await upsert(
            db, StreakMilestone, {**data, "is_active": True}, ["day"],
            ["title", "description", "celebration_message", "reward"],
        )
    return len(STREAK_MILESTONE_SEED_DATA)


async def seed_shop_items(db: AsyncSession) -> int:
    for data in SHOP_ITEM_SEED_DATA:
        await upsert(
            db, ShopItem, {**data, "stock_limit": -1, "is_active": True}, ["code"],
            ["item_type", "name", "description", "price_gems", "effect_config"],
        )
    return len(SHOP_ITEM_SEED_DATA)


async def seed_reference_data(db: AsyncSession) -> int:
    """Seed every reference table. Returns the number of rows upserted."""
    count = 0
    count += await seed_achievements(db)
    count += await seed_league_tiers(db)
    count += await seed_quest_templates(db)
    count += await seed_streak_milestones(db)
    count += await seed_shop_items(db)
    await db.commit()
    logger.info("Seeded %d reference rows", count)
    return count
