"""Baseline: content hierarchy, learner progress and the game economy.

Creates the read-only content tables, per-learner progress tables, the stats
ledger, skill mastery, quests, leagues, milestones and achievements.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Content hierarchy ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS levels (
            id VARCHAR(64) PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            sort_order INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            id VARCHAR(64) PRIMARY KEY,
            level_id VARCHAR(64) NOT NULL REFERENCES levels(id),
            title VARCHAR(200) NOT NULL,
            sort_order INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_categories_level_order ON categories(level_id, sort_order)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS lessons (
            id VARCHAR(64) PRIMARY KEY,
            category_id VARCHAR(64) NOT NULL REFERENCES categories(id),
            title VARCHAR(200) NOT NULL,
            sort_order INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_lessons_category_order ON lessons(category_id, sort_order)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS lesson_videos (
            id VARCHAR(64) PRIMARY KEY,
            lesson_id VARCHAR(64) NOT NULL REFERENCES lessons(id),
            title VARCHAR(200) NOT NULL DEFAULT '',
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_for_lesson BOOLEAN NOT NULL DEFAULT true,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_lesson_videos_lesson ON lesson_videos(lesson_id, sort_order)")

    # --- Learner progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS level_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            level_id VARCHAR(64) NOT NULL REFERENCES levels(id),
            unlocked_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            all_categories_completed BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_level_progress_user_level UNIQUE (user_id, level_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS category_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            category_id VARCHAR(64) NOT NULL REFERENCES categories(id),
            unlocked_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            final_quiz_best_score DOUBLE PRECISION,
            final_quiz_passed BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_category_progress_user_category UNIQUE (user_id, category_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS lesson_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            lesson_id VARCHAR(64) NOT NULL REFERENCES lessons(id),
            unlocked_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            watched_videos JSONB NOT NULL DEFAULT '[]',
            all_videos_watched BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_lesson_progress_user_lesson UNIQUE (user_id, lesson_id)
        )
    """)
    for table in ("level_progress", "category_progress", "lesson_progress"):
        op.execute(f"CREATE INDEX IF NOT EXISTS ix_{table}_user_id ON {table}(user_id)")

    # --- Stats ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_stats (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL UNIQUE,
            xp INTEGER NOT NULL DEFAULT 0,
            all_time_xp INTEGER NOT NULL DEFAULT 0,
            weekly_xp INTEGER NOT NULL DEFAULT 0,
            gems INTEGER NOT NULL DEFAULT 0,
            energy INTEGER NOT NULL DEFAULT 25,
            energy_regen_at TIMESTAMPTZ,
            hearts INTEGER NOT NULL DEFAULT 5,
            last_heart_lost_at TIMESTAMPTZ,
            practice_hearts_earned INTEGER NOT NULL DEFAULT 0,
            streak_count INTEGER NOT NULL DEFAULT 0,
            best_streak INTEGER NOT NULL DEFAULT 0,
            last_active_at TIMESTAMPTZ,
            streak_lost_at TIMESTAMPTZ,
            streak_freeze_active BOOLEAN NOT NULL DEFAULT false,
            streak_freeze_expires_at TIMESTAMPTZ,
            streak_freezes_used INTEGER NOT NULL DEFAULT 0,
            weekend_amulet_active BOOLEAN NOT NULL DEFAULT false,
            xp_boost_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            xp_boost_expires_at TIMESTAMPTZ,
            current_league_tier VARCHAR(16) NOT NULL DEFAULT 'bronze',
            total_crowns INTEGER NOT NULL DEFAULT 0,
            skills_mastered INTEGER NOT NULL DEFAULT 0,
            total_correct INTEGER NOT NULL DEFAULT 0,
            total_sessions INTEGER NOT NULL DEFAULT 0,
            daily_goal_xp INTEGER NOT NULL DEFAULT 50,
            daily_goal_progress INTEGER NOT NULL DEFAULT 0,
            claimed_streak_milestones JSONB NOT NULL DEFAULT '[]',
            last_claimed_streak_milestone INTEGER,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Skill mastery ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS skill_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            skill_id VARCHAR(64) NOT NULL,
            crown_level INTEGER NOT NULL DEFAULT 0,
            current_xp INTEGER NOT NULL DEFAULT 0,
            total_xp INTEGER NOT NULL DEFAULT 0,
            xp_to_next_crown INTEGER NOT NULL DEFAULT 60,
            mistake_count INTEGER NOT NULL DEFAULT 0,
            practice_count INTEGER NOT NULL DEFAULT 0,
            last_practiced_at TIMESTAMPTZ,
            is_legendary BOOLEAN NOT NULL DEFAULT false,
            legendary_attempts INTEGER NOT NULL DEFAULT 0,
            legendary_completed_at TIMESTAMPTZ,
            first_crown_at TIMESTAMPTZ,
            last_crown_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_skill_progress_user_skill UNIQUE (user_id, skill_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_skill_progress_user_id ON skill_progress(user_id)")

    # --- Quests ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quest_templates (
            id BIGSERIAL PRIMARY KEY,
            quest_type VARCHAR(32) NOT NULL UNIQUE,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            default_target INTEGER NOT NULL,
            default_reward INTEGER NOT NULL,
            default_expiration_hours INTEGER NOT NULL DEFAULT 24,
            target_min INTEGER,
            target_max INTEGER,
            priority INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_quests (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            quest_type VARCHAR(32) NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            target INTEGER NOT NULL,
            progress INTEGER NOT NULL DEFAULT 0,
            reward INTEGER NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            expires_at TIMESTAMPTZ NOT NULL,
            completed_at TIMESTAMPTZ,
            claimed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_daily_quests_user_status ON daily_quests(user_id, status)")

    # --- Leagues ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS league_tiers (
            id BIGSERIAL PRIMARY KEY,
            tier VARCHAR(16) NOT NULL UNIQUE,
            name VARCHAR(64) NOT NULL,
            sort_order INTEGER NOT NULL,
            min_xp_to_promote INTEGER NOT NULL,
            max_promotions INTEGER NOT NULL,
            demotion_threshold INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS league_sessions (
            id BIGSERIAL PRIMARY KEY,
            tier VARCHAR(16) NOT NULL,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_archived BOOLEAN NOT NULL DEFAULT false,
            participant_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_league_sessions_tier_start UNIQUE (tier, start_date)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS league_participants (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            session_id BIGINT NOT NULL REFERENCES league_sessions(id),
            weekly_xp INTEGER NOT NULL DEFAULT 0,
            rank INTEGER,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            promoted BOOLEAN NOT NULL DEFAULT false,
            demoted BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_league_participants_user_session UNIQUE (user_id, session_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_league_participants_session_xp
        ON league_participants(session_id, weekly_xp)
    """)

    # --- Milestones & achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_milestones (
            id BIGSERIAL PRIMARY KEY,
            day INTEGER NOT NULL UNIQUE,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            celebration_message TEXT NOT NULL DEFAULT '',
            reward JSONB NOT NULL DEFAULT '{}',
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_definitions (
            id BIGSERIAL PRIMARY KEY,
            code VARCHAR(64) NOT NULL UNIQUE,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            tier VARCHAR(16) NOT NULL DEFAULT 'bronze',
            xp_reward INTEGER NOT NULL DEFAULT 0,
            gem_reward INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            achievement_id BIGINT NOT NULL REFERENCES achievement_definitions(id),
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            metadata JSONB NOT NULL DEFAULT '{}',
            CONSTRAINT uq_user_achievements_user_achievement UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id ON user_achievements(user_id)")


def downgrade() -> None:
    for table in (
        "user_achievements",
        "achievement_definitions",
        "streak_milestones",
        "league_participants",
        "league_sessions",
        "league_tiers",
        "daily_quests",
        "quest_templates",
        "skill_progress",
        "user_stats",
        "lesson_progress",
        "category_progress",
        "level_progress",
        "lesson_videos",
        "lessons",
        "categories",
        "levels",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
