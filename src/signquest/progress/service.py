"""Learner progress: unlock cascade and video watch tracking.

Completion of a node unlocks the next one by creating its progress record
(insert-if-absent). Cascades run after the completion itself is committed and
are best-effort: if one fails, the read path re-derives eligibility and the
next completion check retries the unlock.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.config import get_settings
from signquest.content.store import ContentStore
from signquest.db.models import Category, CategoryProgress, Lesson, LessonProgress, Level, LevelProgress
from signquest.db.upsert import insert_ignore
from signquest.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from signquest.notifications.service import (
    ENTITY_CATEGORY,
    ENTITY_LESSON,
    ENTITY_LEVEL,
    PROGRESS,
    UNLOCK,
    NotificationSink,
)
from signquest.progress.schemas import (
    CategoryOverview,
    CategoryQuizResult,
    LessonCompletionResult,
    LessonOverview,
    LevelOverview,
    ProgressOverview,
)
from signquest.progress.unlock import sibling_unlocked, unlocked_flags

logger = logging.getLogger(__name__)

WATCH_WRITE_ATTEMPTS = 5


class ProgressService:
    """Unlock checks, watch tracking and completion cascades for one request."""

    def __init__(self, db: AsyncSession, redis: object) -> None:
        self.db = db
        self.content = ContentStore(db)
        self.notifications = NotificationSink(redis)
        self._pending: list[dict] = []

    # ------------------------------------------------------------------
    # Unlock predicates
    # ------------------------------------------------------------------

    async def is_level_unlocked(self, user_id: int, level_id: str) -> bool:
        level = await self.content.get_level(level_id)
        if level is None:
            return False
        if await self._level_progress(user_id, level_id) is not None:
            return True
        levels = await self.content.list_levels()
        idx = _index_of(levels, level_id)
        previous_done = False
        if idx > 0:
            previous = await self._level_progress(user_id, levels[idx - 1].id)
            previous_done = previous is not None and previous.all_categories_completed
        return sibling_unlocked(idx, False, True, previous_done)

    async def is_category_unlocked(self, user_id: int, category_id: str) -> bool:
        category = await self.content.get_category(category_id)
        if category is None:
            return False
        if await self._category_progress(user_id, category_id) is not None:
            return True
        if not await self.is_level_unlocked(user_id, category.level_id):
            return False
        categories = await self.content.list_categories(category.level_id)
        idx = _index_of(categories, category_id)
        previous_done = False
        if idx > 0:
            previous = await self._category_progress(user_id, categories[idx - 1].id)
            previous_done = previous is not None and previous.final_quiz_passed
        return sibling_unlocked(idx, False, True, previous_done)

    async def is_lesson_unlocked(self, user_id: int, lesson_id: str) -> bool:
        lesson = await self.content.get_lesson(lesson_id)
        if lesson is None:
            return False
        if await self._lesson_progress(user_id, lesson_id) is not None:
            return True
        if not await self.is_category_unlocked(user_id, lesson.category_id):
            return False
        lessons = await self.content.list_lessons(lesson.category_id)
        idx = _index_of(lessons, lesson_id)
        previous_done = False
        if idx > 0:
            previous = await self._lesson_progress(user_id, lessons[idx - 1].id)
            previous_done = previous is not None and previous.all_videos_watched
        return sibling_unlocked(idx, False, True, previous_done)

    # ------------------------------------------------------------------
    # Video watch tracking
    # ------------------------------------------------------------------

    async def mark_watched(
        self,
        user_id: int,
        lesson_id: str,
        video_id: str,
        now: datetime | None = None,
    ) -> LessonCompletionResult:
        """Record a watched video and derive lesson completion.

        Re-marking a video is a no-op for the watched set, but the completion
        check (and the next-lesson unlock) always runs again.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        lesson = await self.content.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError(f"Lesson {lesson_id} not found")
        if not await self.is_lesson_unlocked(user_id, lesson_id):
            raise InvalidStateError("Lesson is locked. Complete previous lessons first.")

        required = [v.id for v in await self.content.list_lesson_videos(lesson_id)]
        if video_id not in required:
            raise InvalidInputError(f"Video {video_id} does not belong to lesson {lesson_id}")

        await self._ensure_lesson_record(user_id, lesson, now, notify=False)
        progress, watched = await self.add_watched_video(user_id, lesson_id, video_id)

        all_watched = bool(required) and set(required).issubset(watched)
        newly_completed = False
        if all_watched:
            result = await self.db.execute(
                update(LessonProgress)
                .where(LessonProgress.id == progress.id, LessonProgress.all_videos_watched.is_(False))
                .values(all_videos_watched=True, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            newly_completed = bool(result.rowcount)
        await self.db.commit()

        next_unlocked = None
        if newly_completed:
            logger.info(
                "Lesson %s completed by user %s (%d/%d videos)",
                lesson_id, user_id, len(watched), len(required),
            )
            await self.notifications.create(
                user_id, PROGRESS, "Lesson Completed!",
                f'Congratulations! You completed "{lesson.title}"',
                ENTITY_LESSON, lesson.id,
            )
        if all_watched:
            # Also runs for already-completed lessons so a lost unlock heals itself.
            next_unlocked = await self._cascade_lesson(user_id, lesson, now)

        return LessonCompletionResult(
            lesson_id=lesson_id,
            watched_count=len([v for v in watched if v in required]),
            total_count=len(required),
            all_videos_watched=all_watched,
            newly_completed=newly_completed,
            next_lesson_unlocked=next_unlocked,
        )

    async def add_watched_video(
        self,
        user_id: int,
        lesson_id: str,
        video_id: str,
    ) -> tuple[LessonProgress, list[str]]:
        """Add ``video_id`` to the lesson's watched set. Does not commit.

        The write is guarded on the record's version, so two requests marking
        different videos of one lesson cannot drop each other's video; the
        loser re-reads and retries.
        """
        for _ in range(WATCH_WRITE_ATTEMPTS):
            progress = await self._lesson_progress(user_id, lesson_id)
            if progress is None:
                raise NotFoundError(f"No progress record for lesson {lesson_id}")
            watched = list(progress.watched_videos or [])
            if video_id in watched:
                return progress, watched
            watched.append(video_id)
            result = await self.db.execute(
                update(LessonProgress)
                .where(LessonProgress.id == progress.id, LessonProgress.version == progress.version)
                .values(watched_videos=watched, version=LessonProgress.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                return progress, watched
            logger.debug("Watched set of lesson %s changed under user %s, retrying", lesson_id, user_id)
        raise ConflictError("Watched videos changed concurrently; retry")

    # ------------------------------------------------------------------
    # Category final quiz & level completion
    # ------------------------------------------------------------------

    async def record_category_quiz(
        self,
        user_id: int,
        category_id: str,
        score: float,
        now: datetime | None = None,
    ) -> CategoryQuizResult:
        """Record a category final-quiz score; passing unlocks the next category."""
        if now is None:
            now = datetime.now(timezone.utc)

        category = await self.content.get_category(category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        if not await self.is_category_unlocked(user_id, category_id):
            raise InvalidStateError("Category is locked. Complete previous categories first.")

        await self._ensure_category_record(user_id, category, now, notify=False)
        progress = await self._category_progress(user_id, category_id)
        if progress is None:
            raise NotFoundError(f"No progress record for category {category_id}")

        if progress.final_quiz_best_score is None or score > progress.final_quiz_best_score:
            progress.final_quiz_best_score = score
            await self.db.flush()

        newly_passed = False
        if score >= get_settings().category_pass_score:
            result = await self.db.execute(
                update(CategoryProgress)
                .where(CategoryProgress.id == progress.id, CategoryProgress.final_quiz_passed.is_(False))
                .values(final_quiz_passed=True, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            newly_passed = bool(result.rowcount)
        await self.db.commit()
        await self.db.refresh(progress)

        next_unlocked = None
        level_completed = False
        if newly_passed:
            logger.info("Category %s passed by user %s with %.1f", category_id, user_id, score)
            await self.notifications.create(
                user_id, PROGRESS, "Category Completed!",
                f'Congratulations! You completed "{category.title}"',
                ENTITY_CATEGORY, category.id,
            )
        if progress.final_quiz_passed:
            next_unlocked, level_completed = await self._cascade_category(user_id, category, now)

        return CategoryQuizResult(
            category_id=category_id,
            score=score,
            best_score=progress.final_quiz_best_score or 0.0,
            passed=progress.final_quiz_passed,
            newly_passed=newly_passed,
            next_category_unlocked=next_unlocked,
            level_completed=level_completed,
        )

    async def evaluate_level_completion(
        self, user_id: int, level_id: str, now: datetime | None = None,
    ) -> bool:
        """Mark the level complete if every active category in it is passed."""
        if now is None:
            now = datetime.now(timezone.utc)
        level = await self.content.get_level(level_id)
        if level is None:
            raise NotFoundError(f"Level {level_id} not found")
        completed, _ = await self._evaluate_level(user_id, level, now)
        await self.db.commit()
        await self._flush_notifications()
        return completed

    async def initialize_progress(self, user_id: int, now: datetime | None = None) -> None:
        """Unlock the first level, its first category and that category's first lesson."""
        if now is None:
            now = datetime.now(timezone.utc)
        levels = await self.content.list_levels()
        if not levels:
            logger.warning("No active levels; nothing to initialise for user %s", user_id)
            return
        await self._ensure_level_record(user_id, levels[0], now, notify=False)
        first_category = await self.content.first_category(levels[0].id)
        if first_category is not None:
            await self._ensure_category_record(user_id, first_category, now, notify=False)
            first_lesson = await self.content.first_lesson(first_category.id)
            if first_lesson is not None:
                await self._ensure_lesson_record(user_id, first_lesson, now, notify=False)
        await self.db.commit()
        logger.info("Initialised progress for user %s", user_id)

    # ------------------------------------------------------------------
    # Overview (derived on read)
    # ------------------------------------------------------------------

    async def get_progress_overview(self, user_id: int) -> ProgressOverview:
        """Full tree with unlock flags re-derived from sibling completion."""
        level_rows = await self._rows(LevelProgress, LevelProgress.level_id, user_id)
        category_rows = await self._rows(CategoryProgress, CategoryProgress.category_id, user_id)
        lesson_rows = await self._rows(LessonProgress, LessonProgress.lesson_id, user_id)

        levels = await self.content.list_levels()
        level_done = [bool(level_rows.get(lv.id) and level_rows[lv.id].all_categories_completed) for lv in levels]
        level_open = unlocked_flags(level_done, [lv.id in level_rows for lv in levels])

        overview = []
        for level, level_unlocked, level_completed in zip(levels, level_open, level_done):
            categories = await self.content.list_categories(level.id)
            cat_done = [
                bool(category_rows.get(c.id) and category_rows[c.id].final_quiz_passed) for c in categories
            ]
            cat_open = unlocked_flags(cat_done, [c.id in category_rows for c in categories], level_unlocked)

            category_items = []
            for category, cat_unlocked, cat_completed in zip(categories, cat_open, cat_done):
                lessons = await self.content.list_lessons(category.id)
                totals = await self.content.count_lesson_videos([ls.id for ls in lessons])
                les_done = [
                    bool(lesson_rows.get(ls.id) and lesson_rows[ls.id].all_videos_watched) for ls in lessons
                ]
                les_open = unlocked_flags(les_done, [ls.id in lesson_rows for ls in lessons], cat_unlocked)
                lesson_items = [
                    LessonOverview(
                        lesson_id=lesson.id,
                        title=lesson.title,
                        unlocked=unlocked,
                        completed=done,
                        watched_count=len(lesson_rows[lesson.id].watched_videos or []) if lesson.id in lesson_rows else 0,
                        total_videos=totals.get(lesson.id, 0),
                    )
                    for lesson, unlocked, done in zip(lessons, les_open, les_done)
                ]
                row = category_rows.get(category.id)
                category_items.append(CategoryOverview(
                    category_id=category.id,
                    title=category.title,
                    unlocked=cat_unlocked,
                    completed=cat_completed,
                    final_quiz_best_score=row.final_quiz_best_score if row else None,
                    lessons=lesson_items,
                ))

            overview.append(LevelOverview(
                level_id=level.id,
                title=level.title,
                unlocked=level_unlocked,
                completed=level_completed,
                categories=category_items,
            ))
        return ProgressOverview(levels=overview)

    # ------------------------------------------------------------------
    # Cascades
    # ------------------------------------------------------------------

    async def _cascade_lesson(self, user_id: int, lesson: Lesson, now: datetime) -> str | None:
        """Unlock the lesson after ``lesson``. The last lesson waits for the category quiz."""
        try:
            next_lesson = await self.content.next_lesson(lesson)
            created = False
            if next_lesson is not None:
                created = await self._ensure_lesson_record(user_id, next_lesson, now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.warning("Failed to unlock lesson after %s for user %s", lesson.id, user_id, exc_info=True)
            return None
        await self._flush_notifications()
        return next_lesson.id if next_lesson is not None and created else None

    async def _cascade_category(self, user_id: int, category: Category, now: datetime) -> tuple[str | None, bool]:
        """Unlock the next category, or close the level and open the next level's first category."""
        unlocked = None
        level_completed = False
        try:
            next_category = await self.content.next_category(category)
            if next_category is not None:
                if await self._unlock_category_chain(user_id, next_category, now):
                    unlocked = next_category.id
            else:
                level = await self.content.get_level(category.level_id)
                if level is not None:
                    level_completed, unlocked = await self._evaluate_level(user_id, level, now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.warning("Failed to cascade after category %s for user %s", category.id, user_id, exc_info=True)
            return None, False
        await self._flush_notifications()
        return unlocked, level_completed

    async def _evaluate_level(self, user_id: int, level: Level, now: datetime) -> tuple[bool, str | None]:
        """Close the level if every active category is passed and open the next level.

        Returns (completed, id of a newly unlocked first category in the next level).
        """
        categories = await self.content.list_categories(level.id)
        if not categories:
            return False, None
        result = await self.db.execute(
            select(CategoryProgress.category_id).where(
                CategoryProgress.user_id == user_id,
                CategoryProgress.category_id.in_([c.id for c in categories]),
                CategoryProgress.final_quiz_passed.is_(True),
            )
        )
        passed = set(result.scalars().all())
        if any(c.id not in passed for c in categories):
            return False, None

        await self._ensure_level_record(user_id, level, now, notify=False)
        result = await self.db.execute(
            update(LevelProgress)
            .where(
                LevelProgress.user_id == user_id,
                LevelProgress.level_id == level.id,
                LevelProgress.all_categories_completed.is_(False),
            )
            .values(all_categories_completed=True, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Level %s completed by user %s", level.id, user_id)
            self._queue(
                user_id, PROGRESS, "Level Completed!",
                f'Congratulations! You completed "{level.title}"', ENTITY_LEVEL, level.id,
            )

        unlocked = None
        next_level = await self.content.next_level(level)
        if next_level is not None:
            await self._ensure_level_record(user_id, next_level, now)
            first = await self.content.first_category(next_level.id)
            if first is not None and await self._unlock_category_chain(user_id, first, now):
                unlocked = first.id
        return True, unlocked

    async def _unlock_category_chain(self, user_id: int, category: Category, now: datetime) -> bool:
        created = await self._ensure_category_record(user_id, category, now)
        first_lesson = await self.content.first_lesson(category.id)
        if first_lesson is not None:
            await self._ensure_lesson_record(user_id, first_lesson, now, notify=False)
        return created

    # ------------------------------------------------------------------
    # Record creation (insert-if-absent)
    # ------------------------------------------------------------------

    async def _ensure_level_record(self, user_id: int, level: Level, now: datetime, notify: bool = True) -> bool:
        created = await insert_ignore(
            self.db, LevelProgress,
            {"user_id": user_id, "level_id": level.id, "unlocked_at": now, "all_categories_completed": False},
            ["user_id", "level_id"],
        )
        if not created:
            await self.db.execute(
                update(LevelProgress)
                .where(LevelProgress.user_id == user_id, LevelProgress.level_id == level.id,
                       LevelProgress.unlocked_at.is_(None))
                .values(unlocked_at=now)
                .execution_options(synchronize_session=False)
            )
        elif notify:
            self._queue(user_id, UNLOCK, "New Level Unlocked!", f'You unlocked "{level.title}"', ENTITY_LEVEL, level.id)
        return created

    async def _ensure_category_record(
        self, user_id: int, category: Category, now: datetime, notify: bool = True,
    ) -> bool:
        created = await insert_ignore(
            self.db, CategoryProgress,
            {"user_id": user_id, "category_id": category.id, "unlocked_at": now, "final_quiz_passed": False},
            ["user_id", "category_id"],
        )
        if not created:
            await self.db.execute(
                update(CategoryProgress)
                .where(CategoryProgress.user_id == user_id, CategoryProgress.category_id == category.id,
                       CategoryProgress.unlocked_at.is_(None))
                .values(unlocked_at=now)
                .execution_options(synchronize_session=False)
            )
        elif notify:
            self._queue(
                user_id, UNLOCK, "New Category Unlocked!", f'You unlocked "{category.title}"',
                ENTITY_CATEGORY, category.id,
            )
        return created

    async def _ensure_lesson_record(self, user_id: int, lesson: Lesson, now: datetime, notify: bool = True) -> bool:
        created = await insert_ignore(
            self.db, LessonProgress,
            {
                "user_id": user_id,
                "lesson_id": lesson.id,
                "unlocked_at": now,
                "watched_videos": [],
                "all_videos_watched": False,
            },
            ["user_id", "lesson_id"],
        )
        if not created:
            await self.db.execute(
                update(LessonProgress)
                .where(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson.id,
                       LessonProgress.unlocked_at.is_(None))
                .values(unlocked_at=now)
                .execution_options(synchronize_session=False)
            )
        elif notify:
            self._queue(user_id, UNLOCK, "New Lesson Unlocked!", f'You unlocked "{lesson.title}"', ENTITY_LESSON, lesson.id)
        return created

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _queue(self, user_id: int, notification_type: str, title: str, message: str,
               entity_type: str, entity_id: str) -> None:
        """Hold a notification until the write that caused it is committed."""
        self._pending.append({
            "user_id": user_id,
            "notification_type": notification_type,
            "title": title,
            "message": message,
            "related_entity_type": entity_type,
            "related_entity_id": entity_id,
        })

    async def _flush_notifications(self) -> None:
        pending, self._pending = self._pending, []
        for item in pending:
            await self.notifications.create(**item)

    async def _level_progress(self, user_id: int, level_id: str) -> LevelProgress | None:
        result = await self.db.execute(
            select(LevelProgress)
            .where(LevelProgress.user_id == user_id, LevelProgress.level_id == level_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _category_progress(self, user_id: int, category_id: str) -> CategoryProgress | None:
        result = await self.db.execute(
            select(CategoryProgress)
            .where(CategoryProgress.user_id == user_id, CategoryProgress.category_id == category_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _lesson_progress(self, user_id: int, lesson_id: str) -> LessonProgress | None:
        result = await self.db.execute(
            select(LessonProgress)
            .where(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _rows(self, model, key_column, user_id: int) -> dict:  # type: ignore[no-untyped-def]
        result = await self.db.execute(
            select(model).where(model.user_id == user_id).execution_options(populate_existing=True)
        )
        return {getattr(row, key_column.key): row for row in result.scalars().all()}


def _index_of(siblings: list, node_id: str) -> int:
    for idx, node in enumerate(siblings):
        if node.id == node_id:
            return idx
    return -1
