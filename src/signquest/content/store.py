"""Read-only access to the Level -> Category -> Lesson -> Video hierarchy.

All listings are pre-filtered to active nodes and ordered by ``sort_order``.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.db.models import Category, Lesson, LessonVideo, Level


class ContentStore:
    """Ordered, active-only lookups over the content tables."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # --- Single node lookups ---

    async def get_level(self, level_id: str) -> Level | None:
        result = await self.db.execute(
            select(Level).where(Level.id == level_id, Level.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_category(self, category_id: str) -> Category | None:
        result = await self.db.execute(
            select(Category).where(Category.id == category_id, Category.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        result = await self.db.execute(
            select(Lesson).where(Lesson.id == lesson_id, Lesson.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    # --- Ordered listings ---

    async def list_levels(self) -> list[Level]:
        result = await self.db.execute(
            select(Level).where(Level.is_active.is_(True)).order_by(Level.sort_order, Level.id)
        )
        return list(result.scalars().all())

    async def list_categories(self, level_id: str) -> list[Category]:
        result = await self.db.execute(
            select(Category)
            .where(Category.level_id == level_id, Category.is_active.is_(True))
            .order_by(Category.sort_order, Category.id)
        )
        return list(result.scalars().all())

    async def list_lessons(self, category_id: str) -> list[Lesson]:
        result = await self.db.execute(
            select(Lesson)
            .where(Lesson.category_id == category_id, Lesson.is_active.is_(True))
            .order_by(Lesson.sort_order, Lesson.id)
        )
        return list(result.scalars().all())

    async def list_lesson_videos(self, lesson_id: str) -> list[LessonVideo]:
        """Videos that count towards lesson completion."""
        result = await self.db.execute(
            select(LessonVideo)
            .where(
                LessonVideo.lesson_id == lesson_id,
                LessonVideo.is_active.is_(True),
                LessonVideo.is_for_lesson.is_(True),
            )
            .order_by(LessonVideo.sort_order, LessonVideo.id)
        )
        return list(result.scalars().all())

    async def count_lesson_videos(self, lesson_ids: list[str]) -> dict[str, int]:
        """Number of for-lesson videos per lesson id."""
        if not lesson_ids:
            return {}
        result = await self.db.execute(
            select(LessonVideo.lesson_id, func.count())
            .where(
                LessonVideo.lesson_id.in_(lesson_ids),
                LessonVideo.is_active.is_(True),
                LessonVideo.is_for_lesson.is_(True),
            )
            .group_by(LessonVideo.lesson_id)
        )
        return {lesson_id: count for lesson_id, count in result.all()}

    # --- Sibling navigation ---

    async def previous_level(self, level: Level) -> Level | None:
        return _previous(await self.list_levels(), level.id)

    async def next_level(self, level: Level) -> Level | None:
        return _next(await self.list_levels(), level.id)

    async def previous_category(self, category: Category) -> Category | None:
        return _previous(await self.list_categories(category.level_id), category.id)

    async def next_category(self, category: Category) -> Category | None:
        return _next(await self.list_categories(category.level_id), category.id)

    async def previous_lesson(self, lesson: Lesson) -> Lesson | None:
        return _previous(await self.list_lessons(lesson.category_id), lesson.id)

    async def next_lesson(self, lesson: Lesson) -> Lesson | None:
        return _next(await self.list_lessons(lesson.category_id), lesson.id)

    async def first_category(self, level_id: str) -> Category | None:
        categories = await self.list_categories(level_id)
        return categories[0] if categories else None

    async def first_lesson(self, category_id: str) -> Lesson | None:
        lessons = await self.list_lessons(category_id)
        return lessons[0] if lessons else None


def _previous(siblings: list, node_id: str):  # type: ignore[no-untyped-def]
    for idx, node in enumerate(siblings):
        if node.id == node_id:
            return siblings[idx - 1] if idx > 0 else None
    return None


def _next(siblings: list, node_id: str):  # type: ignore[no-untyped-def]
    for idx, node in enumerate(siblings):
        if node.id == node_id:
            return siblings[idx + 1] if idx + 1 < len(siblings) else None
    return None
