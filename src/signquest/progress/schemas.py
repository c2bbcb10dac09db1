"""Pydantic models for progress endpoints and service results."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LessonCompletionResult(BaseModel):
    lesson_id: str
    watched_count: int
    total_count: int
    all_videos_watched: bool
    newly_completed: bool = False
    next_lesson_unlocked: str | None = None


class CategoryQuizResult(BaseModel):
    category_id: str
    score: float
    best_score: float
    passed: bool
    newly_passed: bool = False
    next_category_unlocked: str | None = None
    level_completed: bool = False


class UnlockStatus(BaseModel):
    node_type: str
    node_id: str
    unlocked: bool


# --- Overview ---


class LessonOverview(BaseModel):
    lesson_id: str
    title: str
    unlocked: bool
    completed: bool
    watched_count: int = 0
    total_videos: int = 0


class CategoryOverview(BaseModel):
    category_id: str
    title: str
    unlocked: bool
    completed: bool
    final_quiz_best_score: float | None = None
    lessons: list[LessonOverview] = []


class LevelOverview(BaseModel):
    level_id: str
    title: str
    unlocked: bool
    completed: bool
    categories: list[CategoryOverview] = []


class ProgressOverview(BaseModel):
    levels: list[LevelOverview]


# --- Requests ---


class MarkWatchedRequest(BaseModel):
    video_id: str = Field(min_length=1, max_length=64)


class CategoryQuizRequest(BaseModel):
    score: float = Field(ge=0, le=100)
