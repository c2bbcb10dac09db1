"""Signquest progression and gamification core."""
