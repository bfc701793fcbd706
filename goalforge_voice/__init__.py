"""Realtime voice assistant bridge for GoalForge project plans."""

from .session import LiveAssistantSession

__all__ = ["LiveAssistantSession"]
