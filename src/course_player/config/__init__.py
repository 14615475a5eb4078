"""Configuration for Course Player."""

from course_player.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
