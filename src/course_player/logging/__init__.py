"""Logging utilities for Course Player."""

from course_player.logging.config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
