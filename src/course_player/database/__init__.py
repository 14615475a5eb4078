"""Database models and utilities."""

from course_player.database.models import Base, LessonProgress
from course_player.database.session import get_db, init_db

__all__ = ["Base", "LessonProgress", "get_db", "init_db"]
