"""Database configuration, models, and session management."""

from site_issues.database.config import engine, Base, get_db
from site_issues.database import models

__all__ = ["engine", "Base", "get_db", "models"]
