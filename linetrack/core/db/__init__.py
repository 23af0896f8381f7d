"""
Database module for linetrack.

Exports:
- DatabaseManager: Database connection and session management
- get_database_manager: Factory function for DatabaseManager
- wait_for_db: Database availability checker with retry logic
- Models: TrackedRepository, CommitLineSnapshot, FailedOperation, TopFile, UserPreference
- Base: SQLAlchemy declarative base
"""

from .db import DatabaseManager, get_database_manager, wait_for_db
from .models import (
    Base,
    TrackedRepository,
    CommitLineSnapshot,
    FailedOperation,
    TopFile,
    UserPreference,
)

__all__ = [
    # Database management
    "DatabaseManager",
    "get_database_manager",
    "wait_for_db",

    # ORM models
    "Base",
    "TrackedRepository",
    "CommitLineSnapshot",
    "FailedOperation",
    "TopFile",
    "UserPreference",
]
