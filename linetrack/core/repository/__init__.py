"""
Repository tracking module

Exports:
- RepositoryManager: CRUD for tracked repositories, snapshots and top files
- aggregate_daily / extension_breakdown: snapshot aggregations
"""

from .history import aggregate_daily, extension_breakdown
from .repository_manager import RepositoryManager

__all__ = [
    "RepositoryManager",
    "aggregate_daily",
    "extension_breakdown",
]
