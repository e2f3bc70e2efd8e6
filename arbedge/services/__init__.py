"""
Services module - Stateful collaborators

Contains:
- Quote and opportunity persistence
- Refresh coordination (single-flight cache)
- Scheduling
"""

from arbedge.services.persistence import (
    PersistenceService,
    SQLitePersistence,
    create_persistence_service,
)
from arbedge.services.refresh import CacheState, RefreshCoordinator
from arbedge.services.scheduler import SchedulerService, create_scheduler_service

__all__ = [
    "PersistenceService",
    "SQLitePersistence",
    "create_persistence_service",
    "CacheState",
    "RefreshCoordinator",
    "SchedulerService",
    "create_scheduler_service",
]
