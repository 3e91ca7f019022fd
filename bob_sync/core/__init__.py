"""
Core module for bob-sync - contains domain models, configuration, and exceptions.
"""

from .models import (
    EntityType,
    TaskStatus,
    StoryStatus,
    Theme,
    TaskEntity,
    StoryEntity,
    GoalEntity,
    SprintEntity,
    RemindersList,
    ReminderDate,
    ReminderItem,
    SyncConfig
)

from .exceptions import (
    BobSyncError,
    ConfigurationError,
    DocumentStoreError,
    RemindersError,
    AuthorizationError,
    EventKitImportError
)

__all__ = [
    # Models
    'EntityType',
    'TaskStatus',
    'StoryStatus',
    'Theme',
    'TaskEntity',
    'StoryEntity',
    'GoalEntity',
    'SprintEntity',
    'RemindersList',
    'ReminderDate',
    'ReminderItem',
    'SyncConfig',
    # Exceptions
    'BobSyncError',
    'ConfigurationError',
    'DocumentStoreError',
    'RemindersError',
    'AuthorizationError',
    'EventKitImportError'
]
