"""
Exception classes for bob-sync.
"""


class BobSyncError(Exception):
    """Base exception for all bob-sync errors."""
    pass


class ConfigurationError(BobSyncError):
    """Raised when configuration is invalid or missing."""
    pass


class DocumentStoreError(BobSyncError):
    """Raised when a Firestore query or write fails."""
    pass


class RemindersError(BobSyncError):
    """Base exception for Reminders-related errors."""
    pass


class AuthorizationError(RemindersError):
    """Raised when EventKit authorization fails."""
    pass


class EventKitImportError(RemindersError):
    """Raised when EventKit/PyObjC dependencies are not available."""
    pass

