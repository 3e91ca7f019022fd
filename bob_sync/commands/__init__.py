"""
Command implementations for bob-sync.
"""

from .sync import SyncCommand
from .complete import CompleteCommand

__all__ = [
    'SyncCommand',
    'CompleteCommand',
]
