"""Firestore module for reading and writing BOB planner data."""

from .decoder import decode_task, decode_story, decode_goal, decode_sprint, decode_many
from .store import DocumentStore, FirestoreStore

__all__ = [
    'decode_task',
    'decode_story',
    'decode_goal',
    'decode_sprint',
    'decode_many',
    'DocumentStore',
    'FirestoreStore',
]
