"""
Test suite for bob-sync.

Stores are replaced by the in-memory fakes in tests/fakes.py, so the suite
runs without Firestore credentials or EventKit.
"""
