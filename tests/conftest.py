#!/usr/bin/env python3
"""
Global pytest configuration and fixtures.

This module provides:
- Platform-specific test skipping (macOS/EventKit tests)
- In-memory document and reminder stores seeded with a small BOB plan
- Common test fixtures and utilities
"""

import os
import platform
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tests.fakes import FakeDocumentStore, FakeRemindersGateway, owned, utc  # noqa: E402

OWNER = "owner-1"

HAS_EVENTKIT = False

try:
    if platform.system() == "Darwin":
        import objc  # noqa: F401
        import EventKit  # noqa: F401
        HAS_EVENTKIT = True
except ImportError:
    pass


def pytest_configure(config):
    """Configure pytest environment."""
    config.addinivalue_line("markers", "eventkit: test requires EventKit framework")
    config.addinivalue_line("markers", "macos: test requires macOS")


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to skip platform-specific tests.

    Automatically skip macOS/EventKit tests on non-Darwin platforms.
    """
    skip_macos = pytest.mark.skip(reason="macOS/EventKit tests require Darwin platform")
    skip_eventkit = pytest.mark.skip(reason="Test requires EventKit framework")

    for item in items:
        if "macos" in item.keywords and platform.system() != "Darwin":
            item.add_marker(skip_macos)

        if "eventkit" in item.keywords and not HAS_EVENTKIT:
            item.add_marker(skip_eventkit)


@pytest.fixture
def owner_uid() -> str:
    return OWNER


@pytest.fixture
def plan_documents():
    """
    One goal, one sprint, a story with a task, and a childless story.

    "Write report" is due 2025-06-04; its story has no due date and its
    sprint ends 2025-06-11.
    """
    return {
        "tasks": {
            "t1": owned(OWNER, {
                "title": "Write report",
                "status": 0,
                "storyId": "s1",
                "dueDate": utc(2025, 6, 4),
            }),
        },
        "stories": {
            "s1": owned(OWNER, {
                "title": "Q3 Launch",
                "goalId": "g1",
                "sprintId": "sp1",
                "status": 1,
            }),
            "s2": owned(OWNER, {
                "title": "Plan offsite",
                "ref": "ST-7",
                "goalId": "g1",
                "status": 0,
                "endDate": utc(2025, 6, 20),
            }),
        },
        "goals": {
            "g1": owned(OWNER, {"title": "Ship v2", "theme": 2}),
        },
        "sprints": {
            "sp1": owned(OWNER, {
                "name": "Sprint 12",
                "startDate": utc(2025, 5, 28),
                "endDate": utc(2025, 6, 11),
            }),
        },
    }


@pytest.fixture
def document_store(plan_documents) -> FakeDocumentStore:
    return FakeDocumentStore(plan_documents)


@pytest.fixture
def reminder_store() -> FakeRemindersGateway:
    return FakeRemindersGateway()
