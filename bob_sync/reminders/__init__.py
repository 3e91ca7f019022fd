"""Reminders module for Apple Reminders integration."""

from .gateway import RemindersGateway, ReminderStore

__all__ = ['RemindersGateway', 'ReminderStore']
