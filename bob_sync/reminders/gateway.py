"""Apple Reminders gateway using EventKit."""

import threading
import time
from typing import Any, Callable, List, Optional, Protocol, Sequence
import logging

from ..core.exceptions import (
    RemindersError,
    AuthorizationError,
    EventKitImportError
)
from ..core.models import ReminderDate, ReminderItem, RemindersList

# NSDateComponentUndefined (NSIntegerMax on 64-bit)
UNDEFINED_COMPONENT = 0x7FFFFFFFFFFFFFFF

FETCH_TIMEOUT_SECONDS = 30


class ReminderStore(Protocol):
    """What the sync engine needs from the reminders database."""

    def get_lists(self) -> List[RemindersList]:
        ...

    def get_default_list(self) -> Optional[RemindersList]:
        ...

    def get_reminder(self, identifier: str) -> Optional[ReminderItem]:
        ...

    def save_reminder(self, item: ReminderItem) -> str:
        ...

    def get_reminders(self, list_ids: Optional[Sequence[str]] = None) -> List[ReminderItem]:
        ...


def _component(value: Any) -> Optional[int]:
    if value is None:
        return None
    number = int(value)
    if number < 0 or number >= UNDEFINED_COMPONENT:
        return None
    return number


def components_to_date(components: Any) -> Optional[ReminderDate]:
    """Read NSDateComponents; None when the day is not fully specified."""
    if components is None:
        return None
    year = _component(components.year())
    month = _component(components.month())
    day = _component(components.day())
    if not (year and month and day):
        return None
    hour = _component(components.hour())
    if hour is None:
        return ReminderDate(year, month, day)
    minute = _component(components.minute()) or 0
    return ReminderDate(year, month, day, hour, minute)


def date_to_components(value: Optional[ReminderDate], factory: Callable[[], Any]) -> Any:
    """Build NSDateComponents from a ReminderDate; None clears the field."""
    if value is None:
        return None
    components = factory()
    components.setYear_(value.year)
    components.setMonth_(value.month)
    components.setDay_(value.day)
    if value.has_time:
        components.setHour_(value.hour)
        components.setMinute_(value.minute or 0)
    return components


def calendar_to_list(calendar: Any) -> RemindersList:
    source = calendar.source() if hasattr(calendar, "source") else None
    return RemindersList(
        name=str(calendar.title() or "Untitled"),
        identifier=str(calendar.calendarIdentifier()),
        source_name=str(source.title()) if source is not None else None,
        allows_modification=bool(calendar.allowsContentModifications()),
    )


def reminder_to_item(reminder: Any) -> ReminderItem:
    """Snapshot an EKReminder."""
    calendar = reminder.calendar()
    notes = reminder.notes()
    return ReminderItem(
        identifier=str(reminder.calendarItemIdentifier()),
        title=str(reminder.title() or ""),
        completed=bool(reminder.isCompleted()),
        notes=str(notes) if notes else None,
        start=components_to_date(reminder.startDateComponents()),
        due=components_to_date(reminder.dueDateComponents()),
        list_id=str(calendar.calendarIdentifier()) if calendar is not None else None,
        list_name=str(calendar.title() or "Untitled") if calendar is not None else None,
    )


def apply_item(reminder: Any, item: ReminderItem, factory: Callable[[], Any]) -> None:
    """Copy the editable fields of ``item`` onto an EKReminder."""
    reminder.setTitle_(item.title)
    reminder.setCompleted_(bool(item.completed))
    reminder.setNotes_(item.notes)
    reminder.setStartDateComponents_(date_to_components(item.start, factory))
    reminder.setDueDateComponents_(date_to_components(item.due, factory))


class RemindersGateway:
    """Gateway for Apple Reminders via EventKit."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._store = None
        self._authorized = False

    def _ensure_eventkit(self):
        """Import EventKit and Foundation through PyObjC."""
        try:
            from EventKit import (
                EKEventStore, EKReminder, EKEntityTypeReminder,
                EKAuthorizationStatusAuthorized
            )
            from Foundation import NSRunLoop, NSDate, NSDateComponents
        except ImportError as e:
            self.logger.error(f"EventKit import failed: {e}")
            raise EventKitImportError(
                "EventKit not available. Please install PyObjC framework:\n"
                "  pip install pyobjc-framework-EventKit\n"
                f"Import error details: {e}"
            ) from e

        self._EKEventStore = EKEventStore
        self._EKReminder = EKReminder
        self._EKEntityTypeReminder = EKEntityTypeReminder
        self._EKAuthorizationStatusAuthorized = EKAuthorizationStatusAuthorized
        self._NSRunLoop = NSRunLoop
        self._NSDate = NSDate
        self._NSDateComponents = NSDateComponents

    def _new_components(self):
        return self._NSDateComponents.alloc().init()

    def _wait(self, done: threading.Event, timeout_seconds: float, what: str) -> None:
        """Pump the run loop until ``done`` is set."""
        start_time = time.time()
        while not done.is_set():
            if time.time() - start_time > timeout_seconds:
                raise RemindersError(f"{what} timed out after {timeout_seconds} seconds")
            self._NSRunLoop.currentRunLoop().runUntilDate_(
                self._NSDate.dateWithTimeIntervalSinceNow_(0.1)
            )

    def _get_store(self):
        """Get or create the EventKit store, requesting access if needed."""
        if self._store:
            return self._store

        self._ensure_eventkit()

        try:
            self._store = self._EKEventStore.alloc().init()
            self.logger.debug("EventKit store created successfully")
        except Exception as e:
            self.logger.error(f"Failed to create EventKit store: {e}")
            raise RemindersError(f"Failed to initialize EventKit store: {e}") from e

        status = int(self._EKEventStore.authorizationStatusForEntityType_(
            self._EKEntityTypeReminder
        ))
        if status == int(self._EKAuthorizationStatusAuthorized):
            self.logger.debug("EventKit already authorized for reminders")
            self._authorized = True
            return self._store

        if status == 1:  # Restricted
            raise AuthorizationError(
                "Access to Reminders is restricted by system policy.\n"
                "This may be due to parental controls or device management profiles."
            )
        if status == 2:  # Denied
            raise AuthorizationError(
                "Access to Reminders was previously denied.\n"
                "Enable it under System Settings > Privacy & Security > Reminders "
                "and run bob-sync again."
            )

        self.logger.info("Requesting EventKit authorization for reminders...")
        done = threading.Event()
        result = {'granted': False, 'error': None}

        def completion(granted, error):
            result['granted'] = granted
            result['error'] = error
            done.set()

        self._store.requestAccessToEntityType_completion_(
            self._EKEntityTypeReminder, completion
        )
        try:
            self._wait(done, FETCH_TIMEOUT_SECONDS, "Authorization request")
        except RemindersError as e:
            raise AuthorizationError(
                f"{e}.\nThe system may be showing an authorization dialog."
            ) from e

        if not result['granted']:
            detail = ""
            if result['error'] is not None:
                detail = f": {result['error']}"
            raise AuthorizationError(f"User denied access to Reminders{detail}")

        self._authorized = True
        self.logger.info("EventKit authorization granted successfully")
        return self._store

    def _calendars(self, store) -> List[Any]:
        return list(store.calendarsForEntityType_(self._EKEntityTypeReminder) or [])

    def get_lists(self) -> List[RemindersList]:
        """Get all reminder lists."""
        store = self._get_store()
        try:
            return [calendar_to_list(cal) for cal in self._calendars(store)]
        except Exception as e:
            self.logger.error(f"Failed to fetch reminder lists: {e}")
            raise RemindersError(f"Failed to retrieve reminder lists: {e}") from e

    def get_default_list(self) -> Optional[RemindersList]:
        """The list new reminders go to by default, if any."""
        store = self._get_store()
        calendar = store.defaultCalendarForNewReminders()
        if calendar is None:
            return None
        return calendar_to_list(calendar)

    def _find(self, store, identifier: str):
        reminder = store.calendarItemWithIdentifier_(identifier)
        if reminder is None or not isinstance(reminder, self._EKReminder):
            return None
        return reminder

    def get_reminder(self, identifier: str) -> Optional[ReminderItem]:
        """Fetch one reminder by its calendar item identifier."""
        store = self._get_store()
        reminder = self._find(store, identifier)
        if reminder is None:
            return None
        return reminder_to_item(reminder)

    def save_reminder(self, item: ReminderItem) -> str:
        """Create or update a reminder; returns its identifier."""
        store = self._get_store()

        reminder = self._find(store, item.identifier) if item.identifier else None
        if reminder is None:
            reminder = self._EKReminder.reminderWithEventStore_(store)
            calendar = None
            if item.list_id:
                calendar = store.calendarWithIdentifier_(item.list_id)
                if calendar is None:
                    self.logger.warning(f"List {item.list_id} not found, using default list")
            reminder.setCalendar_(calendar or store.defaultCalendarForNewReminders())

        apply_item(reminder, item, self._new_components)

        success, error = store.saveReminder_commit_error_(reminder, True, None)
        if not success:
            self.logger.error(f"Failed to save reminder '{item.title}': {error}")
            raise RemindersError(f"Failed to save reminder '{item.title}': {error}")

        identifier = str(reminder.calendarItemIdentifier())
        item.identifier = identifier
        return identifier

    def get_reminders(self, list_ids: Optional[Sequence[str]] = None) -> List[ReminderItem]:
        """Get reminders from the given lists, or from every list."""
        store = self._get_store()

        calendars = self._calendars(store)
        if list_ids:
            wanted = set(list_ids)
            calendars = [c for c in calendars if str(c.calendarIdentifier()) in wanted]
        if not calendars:
            self.logger.warning(f"No calendars found for list_ids: {list_ids}")
            return []

        predicate = store.predicateForRemindersInCalendars_(calendars)
        fetched: List[Any] = []
        done = threading.Event()

        def completion(reminders):
            if reminders:
                fetched.extend(list(reminders))
            done.set()

        store.fetchRemindersMatchingPredicate_completion_(predicate, completion)
        self._wait(done, FETCH_TIMEOUT_SECONDS, "Reminder fetch")

        result = []
        for reminder in fetched:
            try:
                result.append(reminder_to_item(reminder))
            except (AttributeError, TypeError, ValueError) as e:
                self.logger.warning(f"Failed to process reminder: {e}")
        return result
