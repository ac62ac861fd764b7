"""
Reminder scheduling service.

Arms one timer per (event ID, lead time) for upcoming calendar events and,
when a timer expires, posts an in-app notification plus an optional
platform notification.

The scheduler is confined to a single asyncio event loop. The timer map and
the notification store are only mutated from that loop's callbacks, so they
need no locking. Do not call it from other threads.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from typing import Callable, Coroutine, Optional, Sequence

from household_calendar.config import Settings, get_settings
from household_calendar.integrations.base import (
    CalendarEvent,
    CalendarRepository,
    PlatformNotifier,
)
from household_calendar.services.notifications import NotificationStore
from household_calendar.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

TimerKey = tuple[str, int]


class ReminderScheduler:
    """
    Schedules reminders for calendar events.

    Per (event, lead time) the states are Unscheduled -> Armed -> Fired, or
    Armed -> Cancelled. Re-scheduling the same pair cancels the old timer
    before arming the new one, so at most one timer per pair is ever live.
    A Fired pair stays fired until its event starts, is moved, or has its
    reminders cancelled, so periodic rescans never repeat a reminder.
    """

    def __init__(
        self,
        store: NotificationStore,
        repository: CalendarRepository,
        user_context: Callable[[], Optional[str]],
        platform_notifier: Optional[PlatformNotifier] = None,
        *,
        settings: Optional[Settings] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the scheduler.

        Args:
            store: Receives in-app notifications when reminders fire
            repository: Calendar storage to read upcoming events from
            user_context: Returns the active user ID (None: nothing to schedule)
            platform_notifier: Optional out-of-app delivery channel
            settings: Interval, window and limit configuration
            loop: Event loop that runs timers (default: the running loop)
            clock: Source of the current time
        """
        settings = settings or get_settings()
        self._store = store
        self._repository = repository
        self._user_context = user_context
        self._platform_notifier = platform_notifier
        self._loop = loop
        self._clock = clock

        self._check_interval = settings.reminder_check_interval_seconds
        self._upcoming_window = timedelta(hours=settings.upcoming_window_hours)
        self._upcoming_limit = settings.upcoming_event_limit
        self._schedule_all_limit = settings.schedule_all_event_limit

        self._timers: dict[TimerKey, asyncio.TimerHandle] = {}
        # Start time each fired pair was computed from
        self._fired: dict[TimerKey, datetime] = {}
        self._background_tasks: set[asyncio.Task] = set()
        self._periodic_task: Optional[asyncio.Task] = None

    # =========================================================================
    # Event loop helpers
    # =========================================================================

    def _event_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        loop = self._event_loop()
        if loop is None:
            raise RuntimeError("ReminderScheduler needs an event loop to arm timers")
        return loop

    def _spawn(self, coro: Coroutine) -> None:
        """Run a coroutine in the background, keeping a reference until done."""
        loop = self._event_loop()
        if loop is None:
            coro.close()
            logger.warning("No event loop available; skipping platform notification")
            return

        task = loop.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # =========================================================================
    # Timers
    # =========================================================================

    def schedule_notification(self, event: CalendarEvent, timing_minutes: int) -> bool:
        """
        Schedule a reminder `timing_minutes` before an event starts.

        Any timer already armed for the same event and lead time is cancelled
        first. A reminder whose fire time is not in the future fires now,
        unless it already fired for the event's current start time.

        Args:
            event: Event to remind about (must have an ID)
            timing_minutes: Lead time before event.start_date

        Returns:
            True if a timer was armed, False if the reminder fired immediately
            or had already fired

        Raises:
            ValueError: If the event has no ID
        """
        if not event.id:
            raise ValueError("Cannot schedule a reminder for an event without an ID")

        key = (event.id, timing_minutes)
        start = as_utc(event.start_date)
        now = as_utc(self._clock())
        self._prune_fired(now)

        if self._fired.get(key) == start:
            logger.debug(
                f"Reminder for event {event.id} ({timing_minutes} min before) already fired"
            )
            return False

        self._cancel_key(key)
        fire_at = start - timedelta(minutes=timing_minutes)

        if fire_at <= now:
            logger.debug(f"Reminder for event {event.id} is due; firing immediately")
            self._fired[key] = start
            self._show_event_notification(event)
            return False

        delay = (fire_at - now).total_seconds()
        self._timers[key] = self._require_loop().call_later(delay, self._fire, key, event)

        logger.debug(
            f"Armed reminder for event {event.id} "
            f"({timing_minutes} min before, fires in {delay:.0f}s)"
        )
        return True

    def _fire(self, key: TimerKey, event: CalendarEvent) -> None:
        # Drop the handle before notifying so a concurrent cancel is a no-op.
        self._timers.pop(key, None)
        self._fired[key] = as_utc(event.start_date)
        logger.info(f"Reminder fired for event {event.id} ({key[1]} min before)")
        self._show_event_notification(event)

    def _cancel_key(self, key: TimerKey) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def _prune_fired(self, now: datetime) -> None:
        # Started events are no longer returned by upcoming scans
        self._fired = {key: start for key, start in self._fired.items() if start >= now}

    def cancel_notification(self, event_id: str, timing_minutes: Optional[int] = None) -> int:
        """
        Cancel pending reminders for an event.

        Reminders that already fired are forgotten too, so scheduling them
        again re-arms them.

        Args:
            event_id: Event whose reminders to cancel
            timing_minutes: Only cancel this lead time (default: all of them)

        Returns:
            Number of timers cancelled (0 if none were pending)
        """
        if timing_minutes is not None:
            self._fired.pop((event_id, timing_minutes), None)
            return int(self._cancel_key((event_id, timing_minutes)))

        for key in [key for key in self._fired if key[0] == event_id]:
            del self._fired[key]

        keys = [key for key in self._timers if key[0] == event_id]
        for key in keys:
            self._cancel_key(key)

        if keys:
            logger.debug(f"Cancelled {len(keys)} reminders for event {event_id}")
        return len(keys)

    def cancel_all_notifications_for_event(self, event_id: str) -> None:
        """Cancel pending reminders and remove notifications already shown for an event."""
        self.cancel_notification(event_id)
        self._store.clear_for_event(event_id)

    def pending_timers(self, event_id: Optional[str] = None) -> list[TimerKey]:
        """List armed (event ID, lead time) pairs, optionally for one event."""
        return [key for key in self._timers if event_id is None or key[0] == event_id]

    def has_pending(self, event_id: str, timing_minutes: Optional[int] = None) -> bool:
        """Check whether an event has an armed reminder."""
        if timing_minutes is not None:
            return (event_id, timing_minutes) in self._timers
        return bool(self.pending_timers(event_id))

    # =========================================================================
    # Delivery
    # =========================================================================

    def _show_event_notification(self, event: CalendarEvent) -> None:
        if event.all_day:
            message = f"{event.title} is starting today"
        else:
            message = f"{event.title} is starting at {event.start_date:%H:%M}"

        self._store.show(message, "info", event_id=event.id, auto_hide=False)

        notifier = self._platform_notifier
        if notifier is not None and notifier.has_permission():
            self._spawn(self._notify_platform(notifier, event, message))

    async def _notify_platform(
        self,
        notifier: PlatformNotifier,
        event: CalendarEvent,
        message: str,
    ) -> None:
        try:
            delivered = await notifier.show(
                event.title,
                message,
                tag=f"event-{event.id}",
                require_interaction=True,
            )
            if not delivered:
                logger.warning(f"Platform notification for event {event.id} was not delivered")
        except Exception as e:
            logger.error(
                f"Failed to show platform notification for event {event.id}: {e}",
                exc_info=True,
            )

    # =========================================================================
    # Upcoming events
    # =========================================================================

    async def check_upcoming_events(self) -> list[CalendarEvent]:
        """
        Get pending events starting within the upcoming window.

        Returns:
            Events for the active user, or an empty list when nobody is signed
            in or the calendar could not be read
        """
        user_id = self._user_context()
        if not user_id:
            return []

        now = as_utc(self._clock())
        horizon = now + self._upcoming_window

        try:
            events = await self._repository.get_upcoming_events(
                user_id, now, self._upcoming_limit
            )
        except Exception as e:
            logger.error(f"Error checking upcoming events: {e}", exc_info=True)
            return []

        return [
            event
            for event in events
            if as_utc(event.start_date) <= horizon and event.status == "pending"
        ]

    def _schedule_events(self, events: Sequence[CalendarEvent]) -> int:
        armed = 0
        for event in events:
            for setting in event.notifications:
                if setting.enabled:
                    self.schedule_notification(event, setting.timing)
                    armed += 1
        return armed

    async def schedule_upcoming_notifications(self) -> int:
        """
        Schedule every enabled reminder of events in the upcoming window.

        Returns:
            Number of reminders scheduled
        """
        events = await self.check_upcoming_events()
        return self._schedule_events(events)

    async def schedule_all_event_notifications(self) -> int:
        """
        Schedule reminders for all upcoming events, not just the next window.

        Returns:
            Number of reminders scheduled (0 on storage errors)
        """
        user_id = self._user_context()
        if not user_id:
            return 0

        try:
            events = await self._repository.get_upcoming_events(
                user_id, as_utc(self._clock()), self._schedule_all_limit
            )
        except Exception as e:
            logger.error(f"Error scheduling all event notifications: {e}", exc_info=True)
            return 0

        return self._schedule_events(events)

    # =========================================================================
    # Background loop
    # =========================================================================

    @property
    def is_running(self) -> bool:
        """Check if the periodic rescan is active."""
        return self._periodic_task is not None and not self._periodic_task.done()

    async def _run_pass(self) -> None:
        try:
            scheduled = await self.schedule_upcoming_notifications()
            logger.debug(f"Scheduler pass armed {scheduled} reminders")
        except Exception as e:
            logger.error(f"Error in notification scheduler: {e}", exc_info=True)

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self._check_interval)
            await self._run_pass()

    async def start_notification_scheduler(self) -> None:
        """
        Run one scheduling pass now, then rescan every check interval.

        Calling this while the scheduler is running does nothing.
        """
        if self.is_running:
            logger.warning("Notification scheduler already running")
            return

        await self._run_pass()
        self._periodic_task = self._require_loop().create_task(self._run_periodic())
        logger.info(
            f"Notification scheduler started (every {self._check_interval}s)"
        )

    async def stop(self) -> None:
        """Stop the periodic rescan and cancel every armed timer."""
        task, self._periodic_task = self._periodic_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        for key in list(self._timers):
            self._cancel_key(key)

        for background in list(self._background_tasks):
            background.cancel()

        logger.info("Notification scheduler stopped")
