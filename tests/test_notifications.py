"""Tests for local notification scheduling."""

import pytest
from conftest import FakeNotificationCenter

from health_digest.config import NotificationSettings
from health_digest.notifications import (
    DAILY_SUMMARY_ID,
    ConsoleNotificationCenter,
    NotificationScheduler,
)
from health_digest.stores.base import AuthorizationStatus, CalendarTrigger, IntervalTrigger


class TestNotificationScheduler:
    """Tests for NotificationScheduler."""

    @pytest.mark.asyncio
    async def test_authorization_granted(self, notification_center):
        """A granted request maps to authorized."""
        scheduler = NotificationScheduler(notification_center)
        assert scheduler.status == AuthorizationStatus.NOT_DETERMINED

        assert await scheduler.request_authorization() == AuthorizationStatus.AUTHORIZED

    @pytest.mark.asyncio
    async def test_authorization_error_is_denied(self):
        """An error while asking maps to denied."""
        center = FakeNotificationCenter(authorized=RuntimeError("no center"))
        scheduler = NotificationScheduler(center)

        assert await scheduler.request_authorization() == AuthorizationStatus.DENIED
        assert scheduler.status == AuthorizationStatus.DENIED

    @pytest.mark.asyncio
    async def test_daily_reminder(self, notification_center):
        """The daily reminder repeats at 08:30 under a fixed identifier."""
        scheduler = NotificationScheduler(notification_center)

        request = await scheduler.schedule_daily_reminder()

        assert request.identifier == DAILY_SUMMARY_ID
        assert request.title == "Athena"
        assert request.body == "Remember to generate your daily summary!"
        assert request.trigger == CalendarTrigger(hour=8, minute=30, repeats=True)
        assert notification_center.removed == [[DAILY_SUMMARY_ID]]

    @pytest.mark.asyncio
    async def test_daily_reminder_replaces_pending(self, notification_center):
        """Scheduling twice leaves a single pending reminder."""
        scheduler = NotificationScheduler(
            notification_center, NotificationSettings(daily_hour=7, daily_minute=15)
        )

        await scheduler.schedule_daily_reminder()
        await scheduler.schedule_daily_reminder()

        pending = await scheduler.pending()
        assert len(pending) == 1
        assert pending[0].trigger == CalendarTrigger(hour=7, minute=15, repeats=True)

    @pytest.mark.asyncio
    async def test_summary_ready(self, notification_center):
        """Summary-ready notification fires once after five seconds."""
        scheduler = NotificationScheduler(notification_center)

        first = await scheduler.send_summary_ready()
        second = await scheduler.send_summary_ready()

        assert first.title == "Summary has been generated"
        assert first.body == "Check it out in the app!"
        assert first.trigger == IntervalTrigger(seconds=5.0, repeats=False)
        assert first.identifier != second.identifier

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self):
        """Scheduling failures never raise."""
        scheduler = NotificationScheduler(FakeNotificationCenter(fail_add=True))

        assert await scheduler.schedule_daily_reminder() is None
        assert await scheduler.send_summary_ready() is None

    @pytest.mark.asyncio
    async def test_disabled(self, notification_center):
        """Nothing is scheduled when notifications are disabled."""
        scheduler = NotificationScheduler(
            notification_center, NotificationSettings(enabled=False)
        )

        assert await scheduler.schedule_daily_reminder() is None
        assert await scheduler.send_summary_ready() is None
        assert notification_center.added == []

    @pytest.mark.asyncio
    async def test_clear(self, notification_center):
        """clear() removes every pending request."""
        scheduler = NotificationScheduler(notification_center)
        await scheduler.schedule_daily_reminder()
        await scheduler.send_summary_ready()

        await scheduler.clear()

        assert await scheduler.pending() == []


class TestConsoleNotificationCenter:
    """Tests for the in-process notification center."""

    @pytest.mark.asyncio
    async def test_keeps_pending_requests(self):
        """Added requests are pending until removed."""
        scheduler = NotificationScheduler(ConsoleNotificationCenter())

        await scheduler.schedule_daily_reminder()

        assert [r.identifier for r in await scheduler.pending()] == [DAILY_SUMMARY_ID]

    @pytest.mark.asyncio
    async def test_unauthorized_add_fails(self):
        """An unauthorized center rejects requests; the scheduler absorbs it."""
        scheduler = NotificationScheduler(ConsoleNotificationCenter(authorized=False))

        assert await scheduler.request_authorization() == AuthorizationStatus.DENIED
        assert await scheduler.schedule_daily_reminder() is None
