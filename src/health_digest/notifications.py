"""Best-effort local notification scheduling."""

import uuid
from collections.abc import Iterable

import structlog

from .config import NotificationSettings
from .stores.base import (
    AuthorizationStatus,
    CalendarTrigger,
    IntervalTrigger,
    NotificationCenter,
    NotificationRequest,
)

logger = structlog.get_logger(__name__)

DAILY_SUMMARY_ID = "daily_summary_notification"
APP_TITLE = "Athena"
DAILY_REMINDER_BODY = "Remember to generate your daily summary!"
SUMMARY_READY_TITLE = "Summary has been generated"
SUMMARY_READY_BODY = "Check it out in the app!"


class NotificationScheduler:
    """Schedules the daily reminder and the summary-ready notification.

    Notifications never affect the pipeline result: scheduling failures are
    logged and dropped.
    """

    def __init__(
        self,
        center: NotificationCenter,
        settings: NotificationSettings | None = None,
    ) -> None:
        self._center = center
        self._settings = settings or NotificationSettings()
        self._status = AuthorizationStatus.NOT_DETERMINED

    @property
    def status(self) -> AuthorizationStatus:
        return self._status

    async def request_authorization(self) -> AuthorizationStatus:
        """Ask for permission; an error while asking counts as denied."""
        try:
            granted = await self._center.request_authorization()
        except Exception as e:
            logger.warning("notification_authorization_failed", error=str(e))
            granted = False
        self._status = AuthorizationStatus.AUTHORIZED if granted else AuthorizationStatus.DENIED
        logger.info("notification_authorization", status=self._status.value)
        return self._status

    async def schedule_daily_reminder(self) -> NotificationRequest | None:
        """Schedule the repeating daily reminder, replacing any pending one."""
        if not self._settings.enabled:
            logger.debug("notifications_disabled")
            return None

        request = NotificationRequest(
            identifier=DAILY_SUMMARY_ID,
            title=APP_TITLE,
            body=DAILY_REMINDER_BODY,
            trigger=CalendarTrigger(
                hour=self._settings.daily_hour,
                minute=self._settings.daily_minute,
                repeats=True,
            ),
        )
        try:
            await self._center.remove_pending([DAILY_SUMMARY_ID])
            await self._center.add(request)
        except Exception as e:
            logger.warning("daily_reminder_schedule_failed", error=str(e))
            return None
        logger.info(
            "daily_reminder_scheduled",
            hour=self._settings.daily_hour,
            minute=self._settings.daily_minute,
        )
        return request

    async def send_summary_ready(self) -> NotificationRequest | None:
        """Post a one-shot notification shortly after a summary completes."""
        if not self._settings.enabled:
            return None

        request = NotificationRequest(
            identifier=str(uuid.uuid4()),
            title=SUMMARY_READY_TITLE,
            body=SUMMARY_READY_BODY,
            trigger=IntervalTrigger(seconds=self._settings.summary_ready_delay_seconds),
        )
        try:
            await self._center.add(request)
        except Exception as e:
            logger.warning("summary_notification_failed", error=str(e))
            return None
        return request

    async def pending(self) -> list[NotificationRequest]:
        return await self._center.pending()

    async def clear(self) -> None:
        """Remove every pending notification."""
        pending = await self._center.pending()
        await self._center.remove_pending(request.identifier for request in pending)


class ConsoleNotificationCenter:
    """In-process notification center that logs instead of displaying.

    Used off-device; pending requests are kept in memory.
    """

    def __init__(self, authorized: bool = True) -> None:
        self._authorized = authorized
        self._pending: dict[str, NotificationRequest] = {}

    async def request_authorization(self) -> bool:
        return self._authorized

    async def add(self, request: NotificationRequest) -> None:
        if not self._authorized:
            raise PermissionError("Notifications are not authorized")
        self._pending[request.identifier] = request
        logger.info(
            "notification_scheduled",
            identifier=request.identifier,
            title=request.title,
            body=request.body,
        )

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        for identifier in list(identifiers):
            self._pending.pop(identifier, None)

    async def pending(self) -> list[NotificationRequest]:
        return list(self._pending.values())
