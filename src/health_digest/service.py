"""End-to-end summary pipeline: aggregate, render, send."""

import asyncio
from collections.abc import Callable

import structlog

from .aggregator import Aggregator
from .chat import ChatClient, ChatError
from .models import Snapshot, SummaryType
from .notifications import NotificationScheduler
from .prompt import PromptBuilder, bucket_counts
from .types import ChatMessage

logger = structlog.get_logger(__name__)

ResultCallback = Callable[[str], None]
ErrorCallback = Callable[[ChatError], None]


def _retrieve_exception(task: "asyncio.Task[str | None]") -> None:
    """Mark a finished task's error as seen; wait() can still re-raise it."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None and not isinstance(error, ChatError):
        logger.error("summary_task_failed", error=str(error), error_type=type(error).__name__)


class SummaryHandle:
    """A running summary request that can be cancelled.

    After :meth:`cancel`, a response that still arrives is discarded and no
    callback fires.
    """

    def __init__(self) -> None:
        self._alive = True
        self._task: asyncio.Task[str | None] | None = None

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def _attach(self, task: "asyncio.Task[str | None]") -> None:
        self._task = task
        task.add_done_callback(_retrieve_exception)

    def cancel(self) -> None:
        self._alive = False
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> str | None:
        """Summary text, or None if the request was cancelled.

        Raises:
            ChatError: If the chat call failed.
        """
        if self._task is None:
            return None
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._alive:
                raise
            return None


class SummaryService:
    """Wires the aggregator, prompt builder and chat client together."""

    def __init__(
        self,
        aggregator: Aggregator,
        builder: PromptBuilder,
        chat: ChatClient,
        notifier: NotificationScheduler | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._builder = builder
        self._chat = chat
        self._notifier = notifier

    async def snapshot(self, refresh: bool = True) -> Snapshot:
        """Return a Snapshot, running a fetch cycle unless a cached one is allowed."""
        current = self._aggregator.snapshot
        if refresh or current is None:
            current = await self._aggregator.latest()
        return current

    async def messages(
        self,
        summary_type: SummaryType = SummaryType.DAILY,
        refresh: bool = True,
    ) -> list[ChatMessage]:
        snapshot = await self.snapshot(refresh=refresh)
        logger.debug(
            "summary_snapshot",
            events=bucket_counts(snapshot.events),
            reminders=bucket_counts(snapshot.reminders),
        )
        return self._builder.build_messages(snapshot, summary_type)

    async def generate(
        self,
        summary_type: SummaryType = SummaryType.DAILY,
        refresh: bool = True,
    ) -> str:
        """Build the prompt from a fresh Snapshot and return the summary text.

        Raises:
            ChatError: If the chat call failed.
        """
        messages = await self.messages(summary_type, refresh=refresh)
        logger.info("summary_requested", summary_type=summary_type.value)
        summary = await self._chat.send(messages)
        if self._notifier is not None:
            await self._notifier.send_summary_ready()
        return summary

    async def summarize_text(self, text: str, paragraphs: int = 3) -> str:
        """Summarize free text in ``paragraphs`` paragraphs (2..5)."""
        messages = self._builder.build_text_summary_messages(text, paragraphs)
        logger.info("text_summary_requested", paragraphs=paragraphs, text_length=len(text))
        return await self._chat.send(messages)

    def start(
        self,
        summary_type: SummaryType = SummaryType.DAILY,
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> SummaryHandle:
        """Start :meth:`generate` in the background and return its handle.

        Callbacks fire only while the handle is alive.
        """
        handle = SummaryHandle()

        async def run() -> str | None:
            try:
                summary = await self.generate(summary_type)
            except ChatError as e:
                logger.warning("summary_failed", summary_type=summary_type.value, error=str(e))
                if handle.alive and on_error is not None:
                    on_error(e)
                raise
            if not handle.alive:
                logger.info("summary_discarded", summary_type=summary_type.value)
                return None
            if on_result is not None:
                on_result(summary)
            return summary

        handle._attach(asyncio.create_task(run()))
        return handle
