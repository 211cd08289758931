"""
Relationship event publishing.

Mutations call EventNotifier.publish() after they commit.  publish() only
enqueues; a dispatcher task started in the app lifespan hands queued events
to every subscribed sink.  A failing sink is logged and skipped; it can
never undo or fail the mutation that produced the event.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from shared.events.schemas import RelationshipEvent

logger = logging.getLogger(__name__)

EventSink = Callable[[RelationshipEvent], Awaitable[None]]


class EventNotifier:
    def __init__(self, sinks: Iterable[EventSink] = (), *, max_pending: int = 10_000) -> None:
        self._sinks: list[EventSink] = list(sinks)
        self._queue: asyncio.Queue[RelationshipEvent] = asyncio.Queue(maxsize=max_pending)
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def publish(self, event: RelationshipEvent) -> bool:
        """Queue ``event`` without waiting.  Returns False if it had to be dropped."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Event queue full (%d pending); dropping %s %s→%s",
                self._queue.maxsize,
                event.event_type,
                event.actor_id,
                event.target_id,
            )
            return False
        return True

    async def _deliver(self, event: RelationshipEvent) -> None:
        for sink in self._sinks:
            try:
                await sink(event)
            except Exception:
                logger.exception("Event sink %r failed for %s", sink, event.event_type)

    async def drain(self) -> int:
        """Deliver everything currently queued; returns the number of events handled."""
        delivered = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()
            delivered += 1
        return delivered

    async def run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="relationship-event-dispatcher")

    async def stop(self) -> None:
        """Stop the dispatcher, then flush whatever is still queued."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.drain()


# ── Sinks ──────────────────────────────────────────────────────────────────────

async def log_event(event: RelationshipEvent) -> None:
    logger.info("relationship event %s", event.model_dump_json())


class SnsEventSink:
    """Publishes each event as JSON to an SNS topic (fan-out to SQS consumers)."""

    def __init__(self, settings: Settings, session: aioboto3.Session | None = None) -> None:
        self._topic_arn = settings.events_topic_arn
        self._session = session or aioboto3.Session(
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            region_name=settings.aws_region,
        )

    async def __call__(self, event: RelationshipEvent) -> None:
        try:
            async with self._session.client("sns") as sns:
                await sns.publish(
                    TopicArn=self._topic_arn,
                    Message=event.model_dump_json(),
                    MessageAttributes={
                        "event_type": {"DataType": "String", "StringValue": event.event_type},
                    },
                )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("SNS publish failed for %s: %s", event.event_type, exc)


def build_notifier(settings: Settings) -> EventNotifier:
    sinks: list[EventSink] = [log_event]
    if settings.events_topic_arn:
        sinks.append(SnsEventSink(settings))
    return EventNotifier(sinks, max_pending=settings.events_queue_size)
