"""
Enrollment Event Publisher

Delivers lifecycle events (EnrollmentCreated, EnrollmentCompleted,
EnrollmentExpired) to in-process subscribers and, when enabled, publishes
them as JSON on a Redis pub/sub channel for external consumers such as a
certificate issuer or notification sender.
"""
import inspect
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Union

from redis import asyncio as aioredis

from coursehub.timeutils import utcnow

logger = logging.getLogger(__name__)

ENROLLMENT_EVENTS_CHANNEL = os.getenv("ENROLLMENT_EVENTS_CHANNEL", "enrollment-events")
PUBLISH_EVENTS_TO_REDIS = os.getenv("PUBLISH_EVENTS_TO_REDIS", "false").lower() == "true"


@dataclass
class EnrollmentEvent:
    enrollment_id: str
    student_id: str
    course_id: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        data["event_type"] = self.event_type
        return data


@dataclass
class EnrollmentCreated(EnrollmentEvent):
    payment_type: str = "full"


@dataclass
class EnrollmentCompleted(EnrollmentEvent):
    # "explicit", "all_modules_watched" or "criteria_met"
    trigger: str = "explicit"


@dataclass
class EnrollmentExpired(EnrollmentEvent):
    expiry_date: Optional[str] = None


Handler = Callable[[EnrollmentEvent], Union[None, Awaitable[None]]]


class EventPublisher:
    """Fan-out of enrollment events to subscribers and Redis"""

    def __init__(self, redis: Optional[aioredis.Redis] = None, channel: str = ENROLLMENT_EVENTS_CHANNEL):
        self.redis = redis
        self.channel = channel
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, event_type: type, handler: Handler) -> None:
        """Register a handler (sync or async) for an event class"""
        self._handlers.setdefault(event_type.__name__, []).append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._handlers.get(event_type.__name__, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: EnrollmentEvent) -> None:
        """
        Deliver an event.

        Subscriber and Redis failures are logged and never propagate: the
        enrollment operation that raised the event has already succeeded.
        """
        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Event handler failed for {event.event_type}: {e}", exc_info=True)

        if self.redis is not None:
            try:
                await self.redis.publish(self.channel, json.dumps(event.to_dict()))
            except Exception as e:
                logger.error(f"Failed to publish {event.event_type} to Redis channel {self.channel}: {e}")

        logger.info(
            f"Event {event.event_type}: enrollment={event.enrollment_id} "
            f"student={event.student_id} course={event.course_id}"
        )


# Global publisher instance
_publisher: Optional[EventPublisher] = None


def get_event_publisher() -> EventPublisher:
    """Get or create global EventPublisher instance."""
    global _publisher
    if _publisher is None:
        _publisher = EventPublisher()
    return _publisher


def configure_event_publisher(redis: Optional[aioredis.Redis]) -> EventPublisher:
    """Attach (or detach) the Redis client used for external fan-out"""
    publisher = get_event_publisher()
    publisher.redis = redis
    return publisher
