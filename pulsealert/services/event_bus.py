"""
In-process publish/subscribe channel between producers and the pipeline.

The bus is an explicit object handed to producers and consumers; nothing
subscribes through module globals. Payloads are validated against the topic's
schema when published, so malformed readings are rejected at the producer
boundary.
"""

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import BaseModel

from pulsealert.domain.events import TOPIC_SCHEMAS

logger = structlog.get_logger(__name__)

Handler = Callable[[Any], Awaitable[None] | None]


class EventBus:
    """
    Topic-based event bus.

    Handlers run in subscription order and are awaited one at a time, so a
    single publisher sees its events processed in the order it sent them.
    A failing handler is logged and does not stop the remaining handlers.
    """

    def __init__(self, schemas: dict[str, type[BaseModel]] | None = None) -> None:
        self._schemas = dict(schemas or TOPIC_SCHEMAS)
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self.logger = logger.bind(component="event_bus")

    @property
    def topics(self) -> list[str]:
        return list(self._schemas)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register a handler. Returns a callable that removes it again."""
        self._require_topic(topic)
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers[topic].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def subscriber_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    async def publish(self, topic: str, payload: BaseModel | dict[str, Any] | None = None) -> int:
        """
        Deliver a payload to every handler of a topic.

        Returns the number of handlers that completed without raising.
        Raises ``pydantic.ValidationError`` if the payload does not match the
        topic schema.
        """
        event = self._coerce(topic, payload)
        delivered = 0

        for handler in list(self._handlers.get(topic, [])):
            try:
                outcome = handler(event)
                if inspect.isawaitable(outcome):
                    await outcome
                delivered += 1
            except Exception as e:
                self.logger.exception(
                    "event_handler_failed",
                    topic=topic,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                )

        self.logger.debug("event_published", topic=topic, delivered=delivered)
        return delivered

    def _coerce(self, topic: str, payload: BaseModel | dict[str, Any] | None) -> BaseModel:
        schema = self._require_topic(topic)
        if isinstance(payload, schema):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(by_alias=True)
        return schema.model_validate(payload or {})

    def _require_topic(self, topic: str) -> type[BaseModel]:
        try:
            return self._schemas[topic]
        except KeyError:
            raise KeyError(f"Unknown topic: {topic}") from None
