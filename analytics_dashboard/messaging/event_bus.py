"""
Domain Event Bus

Two transports behind the EventBus interface:
- InMemoryEventBus: in-process fan-out, used in development and tests
- KafkaEventBus: aiokafka producer, one topic per event type
  (`<prefix>.<EventType>`), JSON value, aggregate id as message key

Publishing after commit is best-effort: `publish_events` logs and counts
failures and never raises them to the command that produced the events.
Subscriber handler errors are logged on the consuming side.
"""

import asyncio
import json
from collections import defaultdict
from typing import Dict, List, Optional

import structlog
from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError
from prometheus_client import Counter

from analytics_dashboard.config import get_settings
from analytics_dashboard.config.settings import KafkaSettings
from analytics_dashboard.domain.errors import EventBusError
from analytics_dashboard.domain.events import DomainEvent
from analytics_dashboard.domain.interfaces import EventBus, EventHandler

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

EVENTS_PUBLISHED = Counter(
    "analytics_events_published_total",
    "Domain events handed to the event bus",
    ["event_type", "status"],
)

EVENT_HANDLER_FAILURES = Counter(
    "analytics_event_handler_failures_total",
    "Subscriber handlers that raised while processing an event",
    ["event_type"],
)

WILDCARD = "*"


async def _dispatch(handlers: List[EventHandler], event: DomainEvent) -> None:
    for handler in handlers:
        try:
            await handler(event)
        except Exception as e:
            EVENT_HANDLER_FAILURES.labels(event_type=event.type).inc()
            logger.error(
                "Event handler failed",
                event_type=event.type,
                event_id=event.id,
                handler=getattr(handler, "__name__", repr(handler)),
                error=str(e),
            )


async def publish_events(bus: EventBus, events: List[DomainEvent]) -> int:
    """
    Publish events in order, logging and counting failures.

    Returns the number of events that were accepted by the bus.
    """
    published = 0
    for event in events:
        try:
            await bus.publish(event)
        except Exception as e:
            EVENTS_PUBLISHED.labels(event_type=event.type, status="failed").inc()
            logger.error(
                "Failed to publish domain event",
                event_type=event.type,
                aggregate_id=event.aggregate_id,
                version=event.version,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue
        EVENTS_PUBLISHED.labels(event_type=event.type, status="success").inc()
        published += 1
    return published


class InMemoryEventBus(EventBus):
    """
    In-process event bus.

    Keeps every published event in `published` for inspection and calls the
    handlers subscribed to the event type (or to "*") synchronously.
    """

    def __init__(self):
        self.published: List[DomainEvent] = []
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    async def publish(self, event: DomainEvent) -> None:
        self.published.append(event)
        handlers = self._handlers.get(event.type, []) + self._handlers.get(WILDCARD, [])
        await _dispatch(handlers, event)

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("Subscribed handler", event_type=event_type)

    def events_of_type(self, event_type: str) -> List[DomainEvent]:
        return [e for e in self.published if e.type == event_type]

    def clear(self) -> None:
        self.published.clear()


class KafkaEventBus(EventBus):
    """
    Kafka-backed event bus.

    Example:
        bus = KafkaEventBus()
        await bus.start()
        await bus.subscribe("WidgetAdded", on_widget_added)
        await bus.publish(event)
        await bus.stop()
    """

    def __init__(self, config: Optional[KafkaSettings] = None):
        self.config = config or get_settings().kafka
        self._producer: Optional[AIOKafkaProducer] = None
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._consumer_task: Optional[asyncio.Task] = None
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    async def _create_producer(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(
            bootstrap_servers=self.config.bootstrap_servers,
            request_timeout_ms=self.config.request_timeout_ms,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
        )

    async def _create_consumer(self, topics: List[str]) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            *topics,
            bootstrap_servers=self.config.bootstrap_servers,
            group_id=self.config.consumer_group,
            auto_offset_reset=self.config.auto_offset_reset,
            enable_auto_commit=self.config.enable_auto_commit,
            value_deserializer=lambda m: json.loads(m.decode("utf-8")),
            key_deserializer=lambda k: k.decode("utf-8") if k else None,
        )

    async def start(self) -> None:
        """Start the producer"""
        if self._producer is not None:
            return
        producer = await self._create_producer()
        try:
            await producer.start()
        except KafkaError as e:
            raise EventBusError("Failed to start Kafka producer") from e
        self._producer = producer
        logger.info(
            "Kafka event bus started",
            bootstrap_servers=self.config.bootstrap_servers,
            topic_prefix=self.config.topic_prefix,
        )

    async def publish(self, event: DomainEvent) -> None:
        if self._producer is None:
            raise EventBusError("Kafka event bus is not started")
        topic = self.config.topic_for(event.type)
        try:
            await self._producer.send_and_wait(topic, value=event.to_dict(), key=event.aggregate_id)
        except KafkaError as e:
            raise EventBusError(f"Failed to publish {event.type} to {topic}") from e

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Register a handler. Subscriptions made after `start_consuming` take
        effect on the next consumer restart.
        """
        self._handlers[event_type].append(handler)

    async def start_consuming(self) -> None:
        """Consume all subscribed topics in a background task"""
        if self._consumer_task is not None or not self._handlers:
            return
        topics = [self.config.topic_for(event_type) for event_type in self._handlers]
        consumer = await self._create_consumer(topics)
        try:
            await consumer.start()
        except KafkaError as e:
            raise EventBusError("Failed to start Kafka consumer") from e
        self._consumer = consumer
        self._consumer_task = asyncio.create_task(self._consume())
        logger.info("Kafka event consumer started", topics=topics)

    async def _consume(self) -> None:
        try:
            async for message in self._consumer:
                try:
                    event = DomainEvent.from_dict(message.value)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Skipping malformed event", topic=message.topic, error=str(e))
                    continue
                await _dispatch(self._handlers.get(event.type, []), event)
        except KafkaError as e:
            logger.error("Kafka consumer error", error=str(e))

    async def stop(self) -> None:
        """Stop producer and consumer gracefully"""
        if self._consumer_task is not None:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            self._consumer_task = None
        if self._consumer is not None:
            await self._consumer.stop()
            self._consumer = None
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None
        logger.info("Kafka event bus stopped")


def create_event_bus(backend: Optional[str] = None) -> EventBus:
    """Build the event bus selected by `EventBusSettings.backend`"""
    backend = backend or get_settings().event_bus.backend
    if backend == "kafka":
        return KafkaEventBus()
    return InMemoryEventBus()
