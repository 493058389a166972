"""
Messaging Module
"""
from .event_bus import InMemoryEventBus, KafkaEventBus, create_event_bus, publish_events

__all__ = [
    "InMemoryEventBus",
    "KafkaEventBus",
    "create_event_bus",
    "publish_events",
]
