from .base import EventPayload, EventPublisher, EventPublisherFactory
from .dispatch import publish_event, publish_on_commit

__all__ = [
    "EventPayload",
    "EventPublisher",
    "EventPublisherFactory",
    "publish_event",
    "publish_on_commit",
]
