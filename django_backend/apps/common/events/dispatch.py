import logging
from typing import Any, Dict, Optional

from django.db import transaction

from .base import EventPayload, EventPublisherFactory

logger = logging.getLogger(__name__)


def publish_event(
    topic: str,
    event_type: str,
    user_id: Optional[int],
    data: Dict[str, Any],
    metadata: Optional[Dict[str, Any]] = None
) -> bool:
    """
    Publish a domain event through the configured publisher.

    Publishing never fails the caller: errors are logged and reported
    as ``False``.
    """
    try:
        payload = EventPayload(
            event_type=event_type,
            user_id=user_id,
            data=data,
            metadata=metadata
        )
        publisher = EventPublisherFactory.get_publisher()
        success = publisher.publish(topic=topic, event=payload, key=str(user_id))
        if not success:
            logger.warning(f"Event {event_type} was not published to {topic}")
        return success

    except Exception as e:
        logger.error(f"Error publishing {event_type} to {topic}: {str(e)}")
        return False


def publish_on_commit(topic, event_type, user_id, data, metadata=None):
    """Defer publishing until the surrounding transaction commits."""
    transaction.on_commit(
        lambda: publish_event(topic, event_type, user_id, data, metadata)
    )
