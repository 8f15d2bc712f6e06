import logging

from kafka.errors import KafkaError

from apps.common.kafka.config import KafkaConnection
from .base import EventPublisher, EventPayload

logger = logging.getLogger(__name__)


class KafkaEventPublisher(EventPublisher):
    """Kafka implementation of EventPublisher"""

    def __init__(self):
        self.producer = KafkaConnection.get_producer()

    def publish(self, topic: str, event: EventPayload, key: str = None) -> bool:
        """
        Publish an event to Kafka topic

        Args:
            topic: Kafka topic name
            event: Event payload
            key: Partition key (optional)

        Returns:
            bool: True if published successfully
        """
        if self.producer is None:
            self.producer = KafkaConnection.get_producer()
            if self.producer is None:
                logger.warning(f"Kafka unavailable, dropping {event.event_type} for topic {topic}")
                return False

        try:
            # Serializers configured on the producer handle JSON and key encoding.
            self.producer.send(topic=topic, value=event.to_dict(), key=key)
            self.producer.flush(timeout=10)

            logger.info(f"Event published to topic {topic}: {event.event_type}")
            return True

        except KafkaError as e:
            logger.error(f"Failed to publish event to topic {topic}: {str(e)}")
            return False

    def close(self):
        """Close Kafka producer connection"""
        KafkaConnection.close_producer()
        self.producer = None
