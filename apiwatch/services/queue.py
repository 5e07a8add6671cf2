"""
RabbitMQ publisher for delivery work.

With `delivery_mode = "queue"` a freshly created alert is not delivered on
the evaluation path: its id is published to a durable queue and the
consumer (`services.consumer`) delivers it. The pending AlertDelivery rows
already exist at that point, so a lost message only delays delivery until
the retry sweep picks the rows up.
"""

import json
import logging
from typing import Optional

import aio_pika
from aio_pika import DeliveryMode, Message
from aio_pika.abc import AbstractChannel, AbstractConnection

from apiwatch.core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# GLOBAL CONNECTION
# =============================================================================
# A single robust connection is reused for every publish.

_connection: Optional[AbstractConnection] = None
_channel: Optional[AbstractChannel] = None


def is_connected() -> bool:
    return _channel is not None


async def connect() -> None:
    """
    Establish connection to RabbitMQ.

    Called at application startup when delivery_mode is "queue".
    """
    global _connection, _channel

    logger.info("📡 Connecting to RabbitMQ at %s...", settings.rabbitmq_url)

    _connection = await aio_pika.connect_robust(settings.rabbitmq_url)
    _channel = await _connection.channel()

    # Declare the queue (creates it if it doesn't exist)
    await _channel.declare_queue(
        settings.delivery_queue,
        durable=True,  # Queue survives broker restart
    )

    logger.info("✅ Connected to RabbitMQ, queue '%s' ready", settings.delivery_queue)


async def disconnect() -> None:
    """
    Close RabbitMQ connection.

    Called at application shutdown.
    """
    global _connection, _channel

    if _channel:
        await _channel.close()
        _channel = None

    if _connection:
        await _connection.close()
        _connection = None

    logger.info("👋 Disconnected from RabbitMQ")


async def publish_alert(alert_id: int) -> None:
    """
    Publish an alert id for delivery by the consumer.

    Raises:
        RuntimeError: If connect() has not been called
    """
    if _channel is None:
        raise RuntimeError("RabbitMQ not connected")

    message = Message(
        body=json.dumps({"alert_id": alert_id}).encode(),
        delivery_mode=DeliveryMode.PERSISTENT,  # Survives broker restart
        content_type="application/json",
    )

    # Default exchange with the queue name as routing key
    await _channel.default_exchange.publish(
        message,
        routing_key=settings.delivery_queue,
    )
