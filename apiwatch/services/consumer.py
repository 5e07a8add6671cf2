"""
RabbitMQ consumer for delivery work.

Consumes alert ids published by `services.queue` and delivers the alert's
pending deliveries. Only started when delivery_mode is "queue".
"""

import asyncio
import json
import logging

import aio_pika
from aio_pika.abc import AbstractIncomingMessage

from apiwatch.core.config import settings
from apiwatch.services.dispatcher import DeliveryDispatcher

logger = logging.getLogger(__name__)


async def process_message(message: AbstractIncomingMessage, dispatcher: DeliveryDispatcher) -> None:
    """
    Process a single delivery message.

    1. Parse the alert id
    2. Deliver the alert's pending deliveries
    3. Acknowledge the message

    Failures are logged and the message is still acknowledged: the pending
    rows stay in the database and the retry sweep delivers them later.
    """
    async with message.process():
        try:
            payload = json.loads(message.body.decode())
            alert_id = int(payload["alert_id"])
        except (ValueError, KeyError, TypeError):
            logger.error("Dropping malformed delivery message: %r", message.body[:200])
            return

        logger.debug("📥 Delivering alert %s", alert_id)
        try:
            deliveries = await dispatcher.dispatch(alert_id)
        except Exception:
            logger.exception("Delivery of alert %s failed; left for the retry sweep", alert_id)
            return

        logger.info("Alert %s: %d deliveries processed", alert_id, len(deliveries))


async def start_consumer(dispatcher: DeliveryDispatcher) -> None:
    """
    Start consuming delivery messages from RabbitMQ.

    This runs as a background task and processes messages indefinitely.
    """
    logger.info("📡 Connecting consumer to RabbitMQ at %s...", settings.rabbitmq_url)

    connection = await aio_pika.connect_robust(settings.rabbitmq_url)
    channel = await connection.channel()

    # Deliveries are I/O bound; allow a few in flight
    await channel.set_qos(prefetch_count=max(1, settings.sweep_concurrency))

    queue = await channel.declare_queue(
        settings.delivery_queue,
        durable=True,
    )

    logger.info("✅ Consuming from queue '%s'", settings.delivery_queue)

    await queue.consume(lambda message: process_message(message, dispatcher))

    # Keep running
    try:
        await asyncio.Future()
    finally:
        await connection.close()
