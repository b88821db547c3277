# freshmart/events.py
import json
import logging

import aio_pika

from freshmart import config

logger = logging.getLogger(__name__)


async def publish_event(event: str, payload: dict) -> bool:
    """
    Publish a store event (order_placed, stock_low, ...) to RabbitMQ.
    Returns False when publishing is disabled or the broker is unreachable;
    the caller's request has already been answered by then.
    """
    if not config.RABBITMQ_URL:
        return False

    message = {"event": event, **payload}
    try:
        connection = await aio_pika.connect_robust(config.RABBITMQ_URL)
        async with connection:
            channel = await connection.channel()
            await channel.declare_queue(config.EVENTS_QUEUE, durable=True)
            await channel.default_exchange.publish(
                aio_pika.Message(
                    body=json.dumps(message, default=str).encode(),
                    content_type="application/json",
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                ),
                routing_key=config.EVENTS_QUEUE,
            )
    except Exception as e:
        logger.error("Error publishing %s event: %s", event, e)
        return False

    logger.debug("Published %s event to %s", event, config.EVENTS_QUEUE)
    return True


def schedule_low_stock_events(background_tasks, products):
    """Queue a stock_low event for every product under the low-stock threshold."""
    for product in products:
        if product.stock < config.LOW_STOCK_THRESHOLD:
            background_tasks.add_task(
                publish_event,
                "stock_low",
                {"product_id": product.id, "name": product.name, "stock": product.stock,
                 "store_id": product.store_id},
            )
