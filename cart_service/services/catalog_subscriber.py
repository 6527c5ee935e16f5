# cart_service/services/catalog_subscriber.py
import json
import threading
from typing import Any, Callable, List

from kafka import KafkaConsumer
from kafka.errors import KafkaError

from cart_service.domain.schemas import CatalogEvent
from cart_service.services.catalog_events import CatalogEventHandler
from cart_service.utils.settings import (
    KAFKA_BROKERS,
    KAFKA_CLIENT_ID,
    KAFKA_GROUP_ID,
    PRODUCT_EVENTS_TOPIC,
)
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


def decode_event(message: Any) -> CatalogEvent:
    """
    Wiadomosc z topicu: key = productId, value = {"eventType", "data", ["productId"]}.
    Rzuca ValueError/ValidationError dla wiadomosci ktorej nie da sie zrozumiec.
    """
    if message.value is None:
        raise ValueError("empty message value")

    body = json.loads(message.value)
    if not isinstance(body, dict):
        raise ValueError("message value is not a JSON object")

    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise ValueError("event data is not a JSON object")
    product_id = message.key.decode("utf-8") if message.key else None
    product_id = product_id or body.get("productId") or data.get("id")
    if not product_id:
        raise ValueError("event has no product id")

    return CatalogEvent(event_type=body.get("eventType"), product_id=product_id, data=data)


class CatalogEventSubscriber:
    """
    Konsument topicu product-events z jawnym cyklem zycia:
    start() -> watek z petla poll, stop() -> zatrzymanie + close() konsumenta.

    At-least-once: offsety commitowane recznie po przetworzeniu paczki.
    Przy braku commita (nowa grupa) zaczynamy od konca topicu, nigdy od poczatku.
    """

    def __init__(
        self,
        handler: CatalogEventHandler,
        brokers: List[str] | None = None,
        topic: str = PRODUCT_EVENTS_TOPIC,
        group_id: str = KAFKA_GROUP_ID,
        client_id: str = KAFKA_CLIENT_ID,
        consumer_factory: Callable[..., KafkaConsumer] = KafkaConsumer,
        poll_timeout_ms: int = 1000,
        error_backoff_seconds: float = 2.0,
    ):
        self.handler = handler
        self.brokers = brokers or KAFKA_BROKERS
        self.topic = topic
        self.group_id = group_id
        self.client_id = client_id
        self.consumer_factory = consumer_factory
        self.poll_timeout_ms = poll_timeout_ms
        self.error_backoff_seconds = error_backoff_seconds

        self._consumer: KafkaConsumer | None = None
        self._thread: threading.Thread | None = None
        self._stopping = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def connect(self) -> None:
        if self._consumer is not None:
            return
        self._consumer = self.consumer_factory(
            self.topic,
            bootstrap_servers=self.brokers,
            group_id=self.group_id,
            client_id=self.client_id,
            enable_auto_commit=False,
            auto_offset_reset="latest",
        )
        logger.info(f"Kafka consumer connected, subscribed to {self.topic} as {self.group_id}")

    def start(self) -> None:
        self.connect()
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self.run, name="catalog-event-subscriber", daemon=True
        )
        self._thread.start()

    def run(self) -> None:
        while not self._stopping.is_set():
            try:
                self.poll_once()
            except KafkaError as e:
                logger.error(f"Kafka poll/commit failed, retrying in {self.error_backoff_seconds}s: {e}")
                self._stopping.wait(self.error_backoff_seconds)
            except Exception:
                #petla nie moze umrzec, bez niej uniewaznianie cache staje do restartu
                logger.exception(
                    f"Unexpected error in catalog event loop, retrying in {self.error_backoff_seconds}s"
                )
                self._stopping.wait(self.error_backoff_seconds)
        logger.info("Catalog event loop stopped")

    def poll_once(self) -> int:
        """Jedna paczka: poll -> handle kazdej wiadomosci -> commit. Zwraca liczbe wiadomosci."""
        batches = self._consumer.poll(timeout_ms=self.poll_timeout_ms)
        processed = 0
        for messages in batches.values():
            for message in messages:
                self.process_message(message)
                processed += 1
        if processed:
            self._consumer.commit()
        return processed

    def process_message(self, message: Any) -> None:
        try:
            event = decode_event(message)
        except Exception as e:
            #poison message - logujemy i idziemy dalej, offset i tak zostanie zacommitowany
            logger.error(
                f"Skipping malformed event at {message.topic}[{message.partition}]@{message.offset}: {e}"
            )
            return

        try:
            self.handler.handle(event)
        except Exception:
            logger.exception(f"Unhandled error while processing event for product {event.product_id}")

    def stop(self, timeout: float = 10.0) -> None:
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Catalog event loop did not stop in time")
            self._thread = None
        if self._consumer is not None:
            try:
                self._consumer.close()
                logger.info("Kafka consumer disconnected")
            except KafkaError as e:
                logger.error(f"Error disconnecting Kafka consumer: {e}")
            self._consumer = None

    def __enter__(self) -> "CatalogEventSubscriber":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
