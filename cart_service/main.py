# cart_service/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from kafka.errors import KafkaError

from cart_service.api import create_app
from cart_service.data.database import init_db
from cart_service.services.cache_store import CacheStore
from cart_service.services.catalog_client import CatalogClient
from cart_service.services.catalog_events import CatalogEventHandler
from cart_service.services.catalog_subscriber import CatalogEventSubscriber
from cart_service.services.product_cache import ProductCache
from cart_service.utils.settings import EVENTS_CONSUMER_ENABLED
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing database...")
    init_db()
    logger.info("Database tables ready")

    cache_store = CacheStore()
    catalog_client = CatalogClient()
    product_cache = ProductCache(cache_store, catalog_client)
    app.state.product_cache = product_cache

    subscriber = None
    if EVENTS_CONSUMER_ENABLED:
        subscriber = CatalogEventSubscriber(CatalogEventHandler(product_cache))
        try:
            subscriber.start()
        except KafkaError as e:
            # bez eventow serwis dalej dziala, swiezosc trzyma wtedy tylko TTL cache
            logger.error(f"Could not start catalog event subscriber: {e}")
            subscriber = None

    try:
        yield
    finally:
        # SIGTERM/SIGINT -> uvicorn -> shutdown lifespanu
        if subscriber is not None:
            subscriber.stop()
        catalog_client.close()
        cache_store.close()
        logger.info("Cart Service shut down")


app = create_app(lifespan=lifespan)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=3003)
