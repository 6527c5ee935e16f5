import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EVENTS_CONSUMER_ENABLED", "false")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cart_service.api import create_app
from cart_service.data.database import Base, get_db, init_db
from cart_service.domain.errors import ProductNotFound, UpstreamUnavailable
from cart_service.domain.schemas import ProductSnapshot
from cart_service.services.cart_service import CartService
from cart_service.services.catalog_events import CatalogEventHandler
from cart_service.services.product_cache import ProductCache


class InMemoryCacheStore:
    """Zamiast redisa: ten sam interfejs co CacheStore, z przelacznikiem awarii."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.deleted = []
        self.failing = False

    def _check(self):
        if self.failing:
            raise RedisConnectionError("redis is down")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set_with_ttl(self, key, value, ttl):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self._check()
        self.deleted.append(key)
        return 1 if self.data.pop(key, None) is not None else 0

    def ping(self):
        return not self.failing

    def close(self):
        pass


class FakeCatalog:
    """Katalog w pamieci, liczy wywolania fetch_product."""

    def __init__(self):
        self.products = {}
        self.calls = []
        self.unreachable = False

    def put(self, product_id, name="Keyboard", price="19.99", quantity=5, image_url=None, is_active=True):
        product = ProductSnapshot(
            id=product_id,
            name=name,
            price=Decimal(price),
            quantity=quantity,
            image_url=image_url,
            is_active=is_active,
        )
        self.products[product_id] = product
        return product

    def remove(self, product_id):
        self.products.pop(product_id, None)

    def fetch_product(self, product_id):
        self.calls.append(product_id)
        if self.unreachable:
            raise UpstreamUnavailable("Product Service is unreachable or no response")
        if product_id not in self.products:
            raise ProductNotFound(product_id)
        return self.products[product_id]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cache_store():
    return InMemoryCacheStore()


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def product_cache(cache_store, catalog):
    return ProductCache(cache_store, catalog, ttl=3600, prefix="product:")


@pytest.fixture
def cart_service(db, product_cache):
    return CartService(db=db, product_cache=product_cache)


@pytest.fixture
def event_handler(product_cache, session_factory):
    return CatalogEventHandler(product_cache, session_factory=session_factory)


@pytest.fixture
def client(session_factory, product_cache):
    app = create_app()
    app.state.product_cache = product_cache

    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    return TestClient(app)
