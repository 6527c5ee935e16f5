# cart_service/services/product_cache.py
from pydantic import ValidationError
from redis.exceptions import RedisError

from cart_service.domain.schemas import ProductSnapshot
from cart_service.services.cache_store import CacheStore
from cart_service.services.catalog_client import CatalogClient
from cart_service.utils.settings import PRODUCT_CACHE_PREFIX, PRODUCT_CACHE_TTL_SECONDS
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


class ProductCache:
    """
    Read-through cache prawdy o produkcie.

    Hit w redisie jest zwracany bez sprawdzania katalogu; swiezosc trzymaja
    eventy z katalogu (invalidate) i TTL. Bledy redisa nigdy nie wychodza
    na zewnatrz - traktujemy je jak miss.
    """

    def __init__(
        self,
        cache_store: CacheStore,
        catalog_client: CatalogClient,
        ttl: int = PRODUCT_CACHE_TTL_SECONDS,
        prefix: str = PRODUCT_CACHE_PREFIX,
    ):
        self.cache_store = cache_store
        self.catalog_client = catalog_client
        self.ttl = ttl
        self.prefix = prefix

    def key(self, product_id: str) -> str:
        return f"{self.prefix}{product_id}"

    def resolve_product(self, product_id: str) -> ProductSnapshot:
        """Rzuca ProductNotFound albo UpstreamUnavailable (tylko gdy nic nie ma w cache)."""
        cached = self._read(product_id)
        if cached is not None:
            logger.debug(f"Product {product_id} served from cache")
            return cached

        logger.info(f"Cache miss for product {product_id}, asking catalog")
        product = self.catalog_client.fetch_product(product_id)
        self._write(product_id, product)
        return product

    def invalidate(self, product_id: str) -> None:
        self.cache_store.delete(self.key(product_id))
        logger.info(f"Invalidated cache for product {product_id}")

    def _read(self, product_id: str) -> ProductSnapshot | None:
        key = self.key(product_id)
        try:
            raw = self.cache_store.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return ProductSnapshot.from_cache(raw)
        except ValidationError as e:
            logger.warning(f"Corrupt cache entry {key}, ignoring: {e}")
            return None

    def _write(self, product_id: str, product: ProductSnapshot) -> None:
        key = self.key(product_id)
        try:
            self.cache_store.set_with_ttl(key, product.to_cache(), self.ttl)
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
