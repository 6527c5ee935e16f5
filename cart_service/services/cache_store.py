# cart_service/services/cache_store.py
import redis

from cart_service.utils.retry import redis_retry
from cart_service.utils.settings import REDIS_URL, REDIS_SOCKET_TIMEOUT_SECONDS
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


class CacheStore:
    """
    -wspoldzielony KV z TTL (redis)
    -kazda operacja moze rzucic RedisError, decyzja co z tym zrobic jest po stronie wywolujacego
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
        )

    #odczyt i zapis bez retry - przy awarii redisa lepiej od razu isc do katalogu
    def get(self, key: str) -> str | None:
        return self.redis.get(key)

    def set_with_ttl(self, key: str, value: str, ttl: int) -> None:
        #SET product:<id> "<json>" EX 3600
        self.redis.set(name=key, value=value, ex=ttl)

    @redis_retry()
    def delete(self, key: str) -> int:
        logger.info(f"Delete cache key {key}")
        return self.redis.delete(key)

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def close(self) -> None:
        self.redis.close()
