# cart_service/services/catalog_client.py
import threading
from typing import List

import requests
from pydantic import ValidationError
from requests import RequestException

from cart_service.domain.errors import ProductNotFound, UpstreamUnavailable
from cart_service.domain.schemas import ProductSnapshot
from cart_service.utils.retry import http_retry
from cart_service.utils.settings import CATALOG_SERVICE_URL, CATALOG_TIMEOUT_SECONDS
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogClient:
    """
    Synchroniczny odczyt jednego produktu z katalogu. Bez cache.

    Wolany z wielu watkow naraz (odczyt koszyka), wiec kazdy watek dostaje
    wlasna requests.Session; przekazana z zewnatrz sesja jest wspolna.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = CATALOG_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or CATALOG_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session

        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        resp = self.session.get(url, timeout=self.timeout)
        if resp.status_code >= 500:
            resp.raise_for_status()
        return resp

    def fetch_product(self, product_id: str) -> ProductSnapshot:
        url = f"{self.base_url}/{product_id}"
        logger.info(f"CatalogClient GET {url}")

        try:
            resp = self._get(url)
        except RequestException as e:
            logger.warning(f"Catalog unreachable for product {product_id}: {e}")
            raise UpstreamUnavailable("Product Service is unreachable or no response") from e

        if resp.status_code == 404:
            raise ProductNotFound(product_id)
        if not resp.ok:
            raise UpstreamUnavailable(
                f"Error fetching product details from service: HTTP {resp.status_code}"
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable("Product Service returned a malformed response") from e

        #katalog zwraca {success, message, data: {...}} albo sam produkt
        data = payload.get("data", payload) if isinstance(payload, dict) else None
        if not data:
            raise ProductNotFound(product_id)

        try:
            return ProductSnapshot.model_validate(data)
        except ValidationError as e:
            raise UpstreamUnavailable(
                f"Product Service returned an invalid product {product_id}"
            ) from e

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        if self._shared_session is not None:
            sessions.append(self._shared_session)
        for session in sessions:
            session.close()
