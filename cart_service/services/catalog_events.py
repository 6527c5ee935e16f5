# cart_service/services/catalog_events.py
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from cart_service.data.database import SessionLocal
from cart_service.domain.schemas import CatalogEvent, CatalogEventType
from cart_service.repos.cart_repo import CartRepo
from cart_service.services.product_cache import ProductCache
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)

#pole w evencie katalogu -> kolumna snapshotu w cart_items
_SNAPSHOT_FIELDS = {
    "name": "product_name",
    "price": "product_price",
    "imageUrl": "product_image_url",
}


def snapshot_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Tylko pola obecne w payloadzie; ilosc w koszyku nigdy nie jest ruszana."""
    values = {}
    for field, column in _SNAPSHOT_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if column == "product_price" and value is not None:
            try:
                value = Decimal(str(value))
            except InvalidOperation:
                logger.warning(f"Ignoring malformed price in catalog event: {value!r}")
                continue
        values[column] = value
    return values


class CatalogEventHandler:
    """
    Reaguje na eventy katalogu:
    -PRODUCT_CREATED: nic (nie ma czego uniewaznic)
    -PRODUCT_UPDATED: uniewaznij cache + odswiez snapshot w pozycjach koszykow
    -PRODUCT_DELETED: uniewaznij cache + usun pozycje ze wszystkich koszykow

    Oba kroki sa niezalezne. Bledy sa logowane i polykane, handler nigdy nie
    rzuca - inaczej padlby caly pipeline uniewazniania.
    """

    def __init__(
        self,
        product_cache: ProductCache,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.product_cache = product_cache
        self.session_factory = session_factory

    def handle(self, event: CatalogEvent) -> None:
        logger.info(f"Received {event.event_type.value} for product {event.product_id}")

        if event.event_type == CatalogEventType.PRODUCT_CREATED:
            self.on_product_created(event)
        elif event.event_type == CatalogEventType.PRODUCT_UPDATED:
            self.on_product_updated(event)
        elif event.event_type == CatalogEventType.PRODUCT_DELETED:
            self.on_product_deleted(event)

    def on_product_created(self, event: CatalogEvent) -> None:
        logger.debug(f"Product {event.product_id} created, nothing to invalidate")

    def on_product_updated(self, event: CatalogEvent) -> None:
        self._invalidate(event.product_id)
        self._refresh_snapshots(event.product_id, event.data)

    def on_product_deleted(self, event: CatalogEvent) -> None:
        self._invalidate(event.product_id)
        self._remove_items(event.product_id)

    def _invalidate(self, product_id: str) -> None:
        try:
            self.product_cache.invalidate(product_id)
        except Exception:
            logger.exception(f"Error invalidating cache for product {product_id}")

    def _refresh_snapshots(self, product_id: str, data: Dict[str, Any]) -> None:
        values = snapshot_values(data)
        if not values:
            logger.info(f"Update event for {product_id} carries no snapshot fields")
            return

        try:
            with self.session_factory() as db:
                repo = CartRepo(db)
                updated = repo.update_product_snapshot(product_id, values)
                repo.commit()
        except Exception:
            logger.exception(f"Error updating cart items snapshot for product {product_id}")
            return

        if updated:
            logger.info(f"Updated snapshot of {updated} cart item(s) for product {product_id}")
        else:
            logger.info(f"No cart items to update for product {product_id}")

    def _remove_items(self, product_id: str) -> None:
        try:
            with self.session_factory() as db:
                repo = CartRepo(db)
                removed = repo.delete_items_for_product(product_id)
                repo.commit()
        except Exception:
            logger.exception(f"Error removing cart items for deleted product {product_id}")
            return

        if removed:
            logger.info(f"Removed {removed} cart item(s) for deleted product {product_id}")
        else:
            logger.info(f"No cart items to remove for deleted product {product_id}")
