# cart_service/services/cart_service.py
from concurrent.futures import ThreadPoolExecutor, wait
from decimal import Decimal
from typing import Dict, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cart_service.data.models.cart_item import CartItemModel
from cart_service.domain.availability import ProductLookup, annotate_item
from cart_service.domain.errors import (
    CartError,
    CartNotFound,
    InsufficientStock,
    ItemNotFound,
    ProductInactive,
    UpstreamUnavailable,
    ValidationFailed,
)
from cart_service.domain.schemas import CartItemOut, CartOut, ProductSnapshot
from cart_service.repos.cart_repo import CartRepo
from cart_service.services.product_cache import ProductCache
from cart_service.utils.settings import CART_READ_TIMEOUT_SECONDS, CART_RESOLVE_WORKERS
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)

#drugi insert tej samej pary (cart, product) w tym samym momencie -> ponawiamy jako update
_UPSERT_ATTEMPTS = 2


class CartService:
    """
    Use case'y koszyka (CQRS light):
    query (get_cart) laczy zapisane pozycje z live danymi katalogu, nic nie zapisuje,
    commands (add, update, remove, clear) walidują ilosc wzgledem live stanu przed commitem.
    """

    def __init__(
        self,
        db: Session,
        product_cache: ProductCache,
        resolve_workers: int = CART_RESOLVE_WORKERS,
        read_timeout: float = CART_READ_TIMEOUT_SECONDS,
    ):
        self.repo = CartRepo(db)
        self.product_cache = product_cache
        self.resolve_workers = resolve_workers
        self.read_timeout = read_timeout

    # =====================================================
    # QUERY
    # =====================================================
    def get_cart(self, user_id: str) -> CartOut:
        cart = self.repo.get_or_create_cart(user_id)
        items = self.repo.get_cart_items(cart.id)

        lookups = self._resolve_all(item.product_id for item in items)
        views = [annotate_item(item, lookups[item.product_id]) for item in items]

        total = sum(
            (v.product_price * v.quantity for v in views if v.product_price is not None),
            Decimal("0.00"),
        )

        return CartOut(
            id=cart.id,
            user_id=cart.user_id,
            items=views,
            total_items=sum(v.quantity for v in views),
            total=total,
            updated_at=cart.updated_at,
        )

    def _lookup(self, product_id: str) -> ProductLookup:
        try:
            return ProductLookup.found(self.product_cache.resolve_product(product_id))
        except CartError as e:
            logger.warning(f"Could not fetch live details for product {product_id}: {e.message}")
            return ProductLookup.failed(product_id, e)
        except Exception as e:
            #jedna zla pozycja nie moze wywalic calego odczytu koszyka
            logger.exception(f"Unexpected error resolving product {product_id}")
            return ProductLookup.failed(product_id, UpstreamUnavailable(str(e)))

    def _resolve_all(self, product_ids: Iterable[str]) -> Dict[str, ProductLookup]:
        """Rownolegle, niezalezne odczyty; to co nie zdazy przed deadlinem jest porzucane."""
        unique_ids = list(dict.fromkeys(product_ids))
        if not unique_ids:
            return {}

        executor = ThreadPoolExecutor(
            max_workers=min(self.resolve_workers, len(unique_ids)),
            thread_name_prefix="cart-resolve",
        )
        try:
            futures = {pid: executor.submit(self._lookup, pid) for pid in unique_ids}
            wait(futures.values(), timeout=self.read_timeout)
        finally:
            #niedokonczone odczyty anulujemy, nie czekamy na nie
            executor.shutdown(wait=False, cancel_futures=True)

        lookups = {}
        for pid, future in futures.items():
            if future.done() and not future.cancelled():
                lookups[pid] = future.result()
            else:
                logger.warning(f"Product {pid} lookup did not finish within {self.read_timeout}s")
                lookups[pid] = ProductLookup.failed(
                    pid, UpstreamUnavailable("Product lookup timed out")
                )
        return lookups

    # =====================================================
    # COMMANDS
    # =====================================================
    def add_item(self, user_id: str, product_id: str, quantity: int) -> CartItemOut:
        """
        Dodanie produktu (addytywnie: istniejaca ilosc + nowa).
        Bledy katalogu, ProductInactive i InsufficientStock ida do wywolujacego bez zmian w bazie.
        """
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")

        cart = self.repo.get_or_create_cart(user_id)
        cart_id = cart.id

        product = self.product_cache.resolve_product(product_id)
        if not product.is_active:
            raise ProductInactive(product_id)

        for attempt in range(1, _UPSERT_ATTEMPTS + 1):
            existing = self.repo.get_cart_item(cart_id, product_id)
            target = quantity + (existing.quantity if existing else 0)

            if target > product.quantity:
                raise InsufficientStock(product_id, requested=target, available=product.quantity)

            item = existing or CartItemModel(cart_id=cart_id, product_id=product_id)
            item.quantity = target
            self._apply_snapshot(item, product)

            try:
                self.repo.add_cart_item(item)
                self.repo.commit()
            except IntegrityError:
                self.repo.rollback()
                if attempt == _UPSERT_ATTEMPTS:
                    raise
                logger.info(
                    f"Concurrent insert of product {product_id} into cart {cart_id}, retrying as update"
                )
                continue

            logger.info(f"Product {product_id} in cart {cart_id}, quantity now {target}")
            return annotate_item(item, ProductLookup.found(product))

    def update_quantity(self, user_id: str, product_id: str, new_quantity: int) -> CartItemOut | None:
        """Ustawia ilosc dokladnie (nie addytywnie). 0 == usuniecie, wtedy zwraca None."""
        if new_quantity < 0:
            raise ValidationFailed("Quantity cannot be negative")

        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise CartNotFound(user_id)

        item = self.repo.get_cart_item(cart.id, product_id)
        if not item:
            raise ItemNotFound(product_id)

        if new_quantity == 0:
            self.repo.delete_cart_item(cart.id, product_id)
            self.repo.commit()
            logger.info(f"Product {product_id} removed from cart {cart.id} (quantity set to 0)")
            return None

        product = self.product_cache.resolve_product(product_id)
        if not product.is_active:
            raise ProductInactive(product_id)
        if new_quantity > product.quantity:
            raise InsufficientStock(product_id, requested=new_quantity, available=product.quantity)

        item.quantity = new_quantity
        self._apply_snapshot(item, product)
        self.repo.commit()

        logger.info(f"Product {product_id} in cart {cart.id} set to quantity {new_quantity}")
        return annotate_item(item, ProductLookup.found(product))

    def remove_item(self, user_id: str, product_id: str) -> None:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise CartNotFound(user_id)

        removed = self.repo.delete_cart_item(cart.id, product_id)
        if not removed:
            self.repo.rollback()
            raise ItemNotFound(product_id)

        self.repo.commit()
        logger.info(f"Product {product_id} removed from cart {cart.id}")

    def clear_cart(self, user_id: str) -> int:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            return 0

        removed = self.repo.clear_cart_items(cart.id)
        self.repo.commit()
        logger.info(f"Cleared {removed} item(s) from cart {cart.id}")
        return removed

    @staticmethod
    def _apply_snapshot(item: CartItemModel, product: ProductSnapshot) -> None:
        item.product_name = product.name
        item.product_price = product.price
        item.product_image_url = product.image_url
