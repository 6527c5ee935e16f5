# cart_service/repos/cart_repo.py
from typing import Any, Dict, List

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cart_service.data.models.cart import CartModel
from cart_service.data.models.cart_item import CartItemModel
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    # =====================================================
    # Cart
    # =====================================================
    def get_cart_by_user(self, user_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def create_cart(self, user_id: str) -> CartModel:
        cart = CartModel(user_id=user_id)
        self.db.add(cart)
        try:
            self.db.commit()
        except IntegrityError:
            #rownolegle zapytanie zalozylo koszyk pierwsze - bierzemy jego
            self.db.rollback()
            existing = self.get_cart_by_user(user_id)
            if existing is None:
                raise
            return existing
        self.db.refresh(cart)
        logger.info(f"Created cart {cart.id} for user {user_id}")
        return cart

    def get_or_create_cart(self, user_id: str) -> CartModel:
        return self.get_cart_by_user(user_id) or self.create_cart(user_id)

    # =====================================================
    # Items
    # =====================================================
    def get_cart_items(self, cart_id: str) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.created_at, CartItemModel.id)
            ).scalars()
        )

    def get_cart_item(self, cart_id: str, product_id: str) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        """Insert albo update; IntegrityError przy duplikacie (cart_id, product_id) leci do wywolujacego."""
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, cart_id: str, product_id: str) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        )
        return result.rowcount

    def clear_cart_items(self, cart_id: str) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(CartItemModel.cart_id == cart_id)
        )
        return result.rowcount

    # =====================================================
    # Zmiany sterowane eventami z katalogu (wszystkie koszyki)
    # =====================================================
    def update_product_snapshot(self, product_id: str, values: Dict[str, Any]) -> int:
        if not values:
            return 0
        result = self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.product_id == product_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_items_for_product(self, product_id: str) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
