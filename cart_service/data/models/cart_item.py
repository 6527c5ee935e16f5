#cart_service/data/models/cart_item.py
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from cart_service.data.database import Base
from cart_service.data.models.cart import _now, _uuid


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    #referencja do katalogu, nie FK
    product_id = Column(String(64), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)

    #ostatni znany stan z katalogu, odswiezany przez zapis i eventy
    product_name = Column(String(255), nullable=True)
    product_price = Column(Numeric(10, 2), nullable=True)
    product_image_url = Column(String(1024), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="u_cart_product"),
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )
