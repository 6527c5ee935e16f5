# cart_service/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cart_service.utils.settings import MAX_QUANTITY_PER_REQUEST


# =====================================================
# Katalog (dane z zewnatrz)
# =====================================================
class ProductSnapshot(BaseModel):
    """Produkt tak jak go widzi katalog; ten sam ksztalt trzymamy w redisie."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    price: Decimal
    quantity: int = 0
    image_url: str | None = Field(default=None, alias="imageUrl")
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v)

    def to_cache(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_cache(cls, raw: str) -> "ProductSnapshot":
        return cls.model_validate_json(raw)


class CatalogEventType(str, Enum):
    PRODUCT_CREATED = "PRODUCT_CREATED"
    PRODUCT_UPDATED = "PRODUCT_UPDATED"
    PRODUCT_DELETED = "PRODUCT_DELETED"


class CatalogEvent(BaseModel):
    event_type: CatalogEventType
    product_id: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        #producent moze wyslac krotka forme CREATED/UPDATED/DELETED
        if isinstance(v, str) and not v.upper().startswith("PRODUCT_"):
            return f"PRODUCT_{v.upper()}"
        return v.upper() if isinstance(v, str) else v

    @field_validator("product_id", mode="before")
    @classmethod
    def _product_id_as_str(cls, v):
        return str(v)


# =====================================================
# Request
# =====================================================
class ItemIn(BaseModel):
    """Dodanie produktu do koszyka."""

    product_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY_PER_REQUEST)


class QuantityIn(BaseModel):
    """Nowa ilosc; 0 oznacza usuniecie pozycji."""

    quantity: int = Field(..., ge=0, le=MAX_QUANTITY_PER_REQUEST)


# =====================================================
# Response (read model, nigdy nie zapisywany)
# =====================================================
class CartItemOut(BaseModel):
    id: str
    product_id: str
    quantity: int
    product_name: str | None = None
    product_price: Decimal | None = None
    product_image_url: str | None = None

    available_quantity: int | None = None
    is_out_of_stock: bool = False
    is_partially_available: bool = False
    is_unavailable: bool = False
    message: str = ""


class CartOut(BaseModel):
    id: str
    user_id: str
    items: List[CartItemOut]
    total_items: int
    total: Decimal
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ItemActionOut(BaseModel):
    message: str
    item: CartItemOut | None = None


class MessageOut(BaseModel):
    message: str
