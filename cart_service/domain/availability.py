# cart_service/domain/availability.py
from dataclasses import dataclass

from cart_service.data.models.cart_item import CartItemModel
from cart_service.domain.errors import CartError
from cart_service.domain.schemas import CartItemOut, ProductSnapshot

MSG_INACTIVE = "Product inactive"
MSG_OUT_OF_STOCK = "Out of stock"
MSG_UNAVAILABLE = "Product details unavailable or product deleted."


@dataclass(frozen=True)
class ProductLookup:
    """Wynik pojedynczego odczytu produktu: albo produkt, albo blad."""

    product_id: str
    product: ProductSnapshot | None = None
    error: CartError | None = None

    @property
    def ok(self) -> bool:
        return self.product is not None

    @classmethod
    def found(cls, product: ProductSnapshot) -> "ProductLookup":
        return cls(product_id=product.id, product=product)

    @classmethod
    def failed(cls, product_id: str, error: CartError) -> "ProductLookup":
        return cls(product_id=product_id, error=error)


def partial_message(available: int) -> str:
    return f"Only {available} available. Please adjust your quantity."


def annotate_item(item: CartItemModel, lookup: ProductLookup) -> CartItemOut:
    """
    Buduje widok pozycji koszyka z danych zapisanych + live produktu.
    Encja z bazy nie jest modyfikowana.
    """
    view = CartItemOut(
        id=item.id,
        product_id=item.product_id,
        quantity=item.quantity,
        product_name=item.product_name,
        product_price=item.product_price,
        product_image_url=item.product_image_url,
    )

    if not lookup.ok:
        #zostaja ostatnie zdenormalizowane wartosci
        view.is_unavailable = True
        view.message = MSG_UNAVAILABLE
        return view

    live = lookup.product
    view.product_name = live.name
    view.product_price = live.price
    view.product_image_url = live.image_url
    view.available_quantity = live.quantity

    if not live.is_active or live.quantity == 0:
        view.is_out_of_stock = True
        view.message = MSG_OUT_OF_STOCK if live.is_active else MSG_INACTIVE
    elif live.quantity < item.quantity:
        #nie przycinamy ilosci, UI ma zapytac usera
        view.is_partially_available = True
        view.message = partial_message(live.quantity)

    return view
