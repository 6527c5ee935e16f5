#cart_service/api/routers/carts.py
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from cart_service.data.database import get_db
from cart_service.domain.errors import CartError
from cart_service.domain.schemas import (
    CartOut,
    ItemActionOut,
    ItemIn,
    MessageOut,
    QuantityIn,
)
from cart_service.services.cart_service import CartService
from cart_service.services.product_cache import ProductCache

router = APIRouter(prefix="/api/cart", tags=["cart"])


def get_product_cache(request: Request) -> ProductCache:
    return request.app.state.product_cache


def get_user_id(x_user_id: str = Header(..., min_length=1, max_length=255)) -> str:
    #tozsamosc wstrzykuje gateway po autoryzacji, tu jej tylko ufamy
    return x_user_id


def get_service(
    db: Session = Depends(get_db),
    product_cache: ProductCache = Depends(get_product_cache),
) -> CartService:
    return CartService(db=db, product_cache=product_cache)


def _http_error(e: CartError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=CartOut)
def get_cart(
    user_id: str = Depends(get_user_id),
    svc: CartService = Depends(get_service),
):
    # odczyt zawsze 200, problemy z produktami sa flagami na pozycjach
    # endpoint sync: rozlaczenie klienta nie przerywa odczytow produktow,
    # ogranicza je tylko CART_READ_TIMEOUT_SECONDS (CartService._resolve_all)
    return svc.get_cart(user_id)


@router.post("/add", response_model=ItemActionOut, status_code=status.HTTP_201_CREATED)
def add_item(
    payload: ItemIn,
    user_id: str = Depends(get_user_id),
    svc: CartService = Depends(get_service),
):
    try:
        item = svc.add_item(user_id, payload.product_id, payload.quantity)
    except CartError as e:
        raise _http_error(e)
    return ItemActionOut(message="Item added to cart successfully", item=item)


@router.put("/update/{product_id}", response_model=ItemActionOut)
def update_item_quantity(
    product_id: str,
    payload: QuantityIn,
    user_id: str = Depends(get_user_id),
    svc: CartService = Depends(get_service),
):
    try:
        item = svc.update_quantity(user_id, product_id, payload.quantity)
    except CartError as e:
        raise _http_error(e)

    if item is None:
        return ItemActionOut(message="Product removed from cart successfully")
    return ItemActionOut(message="Cart item quantity updated successfully", item=item)


@router.delete("/remove/{product_id}", response_model=MessageOut)
def remove_item(
    product_id: str,
    user_id: str = Depends(get_user_id),
    svc: CartService = Depends(get_service),
):
    try:
        svc.remove_item(user_id, product_id)
    except CartError as e:
        raise _http_error(e)
    return MessageOut(message="Product removed from cart successfully")


@router.delete("/clear", response_model=MessageOut)
def clear_cart(
    user_id: str = Depends(get_user_id),
    svc: CartService = Depends(get_service),
):
    svc.clear_cart(user_id)
    return MessageOut(message="Cart cleared successfully")
