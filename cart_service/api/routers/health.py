#cart_service/api/routers/health.py
from fastapi import APIRouter, Depends

from cart_service.api.routers.carts import get_product_cache
from cart_service.services.product_cache import ProductCache

router = APIRouter(tags=["health"])


@router.get("/health")
def health(product_cache: ProductCache = Depends(get_product_cache)):
    # redis padniety = degradacja, nie awaria (odczyty ida wtedy prosto do katalogu)
    cache_up = product_cache.cache_store.ping()
    return {"status": "ok", "cache": "up" if cache_up else "down"}
