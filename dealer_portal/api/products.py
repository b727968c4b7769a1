"""Product catalog endpoint with Redis caching"""
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from dealer_portal.core.config import settings
from dealer_portal.core.enums import StoreApp
from dealer_portal.core.metrics import cache_hits, cache_misses
from dealer_portal.core.redis import get_redis
from dealer_portal.schemas.product import Product
from dealer_portal.services.kintone import get_record_store
from dealer_portal.services.mappers import record_to_product

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/products", tags=["products"])

CATALOG_CACHE_KEY = "catalog:active"
ACTIVE_PRODUCTS_QUERY = 'product_status in ("Active") order by product_code asc'


async def _load_catalog(store) -> List[Product]:
    redis = get_redis()

    if redis is not None:
        try:
            cached = await redis.get(CATALOG_CACHE_KEY)
            if cached:
                cache_hits.labels(cache_key=CATALOG_CACHE_KEY).inc()
                return [Product(**p) for p in json.loads(cached)]
        except Exception as e:
            logger.warning(f"Cache retrieval failed: {e}")
    cache_misses.labels(cache_key=CATALOG_CACHE_KEY).inc()

    data = await store.get_records(StoreApp.PRODUCTS, query=ACTIVE_PRODUCTS_QUERY)
    products = [record_to_product(r) for r in data.get("records", [])]

    if redis is not None:
        try:
            await redis.set(
                CATALOG_CACHE_KEY,
                json.dumps([p.model_dump() for p in products], default=str),
                ex=settings.CATALOG_CACHE_TTL
            )
        except Exception as e:
            logger.warning(f"Cache write failed: {e}")

    return products


@router.get("", response_model=List[Product])
async def list_products(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    store=Depends(get_record_store),
):
    products = await _load_catalog(store)
    if category and category != "All":
        products = [p for p in products if p.category == category]
    if search:
        term = search.lower()
        products = [p for p in products if term in p.name.lower() or term in p.code.lower()]
    return products
