"""
Kroger product search client.

Runs one upstream search for a (location, term) pair, normalizes the
products and upserts the result into the cache store with a
category-based TTL.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import settings
from grocery_cache.auth import KrogerAPIError
from grocery_cache.cache import (
    CacheEntry,
    CacheStore,
    CachedProductRecord,
    FulfillmentFlags,
    expires_at_for,
    normalize_term,
    ttl_for_products,
)
from grocery_cache.utils.helpers import safe_bool, safe_float, safe_str, utcnow

logger = logging.getLogger("kroger.products")

# Largest first; upstream does not list sizes in a fixed order
IMAGE_SIZE_PREFERENCE = ("xlarge", "large", "medium", "small", "thumbnail")

OUT_OF_STOCK_LEVEL = "TEMPORARILY_OUT_OF_STOCK"


class SearchRequestError(KrogerAPIError):
    """Transient search failure (429, 5xx or transport error); retried."""
    pass


# ============================================================================
# Response normalization
# ============================================================================

def select_best_image_url(images: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """
    Pick the largest available image URL from the first image's sizes.

    Falls back to the first size's URL when no preferred size is present.
    """
    if not images:
        return None
    sizes = (images[0] or {}).get("sizes") or []
    if not sizes:
        return None

    for preferred in IMAGE_SIZE_PREFERENCE:
        for size in sizes:
            if (size.get("size") or "").lower() == preferred and size.get("url"):
                return size["url"]

    return sizes[0].get("url")


def extract_prices(price: Any) -> Tuple[Optional[float], Optional[float]]:
    """
    Get (regular, promo) from an item price.

    Upstream sends either a bare number or {"regular": .., "promo": ..}.
    """
    if isinstance(price, dict):
        return safe_float(price.get("regular")), safe_float(price.get("promo"))
    return safe_float(price), None


def normalize_product(raw: Dict[str, Any]) -> CachedProductRecord:
    """Convert one raw upstream product into the cached snapshot format."""
    items = raw.get("items") or [{}]
    item = items[0] or {}
    categories = raw.get("categories") or []

    regular_price, promo_price = extract_prices(item.get("price"))
    stock_level = (item.get("inventory") or {}).get("stockLevel")
    aisles = item.get("aisleLocations") or [{}]

    fulfillment = None
    raw_fulfillment = item.get("fulfillment")
    if raw_fulfillment:
        fulfillment = FulfillmentFlags(
            in_store=safe_bool(raw_fulfillment.get("inStore")),
            curbside=safe_bool(raw_fulfillment.get("curbside")),
            delivery=safe_bool(raw_fulfillment.get("delivery")),
            ship_to_home=safe_bool(raw_fulfillment.get("shipToHome")),
        )

    return CachedProductRecord(
        product_id=safe_str(raw.get("productId"), ""),
        upc=safe_str(raw.get("upc"), ""),
        brand=safe_str(raw.get("brand")),
        description=safe_str(raw.get("description"), ""),
        category=safe_str(categories[0]) if len(categories) > 0 else None,
        department=safe_str(categories[1]) if len(categories) > 1 else None,
        size=safe_str(item.get("size")),
        image_url=select_best_image_url(raw.get("images")),
        regular_price=regular_price,
        promo_price=promo_price,
        currency="USD",
        aisle=safe_str((aisles[0] or {}).get("description")),
        is_in_stock=stock_level != OUT_OF_STOCK_LEVEL,
        stock_level=safe_str(stock_level),
        fulfillment=fulfillment,
        sold_by=safe_str(item.get("soldBy")),
    )


# ============================================================================
# Search client
# ============================================================================

class ProductSearchClient:
    """
    Fetches one product search and writes it into the cache.

    Upstream problems never raise out of ``search_and_cache``: they are
    logged and reported as ``False``. Store failures do propagate.
    """

    def __init__(
        self,
        store: CacheStore,
        http: Optional[requests.Session] = None,
        clock: Callable[[], Any] = utcnow,
    ):
        """
        Args:
            store: Cache store to upsert results into
            http: Session to use (defaults to the requests module)
            clock: Returns the current naive-UTC datetime
        """
        self._store = store
        self._http = http or requests
        self._clock = clock

    def _build_params(self, location_id: str, term: str) -> Dict[str, str]:
        return {
            "filter.term": term,
            "filter.limit": str(settings.search_result_limit),
            "filter.locationId": location_id,
            "filter.fulfillment": settings.search_fulfillment_filter,
        }

    def _fetch(self, token: str, location_id: str, term: str) -> Optional[List[Dict[str, Any]]]:
        """
        One upstream call.

        Returns:
            Raw products, or None for a non-retryable failure

        Raises:
            SearchRequestError: On 429, 5xx or transport errors
        """
        try:
            response = self._http.get(
                f"{settings.kroger_api_base_url}/products",
                params=self._build_params(location_id, term),
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
                timeout=settings.request_timeout_seconds,
            )
        except requests.RequestException as e:
            raise SearchRequestError(f"Transport error: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise SearchRequestError(f"Upstream returned {response.status_code}")

        if not response.ok:
            logger.warning(f"Search failed for \"{term}\" at {location_id}: {response.status_code}")
            return None

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"Search for \"{term}\" at {location_id} returned invalid JSON")
            return None

        if not isinstance(body, dict) or not isinstance(body.get("data") or [], list):
            logger.warning(f"Search for \"{term}\" at {location_id} returned an unexpected body")
            return None
        return body.get("data") or []

    def _fetch_with_retry(self, token: str, location_id: str, term: str):
        retryer = Retrying(
            stop=stop_after_attempt(max(1, settings.search_retry_attempts)),
            wait=wait_exponential(multiplier=settings.search_retry_base_delay_seconds, max=30),
            retry=retry_if_exception_type(SearchRequestError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retryer(self._fetch, token, location_id, term)

    def search_and_cache(self, token: str, location_id: str, term: str) -> bool:
        """
        Search upstream for ``term`` at ``location_id`` and cache the result.

        Returns:
            True when a non-empty result was written, False otherwise
        """
        try:
            raw_products = self._fetch_with_retry(token, location_id, term)
        except SearchRequestError as e:
            logger.warning(f"Search failed for \"{term}\" at {location_id} after retries: {e}")
            return False

        if raw_products is None:
            return False
        if not raw_products:
            logger.info(f"No products found for \"{term}\" at {location_id}")
            return False

        # Malformed products fail this term only; store errors below propagate
        try:
            products = [normalize_product(raw) for raw in raw_products]
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            logger.warning(f"Malformed product data for \"{term}\" at {location_id}: {e}")
            return False

        now = self._clock()
        entry = CacheEntry(
            location_id=location_id,
            term=term,
            normalized_term=normalize_term(term),
            products=products,
            total=len(products),
            created_at=now,
            updated_at=now,
            expires_at=expires_at_for(products, now),
            warmed_at=now,
        )
        self._store.upsert_entry(entry)

        logger.info(
            f"Cached {len(products)} products for \"{term}\" at {location_id} "
            f"(TTL: {ttl_for_products(products)}h, category: {products[0].category or 'unknown'})"
        )
        return True
