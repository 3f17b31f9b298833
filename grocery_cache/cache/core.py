"""
Core cache data structures.
"""
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote, quote_plus


SOURCE_ENDPOINT = "products.search"

_WHITESPACE = re.compile(r"\s+")


class WarmType(Enum):
    """Which trigger produced a warming stats record."""
    SCHEDULED = "scheduled"
    ON_DEMAND = "on-demand"


def normalize_term(term: str) -> str:
    """Lowercase, trim and collapse internal whitespace to a single space."""
    return _WHITESPACE.sub(" ", (term or "").strip().lower())


def encode_term(term: str) -> str:
    """
    Normalized term in reversible, URL-safe form for use in entry ids.

    Spaces become ``+``; every other character outside [A-Za-z0-9_.~-]
    is percent-encoded, so distinct terms never share an encoding.
    """
    return quote_plus(normalize_term(term), safe="")


def _encode_location(location_id: str) -> str:
    # "_" separates location from term, so it cannot appear unescaped here
    return quote(location_id, safe="").replace("_", "%5F")


@dataclass(frozen=True)
class CacheKey:
    """
    Identity of one product-search cache entry.

    Two terms that normalize the same map to the same entry; any two
    distinct keys map to distinct entry ids.
    """
    location_id: str
    normalized_term: str

    @classmethod
    def for_term(cls, location_id: str, term: str) -> "CacheKey":
        return cls(location_id=location_id, normalized_term=normalize_term(term))

    @property
    def entry_id(self) -> str:
        """Stable document id, e.g. ``01400943_chicken+breast``."""
        return f"{_encode_location(self.location_id)}_{encode_term(self.normalized_term)}"


@dataclass
class FulfillmentFlags:
    """Fulfillment channels a product is offered through (None = unknown)."""
    in_store: Optional[bool] = None
    curbside: Optional[bool] = None
    delivery: Optional[bool] = None
    ship_to_home: Optional[bool] = None


@dataclass
class CachedProductRecord:
    """
    Per-product snapshot stored inside a cache entry.

    Only what is needed to price, size and locate a product in store.
    """
    product_id: str
    upc: str
    description: str
    brand: Optional[str] = None
    category: Optional[str] = None
    department: Optional[str] = None
    size: Optional[str] = None
    image_url: Optional[str] = None
    regular_price: Optional[float] = None
    promo_price: Optional[float] = None
    unit_price: Optional[float] = None
    unit_of_measure: Optional[str] = None
    currency: str = "USD"
    aisle: Optional[str] = None
    is_in_stock: bool = True
    stock_level: Optional[str] = None
    fulfillment: Optional[FulfillmentFlags] = None
    sold_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CachedProductRecord":
        values = dict(data)
        fulfillment = values.pop("fulfillment", None)
        return cls(
            fulfillment=FulfillmentFlags(**fulfillment) if fulfillment else None,
            **values,
        )


@dataclass
class CacheEntry:
    """
    One cached product search for a (location, term) pair.

    hit_count and last_accessed_at belong to the read path; warming
    writes never change them on an existing entry.
    """
    location_id: str
    term: str
    normalized_term: str
    products: List[CachedProductRecord]
    total: int
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    warmed_at: Optional[datetime] = None
    source_endpoint: str = SOURCE_ENDPOINT
    hit_count: int = 0
    last_accessed_at: Optional[datetime] = None

    @property
    def key(self) -> CacheKey:
        return CacheKey(self.location_id, self.normalized_term)

    @property
    def entry_id(self) -> str:
        return self.key.entry_id

    def is_expired(self, now: datetime) -> bool:
        """True once now is past expires_at; live at expires_at itself."""
        return self.expires_at < now


@dataclass
class WarmingStatsRecord:
    """Per-location warming bookkeeping, the cooldown coordination point."""
    location_id: str
    last_warmed_at: Optional[datetime] = None
    items_warmed: int = 0
    errors: int = 0
    warmed_by: Optional[str] = None
    warm_type: Optional[WarmType] = None

    def hours_since_warm(self, now: datetime) -> Optional[float]:
        """Hours elapsed since the last warm, None if never warmed."""
        if self.last_warmed_at is None:
            return None
        return (now - self.last_warmed_at).total_seconds() / 3600


@dataclass
class WarmCounts:
    """Running cached/error tally for one location or one run."""
    cached: int = 0
    errors: int = 0
    terms: List[str] = field(default_factory=list)

    def record(self, term: str, success: bool) -> None:
        self.terms.append(term)
        if success:
            self.cached += 1
        else:
            self.errors += 1
