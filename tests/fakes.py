"""
Test doubles for upstream HTTP, the search client and time.
"""
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from grocery_cache.models import LinkedAccount


class FakeClock:
    """Callable clock returning a settable naive-UTC datetime."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeResponse:
    """Just enough of requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeHttp:
    """
    Stand-in for a requests session.

    ``handler`` gets the call's keyword arguments and returns a
    FakeResponse or an exception instance to raise.
    """

    def __init__(self, handler: Callable[..., Any]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def _dispatch(self, method: str, url: str, **kwargs):
        call = {"method": method, "url": url, **kwargs}
        self.calls.append(call)
        result = self.handler(call)
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, **kwargs)

    @property
    def searched_terms(self) -> List[str]:
        return [call["params"]["filter.term"] for call in self.calls]


class FakeSearchClient:
    """Records search_and_cache calls; ``fail_terms`` return False."""

    def __init__(self, fail_terms=()):
        self.fail_terms = set(fail_terms)
        self.calls: List[tuple] = []

    def search_and_cache(self, token: str, location_id: str, term: str) -> bool:
        self.calls.append((token, location_id, term))
        return term not in self.fail_terms

    def terms_for(self, location_id: str) -> List[str]:
        return [term for _, loc, term in self.calls if loc == location_id]

    @property
    def locations(self) -> List[str]:
        return list(dict.fromkeys(loc for _, loc, _ in self.calls))


def raw_product(
    product_id: str = "0001111041700",
    category: Optional[str] = "Dairy",
    department: Optional[str] = "Milk",
    price: Any = None,
    stock_level: Optional[str] = "HIGH",
    images: Optional[list] = None,
) -> Dict[str, Any]:
    """Upstream product payload shaped like the product search API's."""
    categories = [c for c in (category, department) if c is not None]
    return {
        "productId": product_id,
        "upc": product_id,
        "brand": "Kroger",
        "description": "Kroger 2% Reduced Fat Milk",
        "categories": categories,
        "images": images if images is not None else [
            {"sizes": [
                {"size": "thumbnail", "url": "https://img.example/thumb.jpg"},
                {"size": "large", "url": "https://img.example/large.jpg"},
            ]},
        ],
        "items": [{
            "size": "1 gal",
            "price": price if price is not None else {"regular": 3.49, "promo": 2.99},
            "soldBy": "UNIT",
            "aisleLocations": [{"description": "Aisle 12"}],
            "fulfillment": {
                "inStore": True,
                "curbside": True,
                "delivery": False,
                "shipToHome": False,
            },
            "inventory": {"stockLevel": stock_level} if stock_level else {},
        }],
    }


def search_ok(*products) -> FakeResponse:
    return FakeResponse(200, {"data": list(products) or [raw_product()]})


def add_accounts(session_factory, *accounts) -> None:
    """Insert (account_id, location_id, linked) rows into the account directory."""
    session = session_factory()
    try:
        for account_id, location_id, linked in accounts:
            session.add(LinkedAccount(
                id=account_id,
                default_location_id=location_id,
                kroger_linked=linked,
            ))
        session.commit()
    finally:
        session.close()
