"""
Cache warming orchestration.

Two entry points share one per-term primitive (ProductSearchClient):
- run_scheduled_warm: periodic, picks the stalest active locations
- run_on_demand_warm: inline when a user selects or switches a store

All upstream calls for one location are strictly sequential with a fixed
delay between them; locations are processed one at a time.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from config.settings import settings
from grocery_cache.auth import TokenError, get_token
from grocery_cache.cache import CacheStore, WarmCounts, WarmType
from grocery_cache.catalog import ESSENTIAL_TERMS, POPULAR_TERMS, remaining_terms
from grocery_cache.product_client import ProductSearchClient
from grocery_cache.utils.helpers import utcnow

logger = logging.getLogger("warming.scheduler")


@dataclass
class WarmRunResult:
    """Outcome of one scheduled run."""
    locations: List[str] = field(default_factory=list)
    cached: int = 0
    errors: int = 0
    per_location: Dict[str, WarmCounts] = field(default_factory=dict)
    duration_seconds: float = 0.0


@dataclass
class OnDemandResult:
    """
    Structured answer for the on-demand caller.

    Exactly one of: warmed (success, not skipped), skipped with a reason,
    or failed (success False) with a reason.
    """
    location_id: str
    success: bool
    skipped: bool
    cached: Optional[int] = None
    errors: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON response shape, omitting unset fields."""
        result = {
            "success": self.success,
            "skipped": self.skipped,
            "locationId": self.location_id,
        }
        if self.cached is not None:
            result["cached"] = self.cached
        if self.errors is not None:
            result["errors"] = self.errors
        if self.reason is not None:
            result["reason"] = self.reason
        return result


class WarmingScheduler:
    """
    Decides which locations and terms to warm, and in what order.

    The warming stats row per location is the only coordination point:
    an advisory read-then-write, not a lock. Two simultaneous on-demand
    requests for a never-warmed location may both warm it.
    """

    def __init__(
        self,
        store: CacheStore,
        search_client: ProductSearchClient,
        token_provider: Callable[[], str] = get_token,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._search_client = search_client
        self._token_provider = token_provider
        self._sleep = sleep
        self._clock = clock

    # =========================================================================
    # Shared primitive
    # =========================================================================

    def _warm_terms(
        self,
        token: str,
        location_id: str,
        terms: Sequence[str],
        delay_seconds: float,
        counts: WarmCounts,
    ) -> WarmCounts:
        """
        Warm ``terms`` one after another; a failed term never stops the loop.

        ``delay_seconds`` is slept before every call except the first one
        made for this location (tracked through ``counts``).
        """
        for term in terms:
            # Rate-limit compliance
            if counts.terms:
                self._sleep(delay_seconds)
            success = self._search_client.search_and_cache(token, location_id, term)
            counts.record(term, success)
        return counts

    # =========================================================================
    # Scheduled run
    # =========================================================================

    def select_locations(self, candidates: Sequence[str]) -> List[str]:
        """
        Pick the locations for a scheduled run.

        Drops locations warmed within the cooldown, orders the rest by
        last warm (never-warmed first) and keeps max_locations_per_run.
        """
        now = self._clock()
        cooldown = timedelta(hours=settings.warm_cooldown_hours)

        eligible = []
        for location_id in candidates:
            stats = self._store.get_warming_stats(location_id)
            last_warmed = stats.last_warmed_at if stats else None
            if last_warmed is not None and now - last_warmed < cooldown:
                logger.debug(f"Skipping {location_id}: warmed at {last_warmed.isoformat()}")
                continue
            eligible.append((last_warmed, location_id))

        eligible.sort(key=lambda item: item[0] or datetime.min)
        return [location_id for _, location_id in eligible][:settings.max_locations_per_run]

    def run_scheduled_warm(self) -> WarmRunResult:
        """
        Periodic warming run.

        Raises:
            TokenError: No token; nothing was written
        """
        started = time.monotonic()
        result = WarmRunResult()
        logger.info(f"Starting Kroger cache warming at {self._clock().isoformat()}")

        try:
            token = self._token_provider()
        except TokenError:
            logger.error("Failed to get Kroger token, aborting cache warm")
            raise

        candidates = self._store.active_location_ids(settings.location_scan_limit)
        logger.info(f"Found {len(candidates)} active locations")
        if not candidates:
            logger.info("No active locations to warm")
            return result

        selected = self.select_locations(candidates)
        if not selected:
            logger.info("All locations recently warmed, skipping scheduled warming")
            return result

        terms = POPULAR_TERMS[:settings.max_items_per_location]
        for location_id in selected:
            logger.info(f"Warming cache for location {location_id} ({len(terms)} terms)")
            counts = self._warm_terms(
                token,
                location_id,
                terms,
                settings.delay_between_requests_seconds,
                WarmCounts(),
            )
            self._store.record_warming(
                location_id,
                warmed_at=self._clock(),
                items_warmed=counts.cached,
                errors=counts.errors,
                warm_type=WarmType.SCHEDULED,
            )
            logger.info(f"Location {location_id}: cached {counts.cached}, errors {counts.errors}")

            result.locations.append(location_id)
            result.per_location[location_id] = counts
            result.cached += counts.cached
            result.errors += counts.errors

        result.duration_seconds = time.monotonic() - started
        logger.info(
            f"Cache warming complete: {result.cached} cached, {result.errors} errors, "
            f"{result.duration_seconds:.1f}s"
        )
        return result

    # =========================================================================
    # On-demand run
    # =========================================================================

    def run_on_demand_warm(self, location_id: str, requester_id: str) -> OnDemandResult:
        """
        Warm a location for a user who just selected it.

        Skips with zero upstream calls if the location was warmed within
        the on-demand cooldown. Essentials go first with a shorter delay,
        then the rest of the popular catalog.
        """
        stats = self._store.get_warming_stats(location_id)
        hours_since = stats.hours_since_warm(self._clock()) if stats else None
        if hours_since is not None and hours_since < settings.on_demand_cooldown_hours:
            logger.info(f"Location {location_id} was warmed {hours_since:.1f}h ago, skipping")
            return OnDemandResult(
                location_id=location_id,
                success=True,
                skipped=True,
                reason=f"Recently warmed {hours_since:.1f} hours ago",
            )

        try:
            token = self._token_provider()
        except TokenError as e:
            logger.error(f"On-demand warm for {location_id} aborted: {e}")
            return OnDemandResult(
                location_id=location_id,
                success=False,
                skipped=False,
                reason="token_unavailable",
            )

        logger.info(f"On-demand warming for location {location_id} by user {requester_id}")
        counts = WarmCounts()

        logger.info(f"Phase 1: Warming {len(ESSENTIAL_TERMS)} essential terms")
        self._warm_terms(token, location_id, ESSENTIAL_TERMS, settings.essential_delay_seconds, counts)

        rest = remaining_terms()
        logger.info(f"Phase 2: Warming {len(rest)} additional terms")
        self._warm_terms(token, location_id, rest, settings.delay_between_requests_seconds, counts)

        self._store.record_warming(
            location_id,
            warmed_at=self._clock(),
            items_warmed=counts.cached,
            errors=counts.errors,
            warm_type=WarmType.ON_DEMAND,
            warmed_by=requester_id,
        )
        logger.info(f"On-demand warming complete: {counts.cached} cached, {counts.errors} errors")

        return OnDemandResult(
            location_id=location_id,
            success=True,
            skipped=False,
            cached=counts.cached,
            errors=counts.errors,
        )

    # =========================================================================
    # Manual run
    # =========================================================================

    def warm_location(self, location_id: str) -> WarmCounts:
        """
        Operator-triggered warm of one location, ignoring the cooldown.

        Leaves warm_type untouched in the stats row.

        Raises:
            TokenError: No token; nothing was written
        """
        token = self._token_provider()
        terms = POPULAR_TERMS[:settings.max_items_per_location]
        logger.info(f"Manual cache warm for location {location_id} ({len(terms)} terms)")

        counts = self._warm_terms(
            token, location_id, terms, settings.delay_between_requests_seconds, WarmCounts()
        )
        self._store.record_warming(
            location_id,
            warmed_at=self._clock(),
            items_warmed=counts.cached,
            errors=counts.errors,
        )
        return counts
