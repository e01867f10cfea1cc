# fragrance_hub/filtering.py
"""
Product filter / sort / search engine.

Pure functions over in-memory product collections (ORM rows or any object
exposing the same attributes). Output is deterministic for a fixed dataset
and filter state.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple, Any

from fragrance_hub.analytics import stock_status

# ============================================================================
# Filter state
# ============================================================================

DEFAULT_PRICE_RANGE: Tuple[float, float] = (-1_000_000.0, 10_000.0)
DEFAULT_STOCK_RANGE: Tuple[float, float] = (-1_000_000.0, 1_000.0)

UPDATED_TIMELINES = ("today", "yesterday", "last_week", "older")

# filter value -> timelines it accepts
UPDATED_FILTERS = {
    "today": {"today"},
    "last_week": {"today", "yesterday", "last_week"},
}

SORT_FIELDS = (
    "commercial_name", "code", "current_stock", "price",
    "created_at", "updated_at", "product_type",
)
DATE_SORT_FIELDS = {"created_at", "updated_at"}

SEARCH_HISTORY_SIZE = 5


@dataclass
class FilterState:
    search_term: str = ""
    status: str = "all"
    category: str = "all"
    product_type: str = "all"
    brand: str = "all"
    is_tester: Optional[bool] = None
    # None bounds are filled from the data by effective_ranges
    price_range: Tuple[Optional[float], Optional[float]] = (None, None)
    stock_range: Tuple[Optional[float], Optional[float]] = (None, None)
    updated: str = "all"


@dataclass
class SortState:
    field: str = "commercial_name"
    direction: str = "asc"

    def toggle(self, field_name: str) -> "SortState":
        """Same field flips direction; a new field starts ascending."""
        if field_name not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {field_name}")
        if field_name == self.field:
            return SortState(field_name, "desc" if self.direction == "asc" else "asc")
        return SortState(field_name, "asc")


# ============================================================================
# Field helpers
# ============================================================================

def brand_label(product: Any) -> str:
    """Brand name when known, else the raw brand id."""
    brand = getattr(product, "brand", None)
    name = getattr(brand, "name", None)
    if name:
        return name
    brand_id = getattr(product, "brand_id", None)
    return str(brand_id) if brand_id is not None else ""


def _num(value: Any) -> float:
    return float(value) if value is not None else 0.0


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive timestamps; they are stored as UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _epoch_ms(value: Optional[datetime]) -> float:
    if value is None:
        return 0.0
    return _aware(value).timestamp() * 1000


# ============================================================================
# Updated timeline
# ============================================================================

def classify_updated(updated_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Bucket a timestamp into today / yesterday / last_week / older (day boundaries in now's timezone)."""
    if updated_at is None:
        return "older"
    now = _aware(now) if now is not None else datetime.now().astimezone()
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_yesterday = start_of_today - timedelta(days=1)
    seven_days_ago = start_of_today - timedelta(days=7)

    ts = _aware(updated_at)
    if ts >= start_of_today:
        return "today"
    if ts >= start_of_yesterday:
        return "yesterday"
    if ts >= seven_days_ago:
        return "last_week"
    return "older"


def matches_updated(timeline: str, updated_filter: str) -> bool:
    if updated_filter == "all":
        return True
    return timeline in UPDATED_FILTERS.get(updated_filter, set())


def is_stale(product: Any, now: Optional[datetime] = None) -> bool:
    """Not updated within the last 7 days."""
    return classify_updated(getattr(product, "updated_at", None), now) == "older"


# ============================================================================
# Ranges
# ============================================================================

def data_ranges(products: Sequence[Any]) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """(price_range, stock_range) spanned by the data, never narrower than the default maxima."""
    if not products:
        return (0.0, DEFAULT_PRICE_RANGE[1]), (0.0, DEFAULT_STOCK_RANGE[1])
    prices = [_num(p.price) for p in products]
    stocks = [_num(p.current_stock) for p in products]
    return (
        (min(prices), max(prices + [DEFAULT_PRICE_RANGE[1]])),
        (min(stocks), max(stocks + [DEFAULT_STOCK_RANGE[1]])),
    )


def effective_ranges(products: Sequence[Any], state: FilterState) -> FilterState:
    """
    Resolve every unset bound. Defaults apply unless the data falls outside
    them, in which case unset bounds come from the data so negative-stock or
    unusually priced products are never silently excluded. Bounds the caller
    set are left alone.
    """
    price_range, stock_range = data_ranges(products)
    stock_wider = stock_range[0] < 0 or stock_range[1] > DEFAULT_STOCK_RANGE[1]
    price_wider = price_range[0] < 0 or price_range[1] > DEFAULT_PRICE_RANGE[1]
    if not (stock_wider or price_wider):
        price_range, stock_range = DEFAULT_PRICE_RANGE, DEFAULT_STOCK_RANGE
    return replace(
        state,
        price_range=_fill_bounds(state.price_range, price_range),
        stock_range=_fill_bounds(state.stock_range, stock_range),
    )


def _fill_bounds(
    bounds: Tuple[Optional[float], Optional[float]], fallback: Tuple[float, float]
) -> Tuple[float, float]:
    low, high = bounds
    return (
        fallback[0] if low is None else low,
        fallback[1] if high is None else high,
    )


# ============================================================================
# Filtering
# ============================================================================

def matches_search(product: Any, term: str) -> bool:
    """Case-insensitive substring match on any searchable field."""
    if not term:
        return True
    needle = term.lower()
    fields = (
        product.commercial_name,
        product.code,
        product.item_number,
        brand_label(product),
        getattr(product, "fragrance_notes", None),
        getattr(product, "concentration", None),
        getattr(product, "gender", None),
    )
    if any(needle in (value or "").lower() for value in fields):
        return True
    return any(needle in (s or "").lower() for s in (getattr(product, "season", None) or []))


def matches_filters(product: Any, state: FilterState, now: Optional[datetime] = None) -> bool:
    if not matches_search(product, state.search_term):
        return False
    if state.status != "all" and stock_status(product) != state.status:
        return False
    if state.category != "all" and product.category != state.category:
        return False
    if state.product_type != "all" and product.product_type != state.product_type:
        return False
    if state.brand != "all" and brand_label(product) != state.brand:
        return False

    price = _num(product.price)
    if not (state.price_range[0] <= price <= state.price_range[1]):
        return False
    stock = _num(product.current_stock)
    if not (state.stock_range[0] <= stock <= state.stock_range[1]):
        return False

    if state.is_tester is not None and bool(product.is_tester) != state.is_tester:
        return False

    timeline = classify_updated(getattr(product, "updated_at", None), now)
    return matches_updated(timeline, state.updated)


def filter_products(
    products: Iterable[Any],
    state: Optional[FilterState] = None,
    now: Optional[datetime] = None,
) -> List[Any]:
    """Products satisfying every active predicate, in input order."""
    products = list(products)
    state = effective_ranges(products, state or FilterState())
    return [p for p in products if matches_filters(p, state, now)]


# ============================================================================
# Sorting
# ============================================================================

def _sort_key(product: Any, field_name: str):
    value = getattr(product, field_name, None)
    if field_name in DATE_SORT_FIELDS:
        return _epoch_ms(value)
    if field_name in ("current_stock", "price"):
        return _num(value)
    return (value or "").lower()


def _tiebreak(product: Any):
    pid = getattr(product, "id", None)
    return (pid is None, pid if pid is not None else 0)


def sort_products(products: Iterable[Any], sort: Optional[SortState] = None) -> List[Any]:
    """Stable sort on one field; ties fall back to ascending id so output is deterministic."""
    sort = sort or SortState()
    if sort.field not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {sort.field}")
    by_id = sorted(products, key=_tiebreak)
    return sorted(
        by_id,
        key=lambda p: _sort_key(p, sort.field),
        reverse=(sort.direction == "desc"),
    )


def filter_and_sort(
    products: Iterable[Any],
    state: Optional[FilterState] = None,
    sort: Optional[SortState] = None,
    now: Optional[datetime] = None,
) -> List[Any]:
    return sort_products(filter_products(products, state, now), sort)


# ============================================================================
# Suggestions and history
# ============================================================================

def search_suggestions(products: Iterable[Any], term: str, limit: int = 8) -> List[str]:
    """
    Suggestions for a search term of at least two characters.

    Candidates: names, codes and brand names containing the term, words of
    commercial names (longer than 2 chars) starting with it, and product
    types / categories containing it. Prefix matches rank first, then
    alphabetical order.
    """
    if not term or len(term) < 2:
        return []
    needle = term.lower()
    candidates: set[str] = set()

    for p in products:
        if needle in p.commercial_name.lower():
            candidates.add(p.commercial_name)
        if needle in p.code.lower():
            candidates.add(p.code)
        brand_name = getattr(getattr(p, "brand", None), "name", None)
        if brand_name and needle in brand_name.lower():
            candidates.add(brand_name)

        for word in p.commercial_name.lower().split(" "):
            if word.startswith(needle) and len(word) > 2:
                candidates.add(word)

        if p.product_type and needle in p.product_type.lower():
            candidates.add(p.product_type)
        if p.category and needle in p.category.lower():
            candidates.add(p.category)

    ranked = sorted(
        candidates,
        key=lambda s: (not s.lower().startswith(needle), s.lower(), s),
    )
    return ranked[:limit]


@dataclass
class SearchHistory:
    """Most recent distinct search terms, newest first."""
    size: int = SEARCH_HISTORY_SIZE
    terms: List[str] = field(default_factory=list)

    def add(self, term: str) -> None:
        term = (term or "").strip()
        if not term or term in self.terms:
            return
        self.terms = [term] + self.terms[: self.size - 1]
