# partpal/query.py
"""Filter, sort and paginate part records.

Everything here is pure: the functions read the collection they are given
and return new lists, so a single collection can be queried concurrently.
Records are accessed by attribute, which lets the same code run over ORM
`Part` rows and `PartOut` schemas alike.
"""
import math
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from .errors import InvalidParameter
from .utils import split_multi

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 100
DEFAULT_SORT = "newest"
SORT_KEYS = ("newest", "oldest", "name", "price_asc", "price_desc")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def check_paging(page, page_size):
    for name, value, maximum in (("page", page, None), ("pageSize", page_size, MAX_PAGE_SIZE)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidParameter(name, value, "expected an integer")
        if value < 1:
            raise InvalidParameter(name, value, "must be >= 1")
        if maximum is not None and value > maximum:
            raise InvalidParameter(name, value, f"must be <= {maximum}")


@dataclass(frozen=True)
class PartQuery:
    search: Optional[str] = None
    category_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    status: tuple = ()
    condition: tuple = ()
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    is_listed_on_marketplace: Optional[bool] = None
    sort_by: str = DEFAULT_SORT
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        check_paging(self.page, self.page_size)
        if self.price_min is not None and self.price_max is not None and self.price_min > self.price_max:
            raise InvalidParameter("priceMin", self.price_min, "must not exceed priceMax")


@dataclass
class PartPage:
    items: List[Any] = field(default_factory=list)
    total_count: int = 0
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    total_pages: int = 0

    def as_dict(self):
        return {
            "items": self.items,
            "totalCount": self.total_count,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }


def _first(value):
    # repeated keys arrive as lists; scalar params take the first value
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    return value


def _parse_int(name, value, default, minimum=1, maximum=None):
    value = _first(value)
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidParameter(name, value, "expected an integer")
    if isinstance(value, int):
        n = value
    else:
        try:
            n = int(str(value), 10)
        except ValueError:
            raise InvalidParameter(name, value, "expected an integer")
    if n < minimum:
        raise InvalidParameter(name, value, f"must be >= {minimum}")
    if maximum is not None and n > maximum:
        raise InvalidParameter(name, value, f"must be <= {maximum}")
    return n


def _parse_price(name, value):
    value = _first(value)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidParameter(name, value, "expected a number")
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(name, value, "expected a number")
    if math.isnan(n) or math.isinf(n):
        raise InvalidParameter(name, value, "expected a finite number")
    return n


def _parse_bool(name, value):
    value = _first(value)
    if value is None or isinstance(value, bool):
        return value
    lowered = str(value).lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise InvalidParameter(name, value, "expected 'true' or 'false'")


def _get(raw, *names):
    for name in names:
        if name in raw:
            return raw[name]
    return None


def parse_part_query(raw: Mapping[str, Any]) -> PartQuery:
    """Build a PartQuery from raw query-string values.

    Accepts both the camelCase names used on the wire and the snake_case
    attribute names. Values may be strings or lists of strings (repeated
    keys). Multi-value filters also accept comma separated strings.
    """
    price_min = _parse_price("priceMin", _get(raw, "priceMin", "price_min"))
    price_max = _parse_price("priceMax", _get(raw, "priceMax", "price_max"))
    sort_by = _first(_get(raw, "sortBy", "sort_by")) or DEFAULT_SORT

    return PartQuery(
        search=_first(_get(raw, "search")),
        category_id=_first(_get(raw, "categoryId", "category_id")),
        vehicle_id=_first(_get(raw, "vehicleId", "vehicle_id")),
        status=tuple(split_multi(_get(raw, "status"))),
        condition=tuple(split_multi(_get(raw, "condition"))),
        price_min=price_min,
        price_max=price_max,
        is_listed_on_marketplace=_parse_bool(
            "isListedOnMarketplace",
            _get(raw, "isListedOnMarketplace", "is_listed_on_marketplace"),
        ),
        sort_by=str(sort_by),
        page=_parse_int("page", _get(raw, "page"), DEFAULT_PAGE),
        page_size=_parse_int(
            "pageSize", _get(raw, "pageSize", "page_size"), DEFAULT_PAGE_SIZE, maximum=MAX_PAGE_SIZE
        ),
    )


def _matches(part, q: PartQuery) -> bool:
    if q.search:
        needle = q.search.lower()
        fields = [part.name, part.description, getattr(part, "part_number", None)]
        if not any(f is not None and needle in str(f).lower() for f in fields):
            return False
    if q.category_id is not None and part.category_id != q.category_id:
        return False
    if q.vehicle_id is not None and part.vehicle_id != q.vehicle_id:
        return False
    if q.status and part.status not in q.status:
        return False
    if q.condition and part.condition not in q.condition:
        return False
    if q.price_min is not None and part.price < q.price_min:
        return False
    if q.price_max is not None and part.price > q.price_max:
        return False
    # None means "no filter"; False is a real filter value
    if q.is_listed_on_marketplace is not None and \
            bool(part.is_listed_on_marketplace) is not q.is_listed_on_marketplace:
        return False
    return True


def filter_parts(parts: Sequence[Any], q: PartQuery) -> List[Any]:
    return [p for p in parts if _matches(p, q)]


def _created_key(part):
    dt = getattr(part, "created_at", None)
    if dt is None:
        return _EPOCH
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _name_key(part):
    text = part.name or ""
    folded = unicodedata.normalize("NFKD", text.casefold())
    base = "".join(c for c in folded if not unicodedata.combining(c))
    return (base, text)


def sort_parts(parts: Sequence[Any], sort_by: str) -> List[Any]:
    """Return a sorted copy. Python's sort is stable, including with
    reverse=True, so ties keep their input order."""
    if sort_by == "newest":
        return sorted(parts, key=_created_key, reverse=True)
    if sort_by == "oldest":
        return sorted(parts, key=_created_key)
    if sort_by == "name":
        return sorted(parts, key=_name_key)
    if sort_by == "price_asc":
        return sorted(parts, key=lambda p: p.price)
    if sort_by == "price_desc":
        return sorted(parts, key=lambda p: p.price, reverse=True)
    return list(parts)


def paginate(items: Sequence[Any], page: int, page_size: int) -> PartPage:
    check_paging(page, page_size)
    total = len(items)
    start = (page - 1) * page_size
    return PartPage(
        items=list(items[start:start + page_size]),
        total_count=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


def list_parts(parts: Sequence[Any], params) -> PartPage:
    q = params if isinstance(params, PartQuery) else parse_part_query(params or {})
    matched = filter_parts(parts, q)
    return paginate(sort_parts(matched, q.sort_by), q.page, q.page_size)
