# finance_tracker/query_builder.py
"""
Translate request filters into a LedgerQuery, the predicate db.find_transactions
and db.count_transactions understand.

Helpers return (value, error) pairs; error is a message for a 400 response.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .dates import EPOCH, MAX_DATE, MIN_DATE, day_after, in_supported_range, month_bounds, parse_date
from .models import Kind

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
# keeps LIMIT/OFFSET well inside SQLite INTEGER
MAX_PAGE = 1_000_000


@dataclass
class LedgerQuery:
    kind: Optional[Kind] = None
    date_from: Optional[date] = None   # inclusive
    date_until: Optional[date] = None  # exclusive
    category: Optional[str] = None
    source: Optional[str] = None
    search: Optional[str] = None
    page: int = 1
    page_size: Optional[int] = None    # None means unpaginated

    @property
    def offset(self):
        if self.page_size is None:
            return 0
        return (self.page - 1) * self.page_size


def _blank(value):
    return value is None or str(value).strip() == ""


def parse_int(args, name, default=None):
    raw = args.get(name)
    if _blank(raw):
        return default, None
    try:
        return int(str(raw).strip()), None
    except ValueError:
        return None, f"{name} must be an integer"


def parse_kind(args, name="type"):
    raw = args.get(name)
    if _blank(raw):
        return None, None
    kind = Kind.parse(raw)
    if kind is None:
        return None, f'{name} must be "expense" or "income"'
    return kind, None


def parse_month_filter(args):
    """Return ((month, year), error). Both or neither must be given."""
    month, error = parse_int(args, "month")
    if error:
        return (None, None), error
    year, error = parse_int(args, "year")
    if error:
        return (None, None), error
    if month is None and year is None:
        return (None, None), None
    if month is None or year is None:
        return (None, None), "month and year must be given together"
    if not 1 <= month <= 12:
        return (None, None), "month must be between 1 and 12"
    if not MIN_DATE.year <= year <= MAX_DATE.year:
        return (None, None), f"year must be between {MIN_DATE.year} and {MAX_DATE.year}"
    return (month, year), None


def parse_date_arg(args, name):
    raw = args.get(name)
    if _blank(raw):
        return None, None
    value = parse_date(raw)
    if value is None:
        return None, f"Invalid {name} date"
    if not in_supported_range(value):
        return None, f"{name} date must be between {MIN_DATE} and {MAX_DATE}"
    return value, None


def parse_date_range(args, today=None):
    """
    Resolve start/end into a half-open range [date_from, date_until).
    end is inclusive for the caller, so the whole end day is covered.
    Returns ((date_from, date_until), error); (None, None) when neither is given.
    """
    start, error = parse_date_arg(args, "start")
    if error:
        return (None, None), error
    end, error = parse_date_arg(args, "end")
    if error:
        return (None, None), error
    if start is None and end is None:
        return (None, None), None
    start = start or EPOCH
    end = end or (today or date.today())
    if end < start:
        return (None, None), "end must not be before start"
    return (start, day_after(end)), None


def build_query(args, max_page_size=MAX_PAGE_SIZE, today=None):
    """Build the paginated listing query from request args. Returns (LedgerQuery, error)."""
    query = LedgerQuery()

    query.kind, error = parse_kind(args)
    if error:
        return None, error

    (month, year), error = parse_month_filter(args)
    if error:
        return None, error
    if month is not None:
        # month + year takes precedence over start/end
        query.date_from, query.date_until = month_bounds(year, month)
    else:
        (query.date_from, query.date_until), error = parse_date_range(args, today=today)
        if error:
            return None, error

    if not _blank(args.get("category")):
        query.category = str(args.get("category")).strip()
    if not _blank(args.get("source")):
        query.source = str(args.get("source")).strip()
    if not _blank(args.get("search")):
        query.search = str(args.get("search")).strip()

    page, error = parse_int(args, "page", 1)
    if error:
        return None, error
    query.page = min(max(1, page), MAX_PAGE)

    size_name = "page_size" if not _blank(args.get("page_size")) else "limit"
    page_size, error = parse_int(args, size_name, DEFAULT_PAGE_SIZE)
    if error:
        return None, error
    query.page_size = min(max(1, page_size), max_page_size)

    return query, None
