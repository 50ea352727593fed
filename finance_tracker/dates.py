# finance_tracker/dates.py
from datetime import date, datetime, timedelta

DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%Y/%m/%d", "%d/%m/%Y"]

# lower bound used when a range has no explicit start
EPOCH = date(2000, 1, 1)

# accepted dates; pandas nanosecond timestamps stop at 2262
MIN_DATE = date(1900, 1, 1)
MAX_DATE = date(2199, 12, 31)


def parse_date(s):
    """Try multiple date formats, then ISO datetime. Returns a date or None."""
    if s is None:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = str(s).strip()
    if not s:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def first_of_month(year, month):
    return date(year, month, 1)


def add_months(d, months):
    """First day of the month `months` away from d's month (negative goes back)."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_bounds(year, month):
    """Half-open range [first of month, first of next month)."""
    start = first_of_month(year, month)
    return start, add_months(start, 1)


def day_after(d):
    return d + timedelta(days=1)


def in_supported_range(d):
    return MIN_DATE <= d <= MAX_DATE
