# finance_tracker/balance.py
from datetime import date


def _as_date(value):
    return value if isinstance(value, date) else date.fromisoformat(str(value))


def cumulative_balance(series):
    """
    Running total over a daily net series ([{date, net}, ...]).

    Points are sorted by date first; a running sum over an unordered series
    would give the wrong balance.
    """
    points = sorted(series, key=lambda p: _as_date(p["date"]))
    running = 0.0
    out = []
    for point in points:
        running += float(point["net"])
        out.append({
            "date": point["date"],
            "net": point["net"],
            "cumulative": round(running, 2),
        })
    return out
