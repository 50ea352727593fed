# finance_tracker/aggregation.py
"""
Statistics over a user's ledger.

Every function here takes an already owner-scoped iterable of Transaction and
returns plain lists/dicts ready for jsonify. Nothing is written back; the
same input always gives the same output (pass `today` to pin "now").

Missing labels: NULL, empty and whitespace-only category values are grouped
under UNCATEGORIZED; the same applies to merchant/source under UNKNOWN_COUNTERPARTY.
Months and days without transactions are omitted, not zero-filled.
"""
from datetime import date

import pandas as pd

from .dates import EPOCH, add_months, month_bounds
from .models import Counterparty, Kind

UNCATEGORIZED = "Uncategorized"
UNKNOWN_COUNTERPARTY = "Unknown"
TOP_LIMIT_MAX = 50
# a hundred years
MAX_MONTHS_BACK = 1200

_FRAME_COLUMNS = ["date", "kind", "amount", "label"]


def _to_frame(transactions, label=None):
    """One row per transaction. `label` picks the grouping label for each row."""
    rows = [
        {
            "date": tx.occurred_on,
            "kind": tx.kind.value,
            "amount": float(tx.amount),
            "label": label(tx) if label else None,
        }
        for tx in transactions
    ]
    df = pd.DataFrame(rows, columns=_FRAME_COLUMNS)
    if not df.empty:
        df["date"] = pd.to_datetime(df["date"])
        df["amount"] = pd.to_numeric(df["amount"])
    return df


def _normalize_labels(series, placeholder):
    cleaned = series.fillna("").astype(str).str.strip()
    return cleaned.where(cleaned != "", placeholder)


def _in_range(df, start=None, end=None):
    """Rows with start <= date < end; either bound may be None."""
    mask = pd.Series(True, index=df.index)
    if start is not None:
        mask &= df["date"] >= pd.Timestamp(start)
    if end is not None:
        mask &= df["date"] < pd.Timestamp(end)
    return df[mask]


def _pivot_kinds(df, keys):
    """Sum amounts per key and kind, one row per key with income/expense columns."""
    grouped = df.groupby(keys + ["kind"])["amount"].sum().unstack("kind", fill_value=0.0)
    grouped = grouped.reindex(columns=[Kind.INCOME.value, Kind.EXPENSE.value], fill_value=0.0)
    return grouped.sort_index()


def category_totals(transactions, month=None, year=None):
    """Expense total per category, optionally restricted to one calendar month."""
    df = _to_frame(transactions, label=lambda tx: tx.category)
    if df.empty:
        return []
    df = df[df["kind"] == Kind.EXPENSE.value]
    if month is not None and year is not None:
        df = _in_range(df, *month_bounds(year, month))
    if df.empty:
        return []

    df = df.assign(category=_normalize_labels(df["label"], UNCATEGORIZED))
    totals = df.groupby("category")["amount"].sum().reset_index(name="total")
    totals = totals.sort_values(by=["total", "category"], ascending=[False, True], kind="mergesort")
    return [
        {"category": str(r.category), "total": round(float(r.total), 2)}
        for r in totals.itertuples(index=False)
    ]


def window_start(months_back, today=None):
    """First day of the month `months_back - 1` months before today's month."""
    today = today or date.today()
    return add_months(today.replace(day=1), -(months_back - 1))


def monthly_totals(transactions, months_back=12, today=None):
    """
    Income and expense per calendar month, oldest first.

    months_back=None means all time. Months with no transactions are left out.
    """
    if months_back is not None and not 1 <= months_back <= MAX_MONTHS_BACK:
        raise ValueError(f"months_back must be between 1 and {MAX_MONTHS_BACK}")

    df = _to_frame(transactions)
    if df.empty:
        return []
    if months_back is not None:
        df = _in_range(df, start=window_start(months_back, today))
    if df.empty:
        return []

    df = df.assign(year=df["date"].dt.year, month=df["date"].dt.month)
    pivot = _pivot_kinds(df, ["year", "month"])

    results = []
    for (year, month), row in pivot.iterrows():
        income = round(float(row[Kind.INCOME.value]), 2)
        expense = round(float(row[Kind.EXPENSE.value]), 2)
        results.append({
            "month": date(int(year), int(month), 1).strftime("%b %Y"),
            "year": int(year),
            "month_number": int(month),
            "income": income,
            "expense": expense,
            "net": round(income - expense, 2),
        })
    return results


def net_series(transactions, start=None, end=None, today=None):
    """
    Daily net (income - expense) between start and end inclusive, oldest first.

    Yields per-day deltas only; see balance.cumulative_balance for the running total.
    """
    start = start or EPOCH
    end = end or (today or date.today())

    df = _to_frame(transactions)
    if df.empty:
        return []
    df = df[(df["date"] >= pd.Timestamp(start)) & (df["date"] <= pd.Timestamp(end))]
    if df.empty:
        return []

    df = df.assign(day=df["date"].dt.strftime("%Y-%m-%d"))
    pivot = _pivot_kinds(df, ["day"])
    net = pivot[Kind.INCOME.value] - pivot[Kind.EXPENSE.value]
    return [{"date": day, "net": round(float(value), 2)} for day, value in net.items()]


def top_counterparties(transactions, kind, month=None, year=None, limit=10, max_limit=TOP_LIMIT_MAX):
    """
    Largest counterparties by total amount for one kind.

    Expenses group by merchant, income by source. Ties are ordered by name.
    """
    kind = Kind.parse(kind)
    if kind is None:
        raise ValueError("kind must be income or expense")
    if limit < 1:
        raise ValueError("limit must be at least 1")
    limit = min(limit, max_limit)
    counterparty = Counterparty.for_kind(kind)

    df = _to_frame(
        (tx for tx in transactions if tx.kind is kind),
        label=counterparty.read,
    )
    if df.empty:
        return []
    if month is not None and year is not None:
        df = _in_range(df, *month_bounds(year, month))
    if df.empty:
        return []

    df = df.assign(name=_normalize_labels(df["label"], UNKNOWN_COUNTERPARTY))
    totals = df.groupby("name")["amount"].sum().reset_index(name="total")
    totals = totals.sort_values(by=["total", "name"], ascending=[False, True], kind="mergesort")
    return [
        {"name": str(r.name), "total": round(float(r.total), 2)}
        for r in totals.head(limit).itertuples(index=False)
    ]


def overview(transactions):
    """Lifetime income, expense and balance."""
    total_income = 0.0
    total_expense = 0.0
    count = 0
    for tx in transactions:
        count += 1
        if tx.kind is Kind.INCOME:
            total_income += tx.amount
        else:
            total_expense += tx.amount
    return {
        "total_income": round(total_income, 2),
        "total_expense": round(total_expense, 2),
        "net_balance": round(total_income - total_expense, 2),
        "transaction_count": count,
    }
