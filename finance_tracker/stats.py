# finance_tracker/stats.py
import logging
import sqlite3
from datetime import date

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from . import aggregation, db
from .balance import cumulative_balance
from .dates import EPOCH, day_after, month_bounds
from .models import Kind
from .query_builder import LedgerQuery, parse_date_arg, parse_int, parse_kind, parse_month_filter

logger = logging.getLogger("finance-tracker")

bp = Blueprint("stats", __name__)

TRUTHY = {"1", "true", "yes", "y", "on"}


def _store_failure(what, e):
    # never answer with an empty report when the store failed
    logger.exception(f"{what} query failed")
    return jsonify({"msg": f"Failed to compute {what}", "error": str(e)}), 500


def _month_query(kind, month, year):
    query = LedgerQuery(kind=kind)
    if month is not None:
        query.date_from, query.date_until = month_bounds(year, month)
    return query


@bp.route("/category", methods=["GET"])
@jwt_required()
def category_stats():
    """GET /api/stats/category?month=&year= -> total expense per category"""
    user_id = int(get_jwt_identity())
    (month, year), error = parse_month_filter(request.args)
    if error:
        return jsonify({"msg": error}), 400

    try:
        rows = db.find_transactions(user_id, _month_query(Kind.EXPENSE, month, year))
    except sqlite3.Error as e:
        return _store_failure("category totals", e)

    return jsonify(aggregation.category_totals(rows, month=month, year=year))


@bp.route("/monthly", methods=["GET"])
@jwt_required()
def monthly_stats():
    """GET /api/stats/monthly?months=12 -> income & expense per month, oldest first"""
    user_id = int(get_jwt_identity())
    if str(request.args.get("months", "")).strip().lower() == "all":
        months = None
    else:
        months, error = parse_int(request.args, "months", 12)
        if error:
            return jsonify({"msg": error}), 400
        if not 1 <= months <= aggregation.MAX_MONTHS_BACK:
            return jsonify({"msg": f"months must be between 1 and {aggregation.MAX_MONTHS_BACK}, or \"all\""}), 400

    query = LedgerQuery()
    if months is not None:
        query.date_from = aggregation.window_start(months)

    try:
        rows = db.find_transactions(user_id, query)
    except sqlite3.Error as e:
        return _store_failure("monthly totals", e)

    logger.info(f"Monthly stats for user {user_id}: {len(rows)} transactions, window={months}")
    return jsonify(aggregation.monthly_totals(rows, months_back=months))


@bp.route("/net", methods=["GET"])
@jwt_required()
def net_stats():
    """
    GET /api/stats/net?start=&end= -> daily net savings, oldest first.

    With cumulative=1 each point also carries the running balance.
    """
    user_id = int(get_jwt_identity())
    start, error = parse_date_arg(request.args, "start")
    if error:
        return jsonify({"msg": error}), 400
    end, error = parse_date_arg(request.args, "end")
    if error:
        return jsonify({"msg": error}), 400
    start = start or EPOCH
    end = end or date.today()
    if end < start:
        return jsonify({"msg": "end must not be before start"}), 400

    try:
        rows = db.find_transactions(user_id, LedgerQuery(date_from=start, date_until=day_after(end)))
    except sqlite3.Error as e:
        return _store_failure("net savings", e)

    series = aggregation.net_series(rows, start=start, end=end)
    if str(request.args.get("cumulative", "")).strip().lower() in TRUTHY:
        series = cumulative_balance(series)
    return jsonify(series)


@bp.route("/top-merchants", methods=["GET"])
@jwt_required()
def top_merchants():
    """GET /api/stats/top-merchants?type=expense&month=&year=&limit=10"""
    user_id = int(get_jwt_identity())
    kind, error = parse_kind(request.args)
    if error:
        return jsonify({"msg": error}), 400
    kind = kind or Kind.EXPENSE

    (month, year), error = parse_month_filter(request.args)
    if error:
        return jsonify({"msg": error}), 400

    limit, error = parse_int(request.args, "limit", 10)
    if error:
        return jsonify({"msg": error}), 400
    if limit < 1:
        return jsonify({"msg": "limit must be at least 1"}), 400

    try:
        rows = db.find_transactions(user_id, _month_query(kind, month, year))
    except sqlite3.Error as e:
        return _store_failure("top counterparties", e)

    return jsonify(aggregation.top_counterparties(
        rows, kind, month=month, year=year, limit=limit,
        max_limit=current_app.config["TOP_LIMIT_MAX"],
    ))


@bp.route("/overview", methods=["GET"])
@jwt_required()
def overview_stats():
    user_id = int(get_jwt_identity())
    try:
        rows = db.find_transactions(user_id)
    except sqlite3.Error as e:
        return _store_failure("overview", e)
    return jsonify(aggregation.overview(rows))
