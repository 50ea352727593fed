# finance_tracker/transactions.py
import csv
import io
import logging
import math
import re
import sqlite3
from datetime import date

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required
from werkzeug.utils import secure_filename

from . import db
from .dates import MAX_DATE, MIN_DATE, in_supported_range, parse_date
from .models import Kind
from .query_builder import build_query

logger = logging.getLogger("finance-tracker")

bp = Blueprint("transactions", __name__)

LABEL_FIELDS = ("category", "source", "merchant", "description")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
MAX_ROWS_PER_UPLOAD = 5000

# currency symbols, thousands separators and spaces seen in exported statements
CSV_AMOUNT_NOISE = re.compile(r"[\s,$€£₹]")


# ---------------- Validation ----------------
def _parse_amount(value):
    if isinstance(value, bool):
        return None, "amount must be a number"
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip())
        except ValueError:
            return None, "Invalid amount format"
    else:
        return None, "amount (number) is required"
    if math.isnan(amount) or math.isinf(amount):
        return None, "Invalid amount format"
    if amount <= 0:
        return None, "amount must be greater than 0"
    return amount, None


def _parse_label(name, value):
    if value is None:
        return None, None
    if not isinstance(value, str):
        return None, f"{name} must be a string"
    value = value.strip()
    return (value or None), None


def _parse_tags(value):
    if value is None:
        return [], None
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        return None, "tags must be a list of strings"
    return [t.strip() for t in value if t.strip()], None


def validate_transaction(data, partial=False):
    """
    Check and normalize transaction input.

    With partial=True only the keys present are validated (used by edits);
    keys outside the allow-list are ignored, so id and owner can never be set.
    Returns (fields, error).
    """
    if not isinstance(data, dict):
        return None, "JSON object body required"
    fields = {}

    if "type" in data or not partial:
        kind = Kind.parse(data.get("type"))
        if kind is None:
            return None, 'type is required and must be "expense" or "income"'
        fields["kind"] = kind

    if "amount" in data or not partial:
        amount, error = _parse_amount(data.get("amount"))
        if error:
            return None, error
        fields["amount"] = amount

    if "date" in data:
        occurred_on = parse_date(data.get("date"))
        if occurred_on is None:
            if partial or data.get("date") not in (None, ""):
                return None, "Invalid or missing date"
            occurred_on = date.today()
        if not in_supported_range(occurred_on):
            return None, f"date must be between {MIN_DATE} and {MAX_DATE}"
        fields["occurred_on"] = occurred_on
    elif not partial:
        fields["occurred_on"] = date.today()

    for name in LABEL_FIELDS:
        if name in data:
            value, error = _parse_label(name, data.get(name))
            if error:
                return None, error
            fields[name] = value

    if "tags" in data:
        tags, error = _parse_tags(data.get("tags"))
        if error:
            return None, error
        fields["tags"] = tags

    return fields, None


def _csv_row_to_payload(row):
    """Map a CSV row onto the JSON payload shape; blank cells are dropped."""
    payload = {k.strip().lower(): v for k, v in row.items() if k and v not in (None, "")}
    amount = payload.get("amount")
    if isinstance(amount, str):
        payload["amount"] = CSV_AMOUNT_NOISE.sub("", amount)
    tags = payload.get("tags")
    if isinstance(tags, str):
        payload["tags"] = [t for t in tags.split(";") if t.strip()]
    return payload


def _owner_id():
    return int(get_jwt_identity())


# ---------------- Endpoints ----------------
@bp.route("", methods=["POST"])
@jwt_required()
def create_transaction():
    user_id = _owner_id()
    fields, error = validate_transaction(request.get_json(silent=True))
    if error:
        return jsonify({"msg": error}), 400

    try:
        tx = db.insert_transaction(user_id, fields)
    except sqlite3.Error as e:
        logger.exception("DB insert failed")
        return jsonify({"msg": "Failed to create transaction", "error": str(e)}), 500

    logger.info(f"Transaction {tx.id} created for user {user_id}")
    return jsonify(tx.to_dict()), 201


@bp.route("/bulk", methods=["POST"])
@jwt_required()
def upload_csv():
    user_id = _owner_id()
    if 'file' not in request.files:
        return jsonify({"msg": "file required"}), 400

    file = request.files['file']
    raw = file.read()
    if not raw or len(raw) > MAX_UPLOAD_BYTES:
        return jsonify({"msg": "Empty file or too large"}), 400

    content = None
    for enc in ("utf-8-sig", "latin-1"):
        try:
            content = raw.decode(enc)
            break
        except UnicodeDecodeError:
            continue
    if not content:
        return jsonify({"msg": "Could not decode file"}), 400

    reader = csv.DictReader(io.StringIO(content))
    inserted, errors = 0, []

    try:
        for i, row in enumerate(reader, start=1):
            if i > MAX_ROWS_PER_UPLOAD:
                errors.append({"row": i, "reason": f"row limit of {MAX_ROWS_PER_UPLOAD} reached"})
                break

            fields, error = validate_transaction(_csv_row_to_payload(row))
            if error:
                errors.append({"row": i, "reason": error})
                continue
            db.insert_transaction(user_id, fields)
            inserted += 1
    except sqlite3.Error as e:
        logger.exception("Bulk insert failed")
        return jsonify({"msg": "Bulk insert failed", "inserted": inserted, "error": str(e)}), 500

    if errors:
        logger.warning(f"Bulk upload for user {user_id}: {len(errors)} rows rejected")
    logger.info(f"Bulk upload for user {user_id}: {inserted} rows inserted")
    return jsonify({
        "msg": "uploaded",
        "filename": secure_filename(file.filename or "upload.csv"),
        "inserted": inserted,
        "errors": errors
    }), 200


@bp.route("", methods=["GET"])
@jwt_required()
def list_transactions():
    user_id = _owner_id()
    query, error = build_query(request.args, max_page_size=current_app.config["MAX_PAGE_SIZE"])
    if error:
        return jsonify({"msg": error}), 400

    try:
        total = db.count_transactions(user_id, query)
        items = db.find_transactions(user_id, query)
    except sqlite3.Error as e:
        logger.exception("Transaction listing failed")
        return jsonify({"msg": "Failed to fetch transactions", "error": str(e)}), 500

    return jsonify({
        "total": total,
        "page": query.page,
        "page_size": query.page_size,
        "items": [tx.to_dict() for tx in items]
    })


@bp.route("/<int:tx_id>", methods=["GET"])
@jwt_required()
def get_transaction(tx_id):
    try:
        tx = db.get_transaction(_owner_id(), tx_id)
    except sqlite3.Error as e:
        logger.exception("Transaction fetch failed")
        return jsonify({"msg": "Failed to fetch transaction", "error": str(e)}), 500
    if not tx:
        return jsonify({"msg": "transaction not found"}), 404
    return jsonify(tx.to_dict())


@bp.route("/<int:tx_id>", methods=["PUT"])
@jwt_required()
def update_transaction(tx_id):
    user_id = _owner_id()
    fields, error = validate_transaction(request.get_json(silent=True), partial=True)
    if error:
        return jsonify({"msg": error}), 400

    try:
        tx = db.update_transaction(user_id, tx_id, fields)
    except sqlite3.Error as e:
        logger.exception("Transaction update failed")
        return jsonify({"msg": "Failed to update transaction", "error": str(e)}), 500
    if not tx:
        return jsonify({"msg": "transaction not found"}), 404

    logger.info(f"Transaction {tx_id} updated for user {user_id}: {sorted(fields)}")
    return jsonify(tx.to_dict())


@bp.route("/<int:tx_id>", methods=["DELETE"])
@jwt_required()
def delete_transaction(tx_id):
    user_id = _owner_id()
    try:
        deleted = db.delete_transaction(user_id, tx_id)
    except sqlite3.Error as e:
        logger.exception("Transaction delete failed")
        return jsonify({"msg": "Failed to delete transaction", "error": str(e)}), 500
    if not deleted:
        return jsonify({"msg": "transaction not found"}), 404

    logger.info(f"Transaction {tx_id} deleted for user {user_id}")
    return jsonify({"msg": "Transaction deleted", "deleted_id": tx_id})
