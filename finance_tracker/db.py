# finance_tracker/db.py
import json
import logging
import os
import sqlite3
from datetime import date

from flask import current_app, g

from .models import Kind, Transaction, User

logger = logging.getLogger("finance-tracker")

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.sql")

# largest value an INTEGER column (and a rowid) can hold
SQLITE_MAX_INTEGER = 2 ** 63 - 1

# model attribute -> column
TRANSACTION_COLUMNS = {
    "kind": "type",
    "amount": "amount",
    "category": "category",
    "source": "source",
    "merchant": "merchant",
    "description": "description",
    "occurred_on": "date",
    "tags": "tags",
}


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def get_db():
    db = getattr(g, '_database', None)
    if db is None:
        db_path = current_app.config["DB_PATH"]
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        db = g._database = sqlite3.connect(db_path)
        db.row_factory = sqlite3.Row
        db.execute("PRAGMA foreign_keys = ON")
        # SQLite lower() only folds ASCII
        db.create_function("casefold", 1, _casefold, deterministic=True)
    return db


def close_db(exception=None):
    db = g.pop('_database', None)
    if db is not None:
        try:
            db.close()
        except sqlite3.Error:
            logger.exception("Error closing DB connection")


def query_db(query, args=(), one=False):
    cur = get_db().execute(query, args)
    rv = cur.fetchall()
    cur.close()
    return (rv[0] if rv else None) if one else rv


def execute_db(query, args=()):
    """Run a single write statement and commit. Returns (lastrowid, rowcount)."""
    conn = get_db()
    cur = conn.cursor()
    try:
        cur.execute(query, args)
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    finally:
        result = (cur.lastrowid, cur.rowcount)
        cur.close()
    return result


def init_db(db_path):
    """
    Create the schema from schema.sql. Uses IF NOT EXISTS throughout,
    so it is safe to call on every startup.
    """
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        with open(SCHEMA_PATH, 'r', encoding='utf-8') as f:
            conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()


# ---------------- Users ----------------
def create_user(name, email, password_hash):
    user_id, _ = execute_db(
        "INSERT INTO users (name, email, password_hash) VALUES (?, ?, ?)",
        (name, email, password_hash)
    )
    return get_user(user_id)


def get_user(user_id):
    row = query_db("SELECT * FROM users WHERE id=?", (user_id,), one=True)
    return User.from_row(row) if row else None


def find_user_by_email(email):
    row = query_db("SELECT * FROM users WHERE email=?", (email,), one=True)
    return User.from_row(row) if row else None


# ---------------- Transactions ----------------
def _to_column_value(attr, value):
    if value is None:
        return None
    if attr == "kind":
        return Kind(value).value
    if attr == "occurred_on":
        return value.isoformat() if isinstance(value, date) else str(value)
    if attr == "tags":
        return json.dumps(list(value))
    return value


def _escape_like(text):
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _where(owner_id, query):
    """Render a LedgerQuery into a WHERE clause. The owner restriction is always first."""
    clauses = ["user_id = ?"]
    args = [owner_id]
    if query is None:
        return " WHERE " + " AND ".join(clauses), args

    if query.kind is not None:
        clauses.append("type = ?")
        args.append(query.kind.value)
    if query.date_from is not None:
        clauses.append("date >= ?")
        args.append(query.date_from.isoformat())
    if query.date_until is not None:
        clauses.append("date < ?")
        args.append(query.date_until.isoformat())
    if query.category is not None:
        clauses.append("category = ?")
        args.append(query.category)
    if query.source is not None:
        clauses.append("source = ?")
        args.append(query.source)
    if query.search:
        pattern = f"%{_escape_like(query.search.casefold())}%"
        clauses.append(
            "(casefold(description) LIKE ? ESCAPE '\\' OR casefold(merchant) LIKE ? ESCAPE '\\')"
        )
        args.extend([pattern, pattern])
    return " WHERE " + " AND ".join(clauses), args


def find_transactions(owner_id, query=None):
    """Owner's transactions matching query, most recent first. Paginated when query has a page size."""
    where, args = _where(owner_id, query)
    sql = "SELECT * FROM transactions" + where + " ORDER BY date DESC, id DESC"
    if query is not None and query.page_size is not None:
        sql += " LIMIT ? OFFSET ?"
        args = args + [query.page_size, query.offset]
    return [Transaction.from_row(r) for r in query_db(sql, args)]


def count_transactions(owner_id, query=None):
    where, args = _where(owner_id, query)
    row = query_db("SELECT COUNT(*) AS count FROM transactions" + where, args, one=True)
    return row["count"]


def _storable_id(tx_id):
    return 0 < tx_id <= SQLITE_MAX_INTEGER


def get_transaction(owner_id, tx_id):
    if not _storable_id(tx_id):
        return None
    row = query_db(
        "SELECT * FROM transactions WHERE id=? AND user_id=?", (tx_id, owner_id), one=True
    )
    return Transaction.from_row(row) if row else None


def insert_transaction(owner_id, fields):
    attrs = [a for a in TRANSACTION_COLUMNS if a in fields]
    columns = ["user_id"] + [TRANSACTION_COLUMNS[a] for a in attrs]
    values = [owner_id] + [_to_column_value(a, fields[a]) for a in attrs]
    placeholders = ",".join("?" for _ in columns)
    tx_id, _ = execute_db(
        f"INSERT INTO transactions ({','.join(columns)}) VALUES ({placeholders})",
        values
    )
    return get_transaction(owner_id, tx_id)


def update_transaction(owner_id, tx_id, fields):
    """Apply allow-listed fields. Returns the updated record, or None if not found for this owner."""
    if not _storable_id(tx_id):
        return None
    attrs = [a for a in TRANSACTION_COLUMNS if a in fields]
    if not attrs:
        return get_transaction(owner_id, tx_id)
    assignments = ", ".join(f"{TRANSACTION_COLUMNS[a]} = ?" for a in attrs)
    values = [_to_column_value(a, fields[a]) for a in attrs]
    _, count = execute_db(
        f"UPDATE transactions SET {assignments}, updated_at = CURRENT_TIMESTAMP "
        "WHERE id = ? AND user_id = ?",
        values + [tx_id, owner_id]
    )
    if not count:
        return None
    return get_transaction(owner_id, tx_id)


def delete_transaction(owner_id, tx_id):
    """Returns True when a row owned by owner_id was removed."""
    if not _storable_id(tx_id):
        return False
    _, count = execute_db(
        "DELETE FROM transactions WHERE id=? AND user_id=?", (tx_id, owner_id)
    )
    return count > 0
