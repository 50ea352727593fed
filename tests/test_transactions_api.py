import io
import sqlite3
from datetime import date

import pytest

from finance_tracker import db


def test_create_and_fetch(client, headers, create_tx):
    created = create_tx(
        headers, type="expense", amount=42.5, category="Food", merchant="Cafe",
        description="Lunch", date="2024-03-15", tags=["work", "lunch"],
    )
    assert created["id"]
    assert created["type"] == "expense"
    assert created["amount"] == 42.5
    assert created["date"] == "2024-03-15"
    assert created["tags"] == ["work", "lunch"]

    resp = client.get(f"/api/transactions/{created['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json() == created


def test_date_defaults_to_today(headers, create_tx):
    created = create_tx(headers, type="income", amount=10, source="Gift")
    assert created["date"] == date.today().isoformat()


def test_blank_labels_are_stored_as_null(headers, create_tx):
    created = create_tx(headers, type="expense", amount=1, category="   ", merchant="")
    assert created["category"] is None
    assert created["merchant"] is None


@pytest.mark.parametrize("payload", [
    {"amount": 10},
    {"type": "transfer", "amount": 10},
    {"type": "expense"},
    {"type": "expense", "amount": 0},
    {"type": "expense", "amount": -5},
    {"type": "expense", "amount": True},
    {"type": "expense", "amount": "abc5"},
    {"type": "expense", "amount": "$12"},
    {"type": "expense", "amount": 10, "date": "9999-12-31"},
    {"type": "expense", "amount": 10, "date": "1850-06-01"},
    {"type": "expense", "amount": 10, "date": "31st of never"},
    {"type": "expense", "amount": 10, "category": 12},
    {"type": "expense", "amount": 10, "tags": "not-a-list"},
])
def test_validation_errors(client, headers, payload):
    resp = client.post("/api/transactions", json=payload, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["msg"]
    listing = client.get("/api/transactions", headers=headers).get_json()
    assert listing["total"] == 0


def test_numeric_string_amount(client, headers, create_tx):
    assert create_tx(headers, type="expense", amount=" 12.50 ")["amount"] == 12.5


def test_non_json_body(client, headers):
    resp = client.post("/api/transactions", data="amount=10", headers=headers)
    assert resp.status_code == 400


def test_edit_is_reflected_in_category_totals(client, headers, create_tx):
    created = create_tx(headers, type="expense", amount=100, category="Food", date="2024-03-15")

    resp = client.put(f"/api/transactions/{created['id']}", json={"amount": 150}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["amount"] == 150

    stats = client.get("/api/stats/category?month=3&year=2024", headers=headers).get_json()
    assert stats == [{"category": "Food", "total": 150}]


def test_edit_ignores_id_and_owner(client, headers, create_tx):
    created = create_tx(headers, type="expense", amount=5, date="2024-01-01")
    resp = client.put(
        f"/api/transactions/{created['id']}",
        json={"id": 9999, "owner_id": 12345, "user_id": 12345, "description": "renamed"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["id"] == created["id"]
    assert body["owner_id"] == created["owner_id"]
    assert body["description"] == "renamed"


def test_edit_can_change_kind(client, headers, create_tx):
    created = create_tx(headers, type="expense", amount=5, merchant="Shop")
    resp = client.put(
        f"/api/transactions/{created['id']}", json={"type": "income", "source": "Refund"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.get_json()["type"] == "income"
    assert resp.get_json()["source"] == "Refund"


def test_invalid_edit_leaves_record_unchanged(client, headers, create_tx):
    created = create_tx(headers, type="expense", amount=5)
    resp = client.put(f"/api/transactions/{created['id']}", json={"amount": -1}, headers=headers)
    assert resp.status_code == 400
    current = client.get(f"/api/transactions/{created['id']}", headers=headers).get_json()
    assert current["amount"] == 5


def test_other_owner_cannot_see_edit_or_delete(client, headers, other_headers, create_tx):
    created = create_tx(headers, type="expense", amount=77, category="Rent")
    url = f"/api/transactions/{created['id']}"

    assert client.get(url, headers=other_headers).status_code == 404
    assert client.put(url, json={"amount": 1}, headers=other_headers).status_code == 404

    resp = client.delete(url, headers=other_headers)
    assert resp.status_code == 404
    assert resp.get_json()["msg"] == "transaction not found"

    still_there = client.get(url, headers=headers)
    assert still_there.status_code == 200
    assert still_there.get_json() == created


def test_foreign_and_missing_ids_look_the_same(client, headers, other_headers, create_tx):
    created = create_tx(headers, type="expense", amount=1)
    foreign = client.delete(f"/api/transactions/{created['id']}", headers=other_headers)
    missing = client.delete("/api/transactions/987654", headers=other_headers)
    assert foreign.status_code == missing.status_code == 404
    assert foreign.get_json() == missing.get_json()


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_unstorable_id_is_not_found(client, headers, create_tx, method):
    create_tx(headers, type="expense", amount=1)
    call = getattr(client, method)
    resp = call("/api/transactions/99999999999999999999", json={"amount": 2}, headers=headers)
    assert resp.status_code == 404
    assert resp.get_json()["msg"] == "transaction not found"


def test_delete(client, headers, create_tx):
    created = create_tx(headers, type="expense", amount=1)
    resp = client.delete(f"/api/transactions/{created['id']}", headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/api/transactions/{created['id']}", headers=headers).status_code == 404


class TestListing:
    @pytest.fixture
    def ledger(self, headers, other_headers, create_tx):
        create_tx(headers, type="expense", amount=10, category="Food", merchant="FreshMart",
                  description="Weekly GROCERIES run", date="2024-01-05")
        create_tx(headers, type="expense", amount=20, category="Transport", merchant="Metro",
                  description="Card top-up", date="2024-02-10")
        create_tx(headers, type="income", amount=1000, source="Salary",
                  description="February pay", date="2024-02-28")
        create_tx(headers, type="expense", amount=5, category="Food", merchant="100% Juice",
                  date="2024-03-01")
        create_tx(other_headers, type="expense", amount=999, category="Food", date="2024-02-11")

    def _list(self, client, headers, **params):
        resp = client.get("/api/transactions", query_string=params, headers=headers)
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()

    def test_scoped_and_most_recent_first(self, client, headers, ledger):
        body = self._list(client, headers)
        assert body["total"] == 4
        assert body["page"] == 1
        assert body["page_size"] == 50
        assert [tx["date"] for tx in body["items"]] == [
            "2024-03-01", "2024-02-28", "2024-02-10", "2024-01-05"
        ]

    def test_pagination(self, client, headers, ledger):
        body = self._list(client, headers, page=2, page_size=3)
        assert body["total"] == 4
        assert len(body["items"]) == 1
        assert body["items"][0]["date"] == "2024-01-05"

    def test_page_size_is_clamped(self, client, headers, ledger):
        assert self._list(client, headers, page_size=10000)["page_size"] == 500

    def test_filter_by_kind_and_category(self, client, headers, ledger):
        assert self._list(client, headers, type="income")["total"] == 1
        body = self._list(client, headers, category="Food")
        assert {tx["amount"] for tx in body["items"]} == {10, 5}
        assert self._list(client, headers, source="Salary")["total"] == 1

    def test_month_filter(self, client, headers, ledger):
        body = self._list(client, headers, month=2, year=2024, start="2024-01-01", end="2024-12-31")
        assert [tx["date"] for tx in body["items"]] == ["2024-02-28", "2024-02-10"]

    def test_range_end_is_inclusive(self, client, headers, ledger):
        body = self._list(client, headers, start="2024-02-10", end="2024-02-28")
        assert body["total"] == 2

    def test_search_is_case_insensitive_on_description_or_merchant(self, client, headers, ledger):
        assert self._list(client, headers, search="groceries")["total"] == 1
        assert self._list(client, headers, search="freshmart")["total"] == 1
        assert self._list(client, headers, search="METRO")["total"] == 1
        assert self._list(client, headers, search="pay")["total"] == 1

    def test_search_folds_non_ascii_case(self, client, headers, ledger, create_tx):
        create_tx(headers, type="expense", amount=4, merchant="Straße Bäckerei",
                  description="CAFÉ NOIR", date="2024-03-02")
        assert self._list(client, headers, search="café")["total"] == 1
        assert self._list(client, headers, search="Café Noir")["total"] == 1
        assert self._list(client, headers, search="STRASSE")["total"] == 1

    def test_search_wildcards_are_literal(self, client, headers, ledger):
        assert self._list(client, headers, search="100%")["total"] == 1
        assert self._list(client, headers, search="%")["total"] == 1
        assert self._list(client, headers, search="_")["total"] == 0

    def test_bad_filter(self, client, headers, ledger):
        resp = client.get("/api/transactions?month=14&year=2024", headers=headers)
        assert resp.status_code == 400

    def test_year_beyond_supported_range(self, client, headers, ledger):
        resp = client.get("/api/transactions?month=12&year=9999", headers=headers)
        assert resp.status_code == 400

    def test_huge_page_is_empty(self, client, headers, ledger):
        body = self._list(client, headers, page="99999999999999999999")
        assert body["total"] == 4
        assert body["items"] == []


def test_bulk_csv_upload(client, headers):
    csv_body = (
        "date,type,amount,category,source,merchant,description,tags\n"
        "2024-03-01,expense,12.50,Food,,Cafe,Coffee,drinks;morning\n"
        "2024-03-02,income,1000,,Salary,,March pay,\n"
        "2024-03-03,expense,-5,Food,,,Bad row,\n"
        "2024-03-04,gift,5,,,,Bad type,\n"
    )
    resp = client.post(
        "/api/transactions/bulk",
        data={"file": (io.BytesIO(csv_body.encode("utf-8")), "ledger.csv")},
        headers=headers,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["inserted"] == 2
    assert [e["row"] for e in body["errors"]] == [3, 4]

    items = client.get("/api/transactions", headers=headers).get_json()["items"]
    coffee = next(tx for tx in items if tx["description"] == "Coffee")
    assert coffee["amount"] == 12.5
    assert coffee["tags"] == ["drinks", "morning"]


def test_bulk_csv_amounts_allow_currency_formatting(client, headers):
    csv_body = (
        "date,type,amount,description\n"
        "2024-03-01,expense,\"$1,250.00\",Laptop\n"
        "2024-03-02,expense,€ 9.99,Lunch\n"
        "2024-03-03,expense,abc5,Typo\n"
        "9999-03-04,expense,5,Far future\n"
    )
    resp = client.post(
        "/api/transactions/bulk",
        data={"file": (io.BytesIO(csv_body.encode("utf-8")), "statement.csv")},
        headers=headers,
        content_type="multipart/form-data",
    )
    body = resp.get_json()
    assert body["inserted"] == 2
    assert [e["row"] for e in body["errors"]] == [3, 4]

    items = client.get("/api/transactions", headers=headers).get_json()["items"]
    assert sorted(tx["amount"] for tx in items) == [9.99, 1250.0]


def test_bulk_requires_file(client, headers):
    resp = client.post("/api/transactions/bulk", data={}, headers=headers,
                       content_type="multipart/form-data")
    assert resp.status_code == 400


def test_store_failure_is_reported(client, headers, monkeypatch):
    def boom(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(db, "find_transactions", boom)
    resp = client.get("/api/transactions", headers=headers)
    assert resp.status_code == 500
    assert "items" not in resp.get_json()
