# finance_tracker/models.py
# lightweight model classes (not DB-bound ORM)
import json
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class Kind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def parse(cls, value):
        """Return the Kind for a wire value, or None if it is not recognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Counterparty(str, Enum):
    """Field a transaction's counterparty is read from, resolved once per kind."""
    MERCHANT = "merchant"
    SOURCE = "source"

    @classmethod
    def for_kind(cls, kind):
        if kind is Kind.EXPENSE:
            return cls.MERCHANT
        if kind is Kind.INCOME:
            return cls.SOURCE
        raise ValueError(f"no counterparty for kind {kind!r}")

    def read(self, tx):
        if self is Counterparty.MERCHANT:
            return tx.merchant
        return tx.source


@dataclass
class Transaction:
    id: Optional[int]
    owner_id: int
    kind: Kind
    amount: float
    occurred_on: date
    category: Optional[str] = None
    source: Optional[str] = None
    merchant: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        tags = row["tags"]
        return cls(
            id=row["id"],
            owner_id=row["user_id"],
            kind=Kind(row["type"]),
            amount=float(row["amount"]),
            occurred_on=date.fromisoformat(row["date"]),
            category=row["category"],
            source=row["source"],
            merchant=row["merchant"],
            description=row["description"],
            tags=json.loads(tags) if tags else [],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "type": self.kind.value,
            "amount": self.amount,
            "category": self.category,
            "source": self.source,
            "merchant": self.merchant,
            "description": self.description,
            "date": self.occurred_on.isoformat(),
            "tags": list(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class User:
    id: int
    name: str
    email: str
    password_hash: str
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            created_at=row["created_at"],
        )

    def to_dict(self):
        # password hash is never serialized
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at,
        }
