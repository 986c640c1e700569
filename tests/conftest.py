"""
Shared fixtures.

Stores run against an in-memory stand-in for a pymongo Database that
understands the subset of the query language the stores emit: equality,
$regex/$options, $gte, $lte and $lt.
"""

import re
import uuid
from datetime import datetime
from types import SimpleNamespace
from typing import Any, Dict, Optional

import pytest
from pymongo.errors import DuplicateKeyError

from schemas import Campaign, Donation, Recipient
from stores import build_stores


# ====================
# In-memory database
# ====================


def _matches_condition(value: Any, cond: Dict[str, Any]) -> bool:
    for op, arg in cond.items():
        if op == "$options":
            continue
        if op == "$regex":
            flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(arg, value, flags):
                return False
        elif value is None:
            return False
        elif op == "$gte" and not value >= arg:
            return False
        elif op == "$lte" and not value <= arg:
            return False
        elif op == "$lt" and not value < arg:
            return False
    return True


def matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for field, cond in query.items():
        value = doc.get(field)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            if not _matches_condition(value, cond):
                return False
        elif value != cond:
            return False
    return True


class FakeCollection:
    """Mock pymongo collection for store testing"""

    def __init__(self, name: str):
        self.name = name
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.fail: Optional[Exception] = None

    def _check(self):
        if self.fail is not None:
            raise self.fail

    def insert_one(self, doc):
        self._check()
        doc = dict(doc)
        doc.setdefault("_id", str(uuid.uuid4()))
        if doc["_id"] in self.docs:
            raise DuplicateKeyError(f"duplicate key: {doc['_id']}")
        self.docs[doc["_id"]] = doc
        return SimpleNamespace(inserted_id=doc["_id"])

    def find(self, query=None, projection=None):
        self._check()
        found = [dict(d) for d in self.docs.values() if matches(d, query or {})]
        if projection:
            found = [{k: v for k, v in d.items() if k == "_id" or projection.get(k)} for d in found]
        return iter(found)

    def find_one(self, query=None, projection=None):
        return next(self.find(query, projection), None)

    def replace_one(self, query, replacement):
        self._check()
        current = next((d for d in self.docs.values() if matches(d, query)), None)
        if current is None:
            return SimpleNamespace(matched_count=0, modified_count=0)
        new = dict(replacement)
        new["_id"] = current["_id"]
        modified = 0 if new == current else 1
        self.docs[current["_id"]] = new
        return SimpleNamespace(matched_count=1, modified_count=modified)

    def delete_one(self, query):
        self._check()
        current = next((d for d in self.docs.values() if matches(d, query)), None)
        if current is None:
            return SimpleNamespace(deleted_count=0)
        del self.docs[current["_id"]]
        return SimpleNamespace(deleted_count=1)


class FakeDatabase:
    name = "tesfafund_test"

    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def list_collection_names(self):
        return list(self.collections)


# ====================
# Fixtures
# ====================


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def stores(db):
    return build_stores(db)


@pytest.fixture
def recipient(stores):
    return stores.recipients.create_recipient(Recipient(
        first_name="John",
        middle_name="Michael",
        last_name="Doe",
        email="John.Doe@Example.com",
        password_hash="hashedpassword",
    ))


@pytest.fixture
def campaign(stores, recipient):
    return stores.campaigns.create_campaign(Campaign(
        title="Clean Water for Bahir Dar",
        description="Wells and filters",
        fundraising_goal=10000,
        recipient_id=recipient.id,
    ))


@pytest.fixture
def make_donation(stores):
    def _make(campaign_id: str, amount: int, timestamp: Optional[datetime] = None) -> Donation:
        return stores.donations.create_donation(
            Donation(amount=amount, campaign_id=campaign_id, timestamp=timestamp)
        )
    return _make
