"""
Pytest fixtures for store-pos tests.

Provides in-memory stand-ins for the Mongo database and the Redis client,
an application wired with them, and token helpers.
"""
import copy
import fnmatch
import os
import re
from datetime import timedelta
from types import SimpleNamespace

os.environ.setdefault("APP_LOG_TO_FILE", "false")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

import pytest
import redis
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from store_pos import create_app
from store_pos.constants.service_code import ROLES
from store_pos.security.auth import generate_token
from store_pos.utils.helpers import utcnow


_MISSING = object()


# ---------------------------------------------------------------------------
# Fake Mongo
# ---------------------------------------------------------------------------

def _resolve(value, parts):
    """All values reachable at a dotted path, descending into arrays."""
    if not parts:
        return [value]
    if isinstance(value, list):
        found = []
        for item in value:
            found.extend(_resolve(item, parts))
        return found
    if isinstance(value, dict) and parts[0] in value:
        return _resolve(value[parts[0]], parts[1:])
    return []


def _candidates(doc, path):
    found = _resolve(doc, path.split("."))
    expanded = []
    for value in found:
        expanded.append(value)
        if isinstance(value, list):
            expanded.extend(value)
    return expanded


def _match_condition(values, cond):
    if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$options":
                continue
            if op == "$exists":
                if bool(values) != bool(arg):
                    return False
            elif op == "$in":
                if not any(v in arg for v in values):
                    return False
            elif op == "$ne":
                if any(v == arg for v in values):
                    return False
            elif op == "$lt":
                if not any(v is not None and v < arg for v in values):
                    return False
            elif op == "$lte":
                if not any(v is not None and v <= arg for v in values):
                    return False
            elif op == "$gt":
                if not any(v is not None and v > arg for v in values):
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                if not any(isinstance(v, str) and re.search(arg, v, flags) for v in values):
                    return False
            else:
                raise AssertionError(f"unsupported operator in fake collection: {op}")
        return True
    return any(v == cond for v in values)


def _matches(doc, query):
    for key, cond in (query or {}).items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in cond):
                return False
        elif key == "$and":
            if not all(_matches(doc, sub) for sub in cond):
                return False
        elif not _match_condition(_candidates(doc, key), cond):
            return False
    return True


def _apply_update(doc, update, inserting=False):
    for op, fields in update.items():
        if op == "$set" or (op == "$setOnInsert" and inserting):
            for key, value in fields.items():
                doc[key] = copy.deepcopy(value)
        elif op == "$setOnInsert":
            continue
        elif op == "$inc":
            for key, value in fields.items():
                doc[key] = doc.get(key, 0) + value
        elif op == "$unset":
            for key in fields:
                doc.pop(key, None)
        else:
            raise AssertionError(f"unsupported update operator in fake collection: {op}")
    return doc


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, key_or_list, direction=None):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction or 1)]
        for key, direction in reversed(keys):
            self._docs.sort(
                key=lambda d: (d.get(key) is not None, d.get(key)),
                reverse=direction == -1,
            )
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    def __iter__(self):
        docs = self._docs[self._skip:]
        if self._limit:
            docs = docs[:self._limit]
        return iter([copy.deepcopy(d) for d in docs])


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []
        self.unique_keys = []

    def create_index(self, keys, unique=False, name=None, **kwargs):
        if unique:
            self.unique_keys.append(tuple(k for k, _ in keys))
        return name

    def _check_unique(self, candidate, ignore=None):
        for fields in self.unique_keys:
            key = tuple(candidate.get(f, _MISSING) for f in fields)
            for doc in self.docs:
                if doc is ignore:
                    continue
                if tuple(doc.get(f, _MISSING) for f in fields) == key:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {fields}")

    def _first(self, query):
        for doc in self.docs:
            if _matches(doc, query):
                return doc
        return None

    def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        stored = copy.deepcopy(doc)
        self._check_unique(stored)
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    def find_one(self, query=None):
        doc = self._first(query)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, query=None):
        return FakeCursor([d for d in self.docs if _matches(d, query)])

    def count_documents(self, query):
        return sum(1 for d in self.docs if _matches(d, query))

    def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE, **kwargs):
        doc = self._first(query)
        if doc is None:
            return None
        before = copy.deepcopy(doc)
        updated = _apply_update(copy.deepcopy(doc), update)
        self._check_unique(updated, ignore=doc)
        doc.clear()
        doc.update(updated)
        return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else before

    def update_one(self, query, update, upsert=False):
        doc = self._first(query)
        if doc is not None:
            updated = _apply_update(copy.deepcopy(doc), update)
            self._check_unique(updated, ignore=doc)
            modified = updated != doc
            doc.clear()
            doc.update(updated)
            return SimpleNamespace(matched_count=1, modified_count=int(modified), upserted_id=None)

        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

        new_doc = {k: v for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        _apply_update(new_doc, update, inserting=True)
        result = self.insert_one(new_doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=result.inserted_id)

    def update_many(self, query, update):
        modified = 0
        for doc in self.docs:
            if _matches(doc, query):
                _apply_update(doc, update)
                modified += 1
        return SimpleNamespace(matched_count=modified, modified_count=modified)

    def delete_one(self, query):
        doc = self._first(query)
        if doc is None:
            return SimpleNamespace(deleted_count=0)
        self.docs.remove(doc)
        return SimpleNamespace(deleted_count=1)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


# ---------------------------------------------------------------------------
# Fake Redis
# ---------------------------------------------------------------------------

class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def delete(self, key):
        self.ops.append(key)
        return self

    def execute(self):
        return [self.client.delete(key) for key in self.ops]


class FakeRedis:
    """Just enough of redis.Redis (decode_responses=True) for the cache client."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.fail = False
        self.commands = []

    def _call(self, name):
        self.commands.append(name)
        if self.fail:
            raise redis.ConnectionError("Connection refused")

    def ping(self):
        self._call("ping")
        return True

    def close(self):
        pass

    def get(self, key):
        self._call("get")
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self._call("setex")
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        self._call("delete")
        deleted = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    def pipeline(self, transaction=True):
        self._call("pipeline")
        return FakePipeline(self)

    def scan_iter(self, match=None, count=None):
        self._call("scan")
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def keys(self, pattern="*"):
        raise AssertionError("KEYS must not be used")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def app(fake_db, fake_redis):
    app = create_app(
        config_overrides={
            "TESTING": True,
            "RATELIMIT_ENABLED": False,
            "SECRET_KEY": "test-secret",
        },
        db_client=fake_db,
        cache_client=fake_redis,
    )
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return SimpleNamespace(
        cache=app.extensions["barcode_cache"],
        products=app.extensions["product_service"],
        subscriptions=app.extensions["subscription_manager"],
        accounts=app.extensions["store_account_service"],
    )


@pytest.fixture
def make_store(fake_db):
    def _make(store_id="s1", days_left=30, is_active=True):
        now = utcnow()
        doc = {
            "store_id": store_id,
            "name": f"Store {store_id}",
            "subscription_start_date": now - timedelta(days=365),
            "subscription_end_date": now + timedelta(days=days_left),
            "is_active": is_active,
            "created_at": now,
            "updated_at": now,
        }
        fake_db["stores"].insert_one(doc)
        return doc
    return _make


@pytest.fixture
def make_account(fake_db):
    def _make(store_id="s1", due_balance=0, threshold=10000, is_paused=False, total_paid=0, versioned=True):
        doc = {
            "store_id": store_id,
            "store_name": f"Store {store_id}",
            "total_earned": due_balance + total_paid,
            "total_paid": total_paid,
            "due_balance": due_balance,
            "threshold": threshold,
            "is_paused": is_paused,
            "paused_at": utcnow() if is_paused else None,
            "paused_reason": "Due balance exceeded threshold" if is_paused else None,
            "last_payment_date": None,
            "last_payment_amount": None,
        }
        if versioned:
            doc["version"] = 0
        fake_db["store_accounts"].insert_one(doc)
        return doc
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(role=ROLES["MANAGER"], store_id="s1", user_id="u1"):
        token = generate_token(user_id, store_id, role)
        return {"Authorization": f"Bearer {token}"}
    return _headers
