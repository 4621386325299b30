"""Shared pytest fixtures: an in-memory stand-in for the Motor database and an API client."""

import copy
import os
import re
from datetime import datetime
from types import SimpleNamespace

os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import get_db
from main import app
from utils.hash import hash_password
from utils.jwt import create_access_token


# =============================================================================
# In-memory collection
# =============================================================================

def _resolve(doc, path):
    values = [doc]
    for part in path.split("."):
        found = []
        for value in values:
            if isinstance(value, dict) and part in value:
                found.append(value[part])
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, dict) and part in item:
                        found.append(item[part])
        values = found
    return values


def _candidates(doc, path):
    out = []
    for value in _resolve(doc, path):
        out.append(value)
        if isinstance(value, list):
            out.extend(value)
    return out


def _compare(values, op, target):
    checks = {
        "$gt": lambda v: v > target,
        "$gte": lambda v: v >= target,
        "$lt": lambda v: v < target,
        "$lte": lambda v: v <= target,
    }
    return any(v is not None and not isinstance(v, list) and checks[op](v) for v in values)


def _match_ops(values, cond):
    for op, target in cond.items():
        if op == "$in":
            if not any(v in target for v in values):
                return False
        elif op == "$ne":
            if any(v == target for v in values):
                return False
        elif op in ("$gt", "$gte", "$lt", "$lte"):
            if not _compare(values, op, target):
                return False
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
            if not any(isinstance(v, str) and re.search(target, v, flags) for v in values):
                return False
        elif op == "$options":
            continue
        else:
            raise NotImplementedError(op)
    return True


TEXT_FIELDS = ("title", "description", "tags")


def _text_match(doc, search):
    """Rough stand-in for a text index: any term appears in an indexed field."""
    haystack = " ".join(str(v) for f in TEXT_FIELDS for v in _candidates(doc, f)).lower()
    return any(term in haystack for term in search.lower().split())


def matches(doc, query):
    for key, cond in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
        elif key == "$text":
            if not _text_match(doc, cond["$search"]):
                return False
        elif isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not _match_ops(_candidates(doc, key), cond):
                return False
        elif cond not in _candidates(doc, key):
            return False
    return True


def _sort_key(value):
    return (0,) if value is None else (1, value)


def _sort_docs(docs, keys):
    docs = list(docs)
    for field, direction in reversed(keys):
        if isinstance(direction, dict):
            continue
        docs.sort(
            key=lambda d: _sort_key(next(iter(_resolve(d, field)), None)),
            reverse=direction == -1,
        )
    return docs


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._sort = []
        self._skip = 0
        self._limit = 0

    def sort(self, key, direction=None):
        if isinstance(key, str):
            self._sort = [(key, 1 if direction is None else direction)]
        else:
            self._sort = list(key)
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    def _results(self):
        docs = _sort_docs(self._docs, self._sort)[self._skip:]
        if self._limit:
            docs = docs[:self._limit]
        return docs

    def __aiter__(self):
        self._iter = iter(self._results())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration

    async def to_list(self, length=None):
        docs = self._results()
        return docs if length is None else docs[:length]


def _expr(doc, expr):
    if isinstance(expr, str) and expr.startswith("$"):
        return next(iter(_resolve(doc, expr[1:])), None)
    if isinstance(expr, dict) and "$month" in expr:
        return _expr(doc, expr["$month"]).month
    if isinstance(expr, dict) and "$add" in expr:
        return sum(_expr(doc, e) for e in expr["$add"])
    if isinstance(expr, dict) and "$min" in expr:
        return min(_expr(doc, e) for e in expr["$min"])
    return expr


def _group(docs, arg):
    groups = {}
    for doc in docs:
        groups.setdefault(_expr(doc, arg["_id"]), []).append(doc)

    rows = []
    for key, members in groups.items():
        row = {"_id": key}
        for name, acc in arg.items():
            if name == "_id":
                continue
            (op, expr), = acc.items()
            values = [_expr(d, expr) for d in members]
            if op == "$sum":
                row[name] = sum(v or 0 for v in values)
            elif op == "$avg":
                row[name] = sum(values) / len(values)
            elif op == "$min":
                row[name] = min(values)
            elif op == "$max":
                row[name] = max(values)
            else:
                raise NotImplementedError(op)
        rows.append(row)
    return rows


class FakeCollection:
    def __init__(self, name, unique=()):
        self.name = name
        self.docs = []
        self.unique = unique

    # -- test helpers --------------------------------------------------------

    def seed(self, doc):
        doc = dict(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return doc

    def get(self, _id):
        return next((d for d in self.docs if d["_id"] == _id), None)

    # -- motor API -----------------------------------------------------------

    def _check_unique(self, doc, ignore=None):
        for fields in self.unique:
            for other in self.docs:
                if other is ignore:
                    continue
                if all(other.get(f) == doc.get(f) for f in fields):
                    raise DuplicateKeyError(
                        "E11000 duplicate key error",
                        11000,
                        {"keyValue": {f: doc.get(f) for f in fields}},
                    )

    async def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self._check_unique(doc)
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query=None, projection=None):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None, projection=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if matches(d, query)])

    async def count_documents(self, query):
        return sum(1 for d in self.docs if matches(d, query))

    @staticmethod
    def _apply(doc, update):
        if isinstance(update, list):
            # aggregation-pipeline update: only $set stages with expressions
            for stage in update:
                (op, fields), = stage.items()
                if op != "$set":
                    raise NotImplementedError(op)
                values = {key: _expr(doc, expr) for key, expr in fields.items()}
                doc.update(values)
            return
        for key, value in update.get("$set", {}).items():
            doc[key] = value
        for key, value in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + value

    async def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if matches(doc, query):
                self._apply(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)

        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

        doc = {k: v for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        doc["_id"] = doc.get("_id", ObjectId())
        self._apply(doc, update)
        self.docs.append(doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])

    async def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE):
        for doc in self.docs:
            if matches(doc, query):
                before = copy.deepcopy(doc)
                self._apply(doc, update)
                return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else before
        return None

    async def delete_one(self, query):
        for doc in self.docs:
            if matches(doc, query):
                self.docs.remove(doc)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query):
        before = len(self.docs)
        self.docs = [d for d in self.docs if not matches(d, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))

    def aggregate(self, pipeline):
        docs = [copy.deepcopy(d) for d in self.docs]
        for stage in pipeline:
            (op, arg), = stage.items()
            if op == "$match":
                docs = [d for d in docs if matches(d, arg)]
            elif op == "$group":
                docs = _group(docs, arg)
            elif op == "$sort":
                docs = _sort_docs(docs, list(arg.items()))
            elif op == "$limit":
                docs = docs[:arg]
            else:
                raise NotImplementedError(op)
        return FakeCursor(docs)


class FakeDatabase:
    UNIQUE = {
        "users": [("email",)],
        "cart_items": [("user_id", "listing_id")],
    }

    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._collections:
            self._collections[name] = FakeCollection(name, self.UNIQUE.get(name, ()))
        return self._collections[name]

    __getitem__ = __getattr__

    async def command(self, name):
        return {"ok": 1}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert an account directly and return it."""

    def _make(username="alice", email=None, password="Secret123"):
        now = datetime.utcnow()
        return db.users.seed({
            "email": email or f"{username}@ecofinds.io",
            "username": username,
            "bio": "",
            "avatar": "",
            "password_hash": hash_password(password),
            "created_at": now,
            "updated_at": now,
        })

    return _make


@pytest.fixture
def make_listing(db):
    """Insert a listing owned by `owner` and return it."""

    def _make(owner, title="Vintage lamp", price=10.0, **fields):
        now = datetime.utcnow()
        doc = {
            "user_id": owner["_id"],
            "title": title,
            "description": "A well loved item in good shape",
            "category": "Furniture",
            "condition": "Good",
            "price": price,
            "image": "",
            "location": "Portland",
            "tags": [],
            "is_available": True,
            "views": 0,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(fields)
        return db.listings.seed(doc)

    return _make


@pytest.fixture
def make_cart_entry(db):
    def _make(user, listing, quantity=1):
        now = datetime.utcnow()
        return db.cart_items.seed({
            "user_id": user["_id"],
            "listing_id": listing["_id"],
            "quantity": quantity,
            "added_at": now,
            "updated_at": now,
        })

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(str(user['_id']))}"}

    return _headers


@pytest.fixture
def seller(make_user):
    return make_user("seller")


@pytest.fixture
def buyer(make_user):
    return make_user("buyer")
