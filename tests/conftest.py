"""
Shared Test Fixtures for the Blog API

Provides an in-memory MongoDB (mongomock) behind the real ContentStore,
cheap credentials, factories for users/posts/comments, and a TestClient
with the store, credentials and asset storage swapped out.
"""

import pytest
import mongomock
from typing import Dict, List, Optional
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from auth import Credentials, Identity
from database import COLL_COMMENTS, COLL_POSTS, COLL_USERS, ContentStore, utcnow
from uploads import check_upload


# =============================================================================
# Store and Credentials Fixtures
# =============================================================================

@pytest.fixture
def store():
    """A ContentStore over a fresh mongomock database."""
    client = mongomock.MongoClient()
    return ContentStore(client["blog_test"])


@pytest.fixture
def credentials():
    """Credentials with a fixed secret and the cheapest bcrypt cost."""
    return Credentials(secret="test-secret", bcrypt_rounds=4)


# =============================================================================
# Data Factories
# =============================================================================

@pytest.fixture
def make_user(store, credentials):
    """
    Insert a user document and return it (with its ObjectId).

    Usage:
        alice = make_user("Alice")
        admin = make_user("Root", role="admin")
    """
    counter = {"n": 0}

    def _make(name: str = "Alice", email: Optional[str] = None, role: str = "user",
              password: str = "secret", created_at=None) -> Dict:
        counter["n"] += 1
        doc = {
            "name": name,
            "email": email or f"{name.lower()}{counter['n']}@example.com",
            "password_hash": credentials.hash_password(password),
            "role": role,
            "created_at": created_at or utcnow(),
        }
        doc["_id"] = store.insert(COLL_USERS, doc)
        return doc

    return _make


@pytest.fixture
def make_post(store):
    """Insert a post document directly, bypassing the service, and return it."""
    counter = {"n": 0}

    def _make(author: Dict, title: Optional[str] = None, category: str = "tech",
              status: str = "published", likes: Optional[List] = None, created_at=None) -> Dict:
        counter["n"] += 1
        title = title or f"Post {counter['n']}"
        doc = {
            "title": title,
            "content": f"Body of {title}",
            "category": category,
            "slug": title.lower().replace(" ", "-"),
            "image": None,
            "status": status,
            "author": author["_id"],
            "likes": list(likes or []),
            "comments": [],
            "created_at": created_at or utcnow(),
        }
        doc["_id"] = store.insert(COLL_POSTS, doc)
        return doc

    return _make


@pytest.fixture
def make_comment(store):
    """Insert a raw comment document (no parent bookkeeping) and return it."""
    def _make(post: Dict, user: Dict, content: str = "Nice post", created_at=None) -> Dict:
        doc = {
            "blog": post["_id"],
            "user": user["_id"],
            "content": content,
            "likes": [],
            "parent_comment": None,
            "replies": [],
            "depth": 0,
            "created_at": created_at or utcnow(),
        }
        doc["_id"] = store.insert(COLL_COMMENTS, doc)
        return doc

    return _make


def identity_of(user: Dict) -> Identity:
    return Identity(identity_id=str(user["_id"]), role=user.get("role", "user"))


# =============================================================================
# Asset Storage Fixture
# =============================================================================

class FakeAssetStorage:
    """AssetStorage double that validates like the real one and records calls."""

    def __init__(self):
        self.calls = []

    def store(self, data: bytes, mime_type: str, folder: str) -> Dict:
        check_upload(data, mime_type)
        self.calls.append((len(data), mime_type, folder))
        n = len(self.calls)
        return {"url": f"https://assets.test/{folder}/{n}", "id": f"{folder}/{n}"}


@pytest.fixture
def fake_storage():
    return FakeAssetStorage()


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def client(store, credentials, fake_storage):
    """TestClient wired to the mongomock store and fake asset storage."""
    from fastapi.testclient import TestClient
    from main import app
    from auth import get_credentials
    from database import get_store
    from uploads import get_asset_storage

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_credentials] = lambda: credentials
    app.dependency_overrides[get_asset_storage] = lambda: fake_storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(credentials):
    """Build an Authorization header for a stored user."""
    def _headers(user: Dict) -> Dict:
        token = credentials.issue_token(str(user["_id"]), user.get("role", "user"))
        return {"Authorization": f"Bearer {token}"}
    return _headers
