from datetime import datetime, timezone

import pytest

from wiserpin import create_app
from wiserpin.client.errors import ApiError, AuthError
from wiserpin.client.local_store import LocalStore
from wiserpin.client.records import RemoteCollection, RemotePin, parse_time
from wiserpin.config import TestConfig
from wiserpin.extensions import db


FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store():
    store = LocalStore(":memory:")
    yield store
    store.close()


class FakeRemote:
    """In-memory backend that records every call the engine makes."""

    def __init__(self):
        self.collections = {}
        self.pins = {}
        self.calls = []
        self.fail_pin_ids = set()
        self.auth_fail_pin_ids = set()
        self.list_hook = None
        self.online = True

    def is_reachable(self):
        return self.online

    def list_collections(self):
        self.calls.append(("list_collections", None))
        if self.list_hook:
            self.list_hook()
        return list(self.collections.values())

    def list_pins(self, collection_id=None):
        self.calls.append(("list_pins", None))
        return list(self.pins.values())

    def create_collection(self, data):
        self.calls.append(("create_collection", data["id"]))
        existing = self.collections.get(data["id"])
        if existing:
            return existing
        collection = RemoteCollection(
            id=data["id"],
            name=data["name"],
            description=data.get("description"),
            color=data.get("color"),
            created_at=FIXED_NOW,
        )
        self.collections[collection.id] = collection
        return collection

    def create_pin(self, data):
        self.calls.append(("create_pin", data["id"]))
        if data["id"] in self.auth_fail_pin_ids:
            raise AuthError("invalid or expired token")
        if data["id"] in self.fail_pin_ids:
            raise ApiError("HTTP 500: Internal Server Error", status=500)
        existing = self.pins.get(data["id"])
        if existing:
            return existing
        pin = RemotePin(
            id=data["id"],
            url=data["url"],
            title=data.get("title") or "",
            description=data.get("description"),
            image_url=data.get("imageUrl"),
            collection_id=data.get("collectionId"),
            created_at=FIXED_NOW,
        )
        self.pins[pin.id] = pin
        return pin

    def seed_collection(self, collection_id, name="Remote", description=None):
        self.collections[collection_id] = RemoteCollection(
            id=collection_id,
            name=name,
            description=description,
            color="#3B82F6",
            created_at=parse_time("2026-01-02T03:04:05+00:00"),
        )

    def seed_pin(self, pin_id, url, collection_id, description=None):
        self.pins[pin_id] = RemotePin(
            id=pin_id,
            url=url,
            title=f"Title {pin_id}",
            description=description,
            collection_id=collection_id,
            created_at=parse_time("2026-01-02T03:04:05+00:00"),
        )

    def created(self, kind):
        return [record_id for name, record_id in self.calls if name == f"create_{kind}"]

    def list_calls(self):
        return [name for name, _ in self.calls if name.startswith("list_")]


class FakeTokens:
    def __init__(self, token="token-1", session=None, refreshed="token-2"):
        self.token = token
        self.session = session
        self.refreshed = refreshed
        self.refresh_calls = 0

    def get_token(self):
        return self.token

    def refresh(self):
        self.refresh_calls += 1
        if self.session is None:
            return None
        self.token = self.refreshed
        return self.token


class FakeScheduler:
    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger, id=None, replace_existing=False, **kwargs):
        self.jobs[id] = {"func": func, "trigger": trigger, **kwargs}

    def get_job(self, job_id):
        return self.jobs.get(job_id)

    def remove_job(self, job_id):
        del self.jobs[job_id]


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def tokens():
    return FakeTokens()


@pytest.fixture
def scheduler():
    return FakeScheduler()
