from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, inspect, text

from wiserpin.client.errors import DuplicateError, NotFoundError
from wiserpin.client.local_store import SCHEMA_VERSION, SCHEMA_VERSION_KEY, LocalStore
from wiserpin.client.records import LocalCollection, LocalPin, PagePreview, Summary


def _pin(url, collection_id="c1", pin_id=None, title=None, note=None):
    return LocalPin(
        id=pin_id,
        collection_id=collection_id,
        page=PagePreview(url=url, title=title),
        note=note,
    )


def test_insert_assigns_id_and_timestamps(store):
    collection = LocalCollection(name="Reading", goal="Articles to read")

    collection_id = store.insert(collection)

    assert collection_id
    assert collection.id == collection_id
    saved = store.get(LocalCollection, collection_id)
    assert saved.name == "Reading"
    assert saved.goal == "Articles to read"
    assert saved.color == "#6366f1"
    assert saved.created_at.tzinfo is not None


def test_insert_keeps_supplied_id(store):
    store.insert(LocalCollection(id="c1", name="Reading"))
    pin_id = store.insert(_pin("https://example.com", pin_id="p1"))

    assert pin_id == "p1"
    assert store.get(LocalPin, "p1").page.url == "https://example.com"


def test_duplicate_id_raises(store):
    store.add_pin(_pin("https://example.com/a", pin_id="p1"))

    with pytest.raises(DuplicateError) as excinfo:
        store.add_pin(_pin("https://example.com/b", pin_id="p1"))
    assert excinfo.value.field == "id"


def test_get_missing_returns_none(store):
    assert store.get_collection("missing") is None
    assert store.get_pin("missing") is None


def test_list_all_and_list_by_parent(store):
    store.add_collection(LocalCollection(id="c1", name="One"))
    store.add_collection(LocalCollection(id="c2", name="Two"))
    store.add_pin(_pin("https://example.com/1", "c1"))
    store.add_pin(_pin("https://example.com/2", "c1"))
    store.add_pin(_pin("https://example.com/3", "c2"))

    assert {c.id for c in store.list_all(LocalCollection)} == {"c1", "c2"}
    assert len(store.list_all(LocalPin)) == 3
    urls = {p.page.url for p in store.list_pins_by_collection("c1")}
    assert urls == {"https://example.com/1", "https://example.com/2"}
    assert store.count_pins() == 3
    assert store.count_pins("c2") == 1


def test_same_url_allowed_under_different_ids(store):
    store.add_pin(_pin("https://example.com", pin_id="p1"))
    store.add_pin(_pin("https://example.com", pin_id="p2"))

    assert store.pin_exists("https://example.com")
    assert {p.id for p in store.list_pins_by_url("https://example.com")} == {"p1", "p2"}


def test_query_pins_searches_title_and_note(store):
    store.add_pin(_pin("https://example.com/1", title="Python packaging"))
    store.add_pin(_pin("https://example.com/2", note="read about PACKAGING later"))
    store.add_pin(_pin("https://example.com/3", title="Something else"))

    found = store.query_pins(search="packaging")

    assert {p.page.url for p in found} == {
        "https://example.com/1",
        "https://example.com/2",
    }


def test_update_and_delete_pin(store):
    store.add_pin(_pin("https://example.com", pin_id="p1"))

    updated = store.update_pin(
        "p1", note="Keep", summary=Summary(text="Short summary")
    )

    assert updated.note == "Keep"
    assert store.get_pin("p1").summary.text == "Short summary"
    assert store.get_pin("p1").collection_id == "c1"

    store.delete_pin("p1")
    assert store.get_pin("p1") is None
    with pytest.raises(NotFoundError):
        store.delete_pin("p1")
    with pytest.raises(NotFoundError):
        store.update_pin("p1", note="x")


def test_delete_collection_removes_its_pins(store):
    store.add_collection(LocalCollection(id="c1", name="One"))
    store.add_pin(_pin("https://example.com/1", "c1"))
    store.add_pin(_pin("https://example.com/2", "c2"))

    store.delete_collection("c1")

    assert store.get_collection("c1") is None
    assert [p.collection_id for p in store.list_pins()] == ["c2"]


def test_update_collection(store):
    store.add_collection(LocalCollection(id="c1", name="One"))

    store.update_collection("c1", name="Renamed", goal="New goal")

    saved = store.get_collection("c1")
    assert (saved.name, saved.goal) == ("Renamed", "New goal")
    with pytest.raises(NotFoundError):
        store.update_collection("missing", name="x")


def test_key_value_storage(store):
    assert store.get_item("settings") is None
    assert store.get_item("settings", default={}) == {}

    store.set_item("settings", {"enabled": True})
    store.set_item("settings", {"enabled": False, "syncInterval": 10})

    assert store.get_item("settings") == {"enabled": False, "syncInterval": 10}
    store.remove_item("settings")
    assert store.get_item("settings") is None
    assert store.get_item(SCHEMA_VERSION_KEY) == SCHEMA_VERSION


def test_version_one_database_is_migrated(tmp_path):
    db_path = tmp_path / "local.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE pins ("
                "id VARCHAR(64) PRIMARY KEY, collection_id VARCHAR(64) NOT NULL, "
                "page_url TEXT NOT NULL, page_title TEXT, page_og_image_url TEXT, "
                "page_site_name VARCHAR(255), summary_text TEXT, "
                "summary_created_at DATETIME, note TEXT, created_at DATETIME NOT NULL)"
            )
        )
        connection.execute(text("CREATE UNIQUE INDEX ix_pins_url ON pins (page_url)"))
        connection.execute(
            text(
                "INSERT INTO pins (id, collection_id, page_url, created_at) "
                "VALUES ('old', 'c1', 'https://example.com', '2025-01-01 00:00:00')"
            )
        )
    engine.dispose()

    store = LocalStore(str(db_path))
    try:
        indexes = inspect(store.engine).get_indexes("pins")
        assert not [index for index in indexes if index.get("unique")]
        assert store.get_pin("old").page.url == "https://example.com"

        store.add_pin(_pin("https://example.com", pin_id="new"))
        assert len(store.list_pins_by_url("https://example.com")) == 2
    finally:
        store.close()


def test_offset_timestamps_are_stored_as_utc(store):
    created = datetime(2026, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2)))
    store.add_collection(LocalCollection(id="c1", name="One", created_at=created))
    store.add_pin(
        LocalPin(
            id="p1",
            collection_id="c1",
            page=PagePreview(url="https://example.com"),
            summary=Summary(text="Summary", created_at=created),
            created_at=created,
        )
    )

    collection = store.get_collection("c1")
    pin = store.get_pin("p1")

    assert collection.created_at == created
    assert collection.created_at.utcoffset() == timedelta(0)
    assert collection.created_at.hour == 3
    assert pin.created_at == created
    assert pin.summary.created_at == created
