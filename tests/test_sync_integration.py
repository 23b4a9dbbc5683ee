import httpx
import pytest

from wiserpin.client.context import SyncContext
from wiserpin.client.errors import AuthError
from wiserpin.client.messaging import MessageType
from wiserpin.client.records import LocalCollection, LocalPin, PagePreview, Summary
from wiserpin.client.tokens import TOKEN_STORAGE_KEY, CredentialsSession
from wiserpin.config import TestClientConfig
from wiserpin.extensions import db
from wiserpin.models import Collection, Pin, User


@pytest.fixture
def server(app):
    with app.app_context():
        user = User(username="alice", is_admin=False, is_active=True)
        user.set_password("secret")
        db.session.add(user)
        db.session.flush()
        db.session.add(
            Collection(id="server-c", user_id=user.id, name="Server", description="Goal")
        )
        db.session.add(
            Pin(
                id="server-p",
                user_id=user.id,
                collection_id="server-c",
                url="https://example.com/server",
                title="From the server",
                description="Server summary",
            )
        )
        db.session.commit()
    return app


@pytest.fixture
def context(server):
    transport = httpx.WSGITransport(app=server)
    session = CredentialsSession(
        TestClientConfig.API_URL, "alice", "secret", transport=transport
    )
    context = SyncContext(
        config=TestClientConfig,
        session=session,
        transport=transport,
        is_online=lambda: True,
        dispatch=lambda func: func(),
    )
    yield context
    context.close()


def _seed_local(store):
    store.add_collection(LocalCollection(id="local-c", name="Local", goal="Reading"))
    store.add_pin(
        LocalPin(
            id="local-p",
            collection_id="local-c",
            page=PagePreview(url="https://example.com/local", title="From the client"),
            summary=Summary(text="Client summary"),
        )
    )


def test_first_sync_converges_both_sides(context, server):
    _seed_local(context.store)
    context.start()
    context.orchestrator.update_settings(enabled=True)

    report = context.orchestrator.sync()

    assert report.pulled.collection_ids == ["server-c"]
    assert report.pulled.pin_ids == ["server-p"]
    assert [(o.record_id, o.status) for o in report.pushed] == [
        ("local-c", "created"),
        ("local-p", "created"),
    ]

    pulled_pin = context.store.get_pin("server-p")
    assert pulled_pin.collection_id == "server-c"
    assert pulled_pin.summary.text == "Server summary"
    assert context.store.get_collection("server-c").goal == "Goal"

    with server.app_context():
        pushed_pin = db.session.get(Pin, "local-p")
        assert pushed_pin.collection_id == "local-c"
        assert pushed_pin.description == "Client summary"
        assert db.session.get(Collection, "local-c").description == "Reading"

    status = context.orchestrator.get_status()
    assert status.last_sync_time is not None
    assert status.error is None


def test_second_sync_creates_nothing(context, server):
    _seed_local(context.store)
    context.tokens.refresh()
    context.orchestrator.update_settings(enabled=True)
    context.orchestrator.sync()

    report = context.orchestrator.sync()

    assert report.pulled.collection_ids == []
    assert report.pulled.pin_ids == []
    assert report.pushed == []
    assert context.store.count_pins() == 2
    with server.app_context():
        assert Pin.query.count() == 2
        assert Collection.query.count() == 2


def test_rejected_token_is_refreshed_once(context):
    context.tokens.refresh()
    context.store.set_item(TOKEN_STORAGE_KEY, "wp_revoked")
    context.orchestrator.update_settings(enabled=True)

    report = context.orchestrator.sync()

    assert report.pulled.pin_ids == ["server-p"]
    assert context.tokens.get_token().startswith("ws_")


def test_wrong_password_surfaces_auth_error(server):
    transport = httpx.WSGITransport(app=server)
    session = CredentialsSession(
        TestClientConfig.API_URL, "alice", "wrong", transport=transport
    )
    context = SyncContext(
        config=TestClientConfig,
        session=session,
        transport=transport,
        is_online=lambda: True,
        dispatch=lambda func: func(),
    )
    try:
        context.start()
        context.orchestrator.update_settings(enabled=True)

        with pytest.raises(AuthError):
            context.orchestrator.sync()
        assert context.orchestrator.get_status().error is None
    finally:
        context.close()


def test_trigger_message_runs_against_server(context):
    context.tokens.refresh()
    _seed_local(context.store)
    statuses = []
    context.bus.subscribe(lambda message: statuses.append(message["status"]))

    context.bus.send({"type": MessageType.ENABLE_SYNC})

    assert statuses[-1]["isSyncing"] is False
    assert statuses[-1]["lastSyncTime"] is not None
    assert context.store.get_pin("server-p") is not None
