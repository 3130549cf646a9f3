# tests/test_gateway.py
"""End-to-end tests for the live WebSocket channel."""

from datetime import timedelta

import pytest
from fastapi import WebSocketDisconnect

from chat_relay.core.security import create_access_token
from chat_relay.models import Message, User
from chat_relay.realtime.errors import AuthenticationFailure
from chat_relay.realtime.gateway import ConnectionGateway
from tests.helpers import RecordingConnection


def _ws_url(user: User, **overrides) -> str:
    token = create_access_token(user.id, **overrides)
    return f"/ws?token={token}"


def _expect_connected(ws, user: User) -> str:
    frame = ws.receive_json()
    assert frame["event"] == "connected"
    assert frame["data"]["userId"] == user.id
    return frame["data"]["handle"]


def _sync(ws) -> None:
    """Round-trip an invalid frame so every earlier step on ``ws`` has finished."""
    ws.send_text("sync")
    frame = ws.receive_json()
    assert frame == {"event": "error", "data": {"intent": None, "reason": "invalid_payload"}}


@pytest.mark.parametrize("path", ["/ws", "/ws?token=not-a-jwt"])
def test_connect_rejects_missing_or_malformed_token(client, path) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(path):
            pass
    assert exc_info.value.code == 1008


def test_connect_rejects_expired_token(client, alice) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(_ws_url(alice, expires_delta=timedelta(minutes=-5))):
            pass
    assert exc_info.value.code == 1008


def test_connect_rejects_token_for_unknown_user(client) -> None:
    token = create_access_token(999)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/ws?token={token}"):
            pass
    assert exc_info.value.code == 1008


def test_connect_accepts_bearer_header(client, app, alice, auth_headers) -> None:
    with client.websocket_connect("/ws", headers=auth_headers(alice)) as ws:
        handle = _expect_connected(ws, alice)
        assert app.state.presence.handle_of(alice.id) == handle


def test_live_message_exchange(client, app, alice, bob) -> None:
    with client.websocket_connect(_ws_url(alice)) as alice_ws, client.websocket_connect(
        _ws_url(bob)
    ) as bob_ws:
        _expect_connected(alice_ws, alice)
        _expect_connected(bob_ws, bob)
        _sync(bob_ws)

        alice_ws.send_json(
            {"event": "sendMessage", "data": {"receiverPhone": "555-2", "text": "hi"}}
        )

        received = bob_ws.receive_json()
        assert received["event"] == "receiveMessage"
        data = received["data"]
        assert data["senderId"] == alice.id
        assert data["receiverId"] == bob.id
        assert data["text"] == "hi"
        assert data["delivered"] is True
        assert data["seen"] is False

        echo = alice_ws.receive_json()
        assert echo == received
        delivered = alice_ws.receive_json()
        assert delivered == {"event": "messageDelivered", "data": {"messageId": data["id"]}}

        bob_ws.send_json({"event": "markSeen", "data": {"otherUserId": alice.id}})
        seen = alice_ws.receive_json()
        assert seen == {"event": "messageSeen", "data": {"messageIds": [data["id"]]}}


def test_typing_is_relayed(client, alice, bob) -> None:
    with client.websocket_connect(_ws_url(alice)) as alice_ws, client.websocket_connect(
        _ws_url(bob)
    ) as bob_ws:
        _expect_connected(alice_ws, alice)
        _expect_connected(bob_ws, bob)
        _sync(bob_ws)

        alice_ws.send_json({"event": "typing", "data": {"receiverId": bob.id}})
        assert bob_ws.receive_json() == {"event": "typing", "data": {"senderId": alice.id}}

        alice_ws.send_json({"event": "stopTyping", "data": {"receiverId": bob.id}})
        assert bob_ws.receive_json() == {"event": "stopTyping", "data": {"senderId": alice.id}}


def test_delete_reaches_both_parties(client, db_session, alice, bob, make_message) -> None:
    message = make_message(alice, bob, "regret", delivered=True)

    with client.websocket_connect(_ws_url(alice)) as alice_ws, client.websocket_connect(
        _ws_url(bob)
    ) as bob_ws:
        _expect_connected(alice_ws, alice)
        _expect_connected(bob_ws, bob)
        _sync(bob_ws)

        alice_ws.send_json(
            {"event": "deleteMessage", "data": {"messageId": message.id, "receiverId": bob.id}}
        )

        expected = {"event": "messageDeleted", "data": {"messageId": message.id}}
        assert bob_ws.receive_json() == expected
        assert alice_ws.receive_json() == expected

        # A repeated delete is silent; the next frame is the sync error.
        alice_ws.send_json({"event": "deleteMessage", "data": {"messageId": message.id}})
        _sync(alice_ws)

    db_session.expire_all()
    assert db_session.get(Message, message.id) is None


def test_invalid_frames_keep_connection_open(client, alice) -> None:
    with client.websocket_connect(_ws_url(alice)) as ws:
        _expect_connected(ws, alice)

        ws.send_text("{not json")
        assert ws.receive_json()["data"] == {"intent": None, "reason": "invalid_payload"}

        ws.send_json({"event": "sendMessage", "data": {"text": "no receiver"}})
        assert ws.receive_json()["data"] == {"intent": "sendMessage", "reason": "invalid_payload"}

        ws.send_json({"event": "launchRocket", "data": {}})
        assert ws.receive_json()["data"] == {"intent": "launchRocket", "reason": "invalid_payload"}

        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {
            "event": "error",
            "data": {"intent": None, "reason": "invalid_payload"},
        }

        ws.send_json({"event": "sendMessage", "data": {"receiverPhone": "000-0", "text": "hello"}})
        assert ws.receive_json() == {
            "event": "error",
            "data": {"intent": "sendMessage", "reason": "recipient_not_found"},
        }


def test_disconnect_clears_presence(client, app, db_session, alice) -> None:
    with client.websocket_connect(_ws_url(alice)) as ws:
        handle = _expect_connected(ws, alice)
        _sync(ws)
        assert app.state.presence.is_present(alice.id)
        db_session.expire_all()
        assert db_session.get(User, alice.id).live_handle == handle

    assert not app.state.presence.is_present(alice.id)


def test_stale_disconnect_keeps_newer_connection(client, app, db_session, alice) -> None:
    first = client.websocket_connect(_ws_url(alice))
    first_ws = first.__enter__()
    try:
        first_handle = _expect_connected(first_ws, alice)
        _sync(first_ws)

        with client.websocket_connect(_ws_url(alice)) as second_ws:
            second_handle = _expect_connected(second_ws, alice)
            _sync(second_ws)
            assert second_handle != first_handle

            first.__exit__(None, None, None)
            first = None

            assert app.state.presence.handle_of(alice.id) == second_handle
            db_session.expire_all()
            assert db_session.get(User, alice.id).live_handle == second_handle
    finally:
        if first is not None:
            first.__exit__(None, None, None)


def test_backlog_is_flushed_on_connect(client, db_session, alice, bob, make_message) -> None:
    queued = make_message(alice, bob, "while you were out")

    with client.websocket_connect(_ws_url(alice)) as alice_ws:
        _expect_connected(alice_ws, alice)
        _sync(alice_ws)

        with client.websocket_connect(_ws_url(bob)) as bob_ws:
            _expect_connected(bob_ws, bob)
            frame = bob_ws.receive_json()
            assert frame["event"] == "receiveMessage"
            assert frame["data"]["id"] == queued.id
            assert frame["data"]["delivered"] is True

            assert alice_ws.receive_json() == {
                "event": "messageDelivered",
                "data": {"messageId": queued.id},
            }

    db_session.expire_all()
    assert db_session.get(Message, queued.id).delivered is True


@pytest.fixture()
def gateway(presence, delivery) -> ConnectionGateway:
    return ConnectionGateway(presence, delivery, flush_backlog=False)


@pytest.mark.asyncio
async def test_gateway_disconnect_clears_live_handle(gateway, presence, db_session, alice) -> None:
    connection = RecordingConnection(user_id=alice.id)

    await gateway.connect(connection)

    assert connection.event_names == ["connected"]
    db_session.expire_all()
    assert db_session.get(User, alice.id).live_handle == connection.handle

    await gateway.disconnect(connection)

    assert not presence.is_present(alice.id)
    db_session.expire_all()
    assert db_session.get(User, alice.id).live_handle is None


@pytest.mark.asyncio
async def test_gateway_ignores_stale_disconnect(gateway, presence, db_session, alice) -> None:
    old = RecordingConnection(user_id=alice.id, handle="old")
    new = RecordingConnection(user_id=alice.id, handle="new")

    await gateway.connect(old)
    await gateway.connect(new)
    await gateway.disconnect(old)

    assert presence.handle_of(alice.id) == "new"
    db_session.expire_all()
    assert db_session.get(User, alice.id).live_handle == "new"


@pytest.mark.asyncio
async def test_gateway_authenticate_requires_existing_user(gateway, alice) -> None:
    assert await gateway.authenticate(create_access_token(alice.id)) == alice.id
    with pytest.raises(AuthenticationFailure):
        await gateway.authenticate(create_access_token(alice.id + 100))


@pytest.mark.asyncio
async def test_gateway_skips_backlog_when_disabled(gateway, alice, bob, make_message) -> None:
    make_message(alice, bob, "queued")
    connection = RecordingConnection(user_id=bob.id)

    await gateway.connect(connection)

    assert connection.event_names == ["connected"]
