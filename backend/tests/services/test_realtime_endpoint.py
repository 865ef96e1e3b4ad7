"""Real-time Endpoint — verifies the /ws handshake, ping/pong, and subscribe acknowledgement.

Design Decisions:
    - Starlette TestClient (sync) drives the WebSocket; the lifespan is not run,
      collaborators are attached with an unused SQLite engine and FakeCache
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from couponhub.config import get_settings
from couponhub.main import app, attach_collaborators

from tests.services.fake_backends import FakeCache, FakeRevalidationClient


@pytest.fixture
def ws_client():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    attach_collaborators(
        app, get_settings(), async_sessionmaker(engine), FakeCache(),
        FakeRevalidationClient(),
    )
    return TestClient(app)


def test_connection_greeting(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        greeting = ws.receive_json()
        assert greeting["type"] == "connection"
        assert greeting["clientId"].startswith("client_")


def test_ping_pong(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_subscribe_acknowledged(ws_client):
    with ws_client.websocket_connect("/ws?channels=store_update") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "channels": ["coupon_update"]})
        ack = ws.receive_json()
        assert ack == {
            "type": "subscribed", "channels": ["coupon_update"],
            "timestamp": ack["timestamp"],
        }


def test_malformed_message_keeps_connection_open(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("not json")
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_dropped_subscriber_is_closed_not_acknowledged(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        client_id = ws.receive_json()["clientId"]
        # same removal a failed or slow broadcast send performs
        assert asyncio.run(app.state.registry.unsubscribe(client_id))

        ws.send_json({"type": "subscribe", "channels": ["store_update"]})
        with pytest.raises(WebSocketDisconnect) as closed:
            ws.receive_json()
        assert closed.value.code == 1013
    assert app.state.registry.active == 0
