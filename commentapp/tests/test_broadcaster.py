import pytest
from fastapi import WebSocketDisconnect

from commentapp.ws_manager import CommentsBroadcaster
from conftest import FakeWebSocket, token_for


@pytest.fixture
def hub():
    return CommentsBroadcaster()


@pytest.mark.asyncio
async def test_broadcast_reaches_every_socket(hub):
    anon, named = FakeWebSocket(), FakeWebSocket()
    await hub.connect(anon)
    await hub.connect(named, token_for({'id': 1, 'email': 'a@comments.io'}))

    sent = await hub.broadcast_comment({'action': 'delete', 'commentId': 9})

    assert sent == 2
    assert anon.accepted and named.accepted
    assert anon.sent == [{'event': 'commentUpdate', 'data': {'action': 'delete', 'commentId': 9}}]
    assert named.sent == anon.sent


@pytest.mark.asyncio
async def test_notify_user_only_reaches_their_sockets(hub):
    phone, laptop, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    alice = {'id': 1, 'email': 'a@comments.io'}
    await hub.connect(phone, token_for(alice))
    await hub.connect(laptop, token_for(alice))
    await hub.connect(other, token_for({'id': 2, 'email': 'b@comments.io'}))

    sent = await hub.notify_user(1, {'message': 'hi'})

    assert sent == 2
    assert phone.events('notification') == [{'message': 'hi'}]
    assert laptop.events('notification') == [{'message': 'hi'}]
    assert other.sent == []


@pytest.mark.asyncio
async def test_notify_offline_user_is_dropped(hub):
    assert await hub.notify_user(42, {'message': 'nobody home'}) == 0
    assert not hub.is_online(42)


@pytest.mark.asyncio
async def test_disconnect_cleans_up_user_mapping(hub):
    alice = {'id': 1, 'email': 'a@comments.io'}
    first = await hub.connect(FakeWebSocket(), token_for(alice))
    second = await hub.connect(FakeWebSocket(), token_for(alice))

    hub.disconnect(first)
    assert hub.is_online(1)

    hub.disconnect(second)
    assert not hub.is_online(1)
    assert 1 not in hub.user_connections
    assert hub.connections == {}

    # repeated disconnects are harmless
    hub.disconnect(second)


@pytest.mark.asyncio
async def test_invalid_token_connects_anonymously(hub):
    ws = FakeWebSocket()
    conn_id = await hub.connect(ws, 'not-a-jwt')

    assert conn_id in hub.connections
    assert hub.user_connections == {}
    assert await hub.broadcast_comment({'action': 'create'}) == 1


@pytest.mark.asyncio
async def test_failed_send_drops_socket(hub):
    alice = {'id': 1, 'email': 'a@comments.io'}
    healthy, broken = FakeWebSocket(), FakeWebSocket(fail=True)
    await hub.connect(healthy)
    await hub.connect(broken, token_for(alice))

    assert await hub.broadcast_comment({'action': 'create'}) == 1

    assert len(hub.connections) == 1
    assert not hub.is_online(1)


class ClosingSocket(FakeWebSocket):
    """Client that hangs up as soon as the server starts listening"""

    def __init__(self, hub, headers=None):
        super().__init__()
        self.hub = hub
        self.headers = headers or {}
        self.seen_online = None

    async def receive_text(self):
        self.seen_online = self.hub.is_online(1)
        raise WebSocketDisconnect()


@pytest.mark.asyncio
async def test_ws_route_registers_bearer_user_until_disconnect(monkeypatch):
    from commentapp.routes import ws as ws_routes
    hub = CommentsBroadcaster()
    monkeypatch.setattr(ws_routes, 'broadcaster', hub)
    token = token_for({'id': 1, 'email': 'a@comments.io'})
    socket = ClosingSocket(hub, {'authorization': f'Bearer {token}'})

    await ws_routes.comments_ws(socket, token=None)

    assert socket.accepted
    assert socket.seen_online is True
    assert hub.connections == {}
    assert hub.user_connections == {}
