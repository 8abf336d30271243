from typing import Dict, Optional, Set
import logging
import uuid
from fastapi import WebSocket
from .auth import user_id_from_token
from .core import WS_CONNECTIONS

logger = logging.getLogger(__name__)

COMMENT_UPDATE = 'commentUpdate'
NOTIFICATION = 'notification'


class CommentsBroadcaster:
    """
    Registry of live sockets and fan-out of comment events.

    Mutated only by connect/disconnect on the event loop; sends iterate
    over snapshots so a failing socket can be dropped mid-broadcast.
    """

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self.user_connections: Dict[int, Set[str]] = {}

    async def connect(self, websocket: WebSocket, token: Optional[str] = None) -> str:
        await websocket.accept()
        conn_id = uuid.uuid4().hex
        self.connections[conn_id] = websocket
        WS_CONNECTIONS.inc()

        user_id = user_id_from_token(token)
        if user_id is not None:
            self.user_connections.setdefault(user_id, set()).add(conn_id)
            logger.info({'msg': 'ws_connected', 'conn_id': conn_id, 'user_id': user_id})
        else:
            logger.info({'msg': 'ws_connected_anonymous', 'conn_id': conn_id, 'has_token': bool(token)})
        return conn_id

    def disconnect(self, conn_id: str):
        if self.connections.pop(conn_id, None) is None:
            return
        WS_CONNECTIONS.dec()

        for user_id, conn_ids in list(self.user_connections.items()):
            if conn_id not in conn_ids:
                continue
            conn_ids.discard(conn_id)
            if not conn_ids:
                del self.user_connections[user_id]
                logger.info({'msg': 'ws_user_offline', 'user_id': user_id})
            else:
                logger.info({'msg': 'ws_disconnected', 'conn_id': conn_id, 'user_id': user_id,
                             'remaining': len(conn_ids)})

    async def _send(self, conn_id: str, message: dict) -> bool:
        ws = self.connections.get(conn_id)
        if ws is None:
            return False
        try:
            await ws.send_json(message)
            return True
        except Exception as e:
            logger.warning({'msg': 'ws_send_failed', 'conn_id': conn_id, 'error': str(e)})
            self.disconnect(conn_id)
            return False

    async def broadcast_comment(self, payload: dict) -> int:
        """Send a commentUpdate to every connected client"""
        message = {'event': COMMENT_UPDATE, 'data': payload}
        sent = 0
        for conn_id in list(self.connections):
            if await self._send(conn_id, message):
                sent += 1
        return sent

    async def notify_user(self, user_id: int, notification: dict) -> int:
        """Send a notification to the user's own sockets; dropped if none"""
        message = {'event': NOTIFICATION, 'data': notification}
        sent = 0
        for conn_id in list(self.user_connections.get(user_id, ())):
            if await self._send(conn_id, message):
                sent += 1
        return sent

    def is_online(self, user_id: int) -> bool:
        return bool(self.user_connections.get(user_id))


broadcaster = CommentsBroadcaster()
