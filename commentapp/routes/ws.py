from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from ..ws_manager import broadcaster

router = APIRouter()


@router.websocket('/comments')
async def comments_ws(websocket: WebSocket, token: str = Query(None)):
    if not token:
        auth_header = websocket.headers.get('authorization', '')
        if auth_header.lower().startswith('bearer '):
            token = auth_header[7:]
    conn_id = await broadcaster.connect(websocket, token)
    try:
        while True:
            # server push only; client frames are ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(conn_id)
