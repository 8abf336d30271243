import logging
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from .. import crud
from ..comment_service import comment_service
from ..core import get_redis, utcnow
from ..queue_manager import queue_manager
from ..workers import worker_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get('')
async def health():
    checks = {}
    try:
        await crud.ping_database()
        checks['database'] = {'status': 'up'}
    except Exception as e:
        logger.warning({'msg': 'health_database_down', 'error': str(e)})
        checks['database'] = {'status': 'down', 'error': str(e)}

    redis = await get_redis()
    checks['cache'] = {'status': 'up' if redis else 'disabled'}
    checks['queues'] = await queue_manager.get_queue_stats()
    checks['workers'] = worker_manager.get_stats()

    ok = checks['database']['status'] == 'up'
    body = {'status': 'ok' if ok else 'error', 'details': checks, 'timestamp': utcnow().isoformat()}
    return JSONResponse(body, status_code=200 if ok else 503)


@router.get('/comments')
async def comments_health():
    return {'status': 'ok', 'comments': {'status': 'up', 'metrics': await comment_service.comment_stats()}}
