from fastapi import APIRouter, Depends, HTTPException, Query
from ..schemas.comments import CommentIn, CommentUpdateIn
from ..comment_service import comment_service, THREADS_PAGE, REPLIES_PAGE
from ..auth import get_current_user
from ..cache import check_rate_limit
from ..config import THROTTLE_LIMIT, THROTTLE_TTL

router = APIRouter()


@router.get('')
async def list_threads(skip: int = Query(0, ge=0), take: int = Query(THREADS_PAGE, ge=1, le=100)):
    return await comment_service.get_threads(skip, take)


@router.get('/{comment_id}')
async def get_comment(comment_id: int):
    return await comment_service.find_one(comment_id)


@router.get('/{comment_id}/replies')
async def get_replies(comment_id: int, skip: int = Query(0, ge=0), take: int = Query(REPLIES_PAGE, ge=1, le=100)):
    return await comment_service.get_replies(comment_id, skip, take)


@router.post('')
async def create_comment(payload: CommentIn, current_user: dict = Depends(get_current_user)):
    if not await check_rate_limit(current_user['id'], 'create_comment', limit=THROTTLE_LIMIT, window=THROTTLE_TTL):
        raise HTTPException(429, 'Rate limit exceeded. Too many comments.')
    return await comment_service.create(payload.content, current_user, payload.parent_id)


@router.patch('/{comment_id}')
async def update_comment(comment_id: int, payload: CommentUpdateIn, current_user: dict = Depends(get_current_user)):
    return await comment_service.update(comment_id, payload.content, current_user['id'])


@router.delete('/{comment_id}')
async def delete_comment(comment_id: int, current_user: dict = Depends(get_current_user)):
    return await comment_service.soft_delete(comment_id, current_user['id'])


@router.post('/{comment_id}/restore')
async def restore_comment(comment_id: int, current_user: dict = Depends(get_current_user)):
    return await comment_service.restore(comment_id, current_user['id'])
