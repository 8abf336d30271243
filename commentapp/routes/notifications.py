from fastapi import APIRouter, Depends
from ..notification_service import notification_service
from ..schemas.users import ActionOkOut
from ..auth import get_current_user

router = APIRouter()


@router.get('')
async def my_notifications(current_user: dict = Depends(get_current_user)):
    notifications = await notification_service.get_notifications(current_user['id'])
    return {'notifications': notifications}


@router.post('/read-all', response_model=ActionOkOut)
async def mark_all_read(current_user: dict = Depends(get_current_user)):
    await notification_service.mark_all_as_read(current_user['id'])
    return {'success': True}


@router.post('/{notification_id}/read', response_model=ActionOkOut)
async def mark_read(notification_id: int, current_user: dict = Depends(get_current_user)):
    await notification_service.mark_as_read(notification_id, current_user['id'])
    return {'success': True}
