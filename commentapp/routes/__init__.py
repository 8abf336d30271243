from fastapi import APIRouter
from .auth import router as auth_router
from .comments import router as comments_router
from .notifications import router as notifications_router
from .health import router as health_router
from .ws import router as ws_router

router = APIRouter()
router.include_router(auth_router, prefix='/auth', tags=['auth'])
router.include_router(comments_router, prefix='/comments', tags=['comments'])
router.include_router(notifications_router, prefix='/notifications', tags=['notifications'])
router.include_router(health_router, prefix='/health', tags=['health'])
router.include_router(ws_router, prefix='/ws', tags=['ws'])
