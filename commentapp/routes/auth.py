import logging
from fastapi import APIRouter, Depends
from ..schemas.users import RegisterIn, LoginIn, RefreshIn, TokenOut, UserOut, ActionOkOut
from ..crud import (
    create_user,
    authenticate_user,
    get_user_by_email,
    get_user_by_id,
    update_refresh_token,
)
from ..auth import (
    get_current_user,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_token,
    check_email,
    check_password_strength,
    normalize_email,
)
from ..core import utcnow
from ..exceptions import BadRequest, Unauthorized

logger = logging.getLogger(__name__)

router = APIRouter()


async def issue_tokens(user) -> dict:
    claims = {'sub': str(user.id), 'email': user.email}
    access = create_access_token(claims)
    refresh = create_refresh_token(claims)
    await update_refresh_token(user.id, hash_token(refresh), login_at=utcnow())
    return {
        'access_token': access,
        'refresh_token': refresh,
        'token_type': 'bearer',
        'user': {'id': user.id, 'email': user.email},
    }


@router.post('/register', response_model=UserOut)
async def register(payload: RegisterIn):
    if not payload.email or not payload.password:
        raise BadRequest('Email and password are required')
    email = check_email(payload.email)
    check_password_strength(payload.password)

    if await get_user_by_email(email):
        raise Unauthorized('Email already in use')

    user = await create_user(email, payload.password)
    logger.info({'msg': 'user_registered', 'user_id': user.id})
    return user


@router.post('/login', response_model=TokenOut)
async def login(payload: LoginIn):
    if not payload.email or not payload.password:
        raise BadRequest('Email and password are required')
    user = await authenticate_user(normalize_email(payload.email), payload.password)
    if not user:
        raise Unauthorized('Invalid email or password')
    return await issue_tokens(user)


@router.post('/refresh', response_model=TokenOut)
async def refresh(payload: RefreshIn):
    claims = decode_refresh_token(payload.refresh_token)
    if not claims:
        raise Unauthorized('Invalid refresh token')
    user = await get_user_by_id(int(claims['sub']))
    if not user or user.refresh_token_hash != hash_token(payload.refresh_token):
        raise Unauthorized('Invalid refresh token')
    return await issue_tokens(user)


@router.post('/logout', response_model=ActionOkOut)
async def logout(current_user: dict = Depends(get_current_user)):
    await update_refresh_token(current_user['id'], None)
    return {'success': True}


@router.get('/profile', response_model=UserOut)
async def profile(current_user: dict = Depends(get_current_user)):
    user = await get_user_by_id(current_user['id'])
    if not user:
        raise Unauthorized('User not found')
    return user
