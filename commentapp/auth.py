import re
from jose import jwt, JWTError
from datetime import timedelta
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from email_validator import validate_email, EmailNotValidError
import hashlib

from . import config
from .core import utcnow
from .exceptions import BadRequest, Unauthorized

bearer_scheme = HTTPBearer(auto_error=False)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({'exp': expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_refresh_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS))
    to_encode.update({'exp': expire, 'token_type': 'refresh'})
    return jwt.encode(to_encode, config.JWT_REFRESH_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str):
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get('token_type') == 'refresh':
        return None
    return payload


def decode_refresh_token(token: str):
    try:
        payload = jwt.decode(token, config.JWT_REFRESH_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get('token_type') != 'refresh':
        return None
    return payload


def subject_id(payload):
    if not payload:
        return None
    try:
        return int(payload.get('sub'))
    except (TypeError, ValueError):
        return None


def user_id_from_token(token: str):
    """Subject of a valid access token as an int, else None"""
    return subject_id(decode_token(token) if token else None)


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    if not credentials:
        raise Unauthorized('Authentication required')
    payload = decode_token(credentials.credentials)
    user_id = subject_id(payload)
    if user_id is None:
        raise Unauthorized('Invalid or expired token')
    return {'id': user_id, 'email': payload.get('email')}


def normalize_email(email: str) -> str:
    """Canonical form of an address for lookups; unparseable input is returned as is"""
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        return email


def check_email(email: str) -> str:
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        raise BadRequest('Please enter a valid email address')


def check_password_strength(password: str):
    if len(password) < 6:
        raise BadRequest('Password must be at least 6 characters long')
    if not re.search(r'[A-Z]', password):
        raise BadRequest('Password must contain at least one uppercase letter')
    if not re.search(r'[a-z]', password):
        raise BadRequest('Password must contain at least one lowercase letter')
    if not re.search(r'[0-9]', password):
        raise BadRequest('Password must contain at least one number')
