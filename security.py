import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

import config
from errors import ApiError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token for a safe user projection (``id``, ``name``, ``email``, ``role``)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=config.JWT_EXPIRE_HOURS))
    to_encode = {
        "id": str(user["id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role"),
        "exp": expire,
    }
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Dict[str, Any]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(401, "Unauthorized. Token not provided.")
    try:
        payload = decode_access_token(credentials.credentials)
    except ExpiredSignatureError:
        raise ApiError(401, "Unauthorized. Token expired.")
    except JWTError as exc:
        logger.info(f"Rejected bearer token: {exc}")
        raise ApiError(401, "Unauthorized. Invalid or expired token.")
    if not payload.get("id"):
        raise ApiError(401, "Unauthorized. Invalid or expired token.")
    return payload


def require_admin(current: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if current.get("role") != "admin":
        raise ApiError(403, "Forbidden. Administrator permissions required.")
    return current
