from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

import config
from errors import ForbiddenError, UnauthorizedError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def is_hashed(password: Optional[str]) -> bool:
    return bool(password) and password.startswith(BCRYPT_PREFIXES)


def create_token(data: dict, expires_minutes: int = config.JWT_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALG)


class AuthUser(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str = "user"
    sid: Optional[str] = None


def decode_token(token: str) -> AuthUser:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    if not payload.get("id") or not payload.get("email"):
        raise UnauthorizedError("Invalid token payload")
    return AuthUser(
        id=payload["id"],
        email=payload["email"],
        name=payload.get("name"),
        role=payload.get("role", "user"),
        sid=payload.get("sid"),
    )


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def get_current_user(authorization: Optional[str] = Header(None)) -> AuthUser:
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    token = bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Invalid Authorization header")
    return decode_token(token)


def get_optional_user(authorization: Optional[str] = Header(None)) -> Optional[AuthUser]:
    token = bearer_token(authorization)
    if not token or token.lower() == "guest-token":
        return None
    try:
        return decode_token(token)
    except UnauthorizedError:
        return None


def require_role(roles: List[str]):
    def dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in roles:
            raise ForbiddenError(f"Requires role: {', '.join(roles)}")
        return user
    return dependency
