from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import OAuth2PasswordBearer
from jose import jwt
from pydantic import BaseModel

from app.fieldledger.core.config import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/fieldledger/auth/login", auto_error=False)

DEFAULT_TOKEN_LIFETIME = timedelta(hours=8)


class TokenData(BaseModel):
    sub: str
    role: str = "USER"
    username: str | None = None


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_LIFETIME)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def is_manager(role: str | None) -> bool:
    if not role:
        return False
    return role.upper() in {item.upper() for item in settings.MANAGER_ROLES}
