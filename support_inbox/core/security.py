# support_inbox/core/security.py
from datetime import datetime, timedelta, timezone

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from support_inbox.core.config import Settings, get_settings

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: int
    email: str | None = None


def create_access_token(
    user_id: int,
    email: str | None = None,
    settings: Settings | None = None,
    expires_delta: timedelta = timedelta(hours=8),
) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    claims = {"sub": str(user_id), "email": email, "iat": now, "exp": now + expires_delta}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> CurrentUser:
    claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    return CurrentUser(id=int(claims["sub"]), email=claims.get("email"))


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return decode_access_token(credentials.credentials, settings)
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        logger.info("token_rejected", reason=str(exc))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token"
        ) from exc
