"""Caller identity for the collection core.

Tokens are issued by the auth service; this module only decodes them and
exposes the ``{identity, role}`` context the workflows check against.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError, jwt

from fieldpos.core.config import JWT_SECRET, JWT_ALGO, ACCESS_TOKEN_EXPIRE_MINUTES

ROLE_AGENT = "agent"
ROLE_SUPERVISOR = "supervisor"
ROLE_ADMIN = "admin"

ROLES = (ROLE_AGENT, ROLE_SUPERVISOR, ROLE_ADMIN)
ELEVATED_ROLES = (ROLE_SUPERVISOR, ROLE_ADMIN)

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerContext:
    identity: int
    role: str

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES

    @property
    def is_agent(self) -> bool:
        return self.role == ROLE_AGENT


def create_access_token(
        identity: int,
        role: str,
        expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {"sub": str(identity), "role": role, "exp": expire}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def decode_access_token(token: str) -> CallerContext:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except ExpiredSignatureError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token expired")
    except JWTError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    role = payload.get("role")
    sub = payload.get("sub")
    if role not in ROLES or sub is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    try:
        identity = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    return CallerContext(identity=identity, role=role)


def get_caller(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> CallerContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "No token provided")
    return decode_access_token(credentials.credentials)


def require_elevated(caller: CallerContext = Depends(get_caller)) -> CallerContext:
    if not caller.is_elevated:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN,
            f"Access denied. Required role: {' or '.join(ELEVATED_ROLES)}",
        )
    return caller
