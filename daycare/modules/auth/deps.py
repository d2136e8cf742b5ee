from dataclasses import dataclass, field
from datetime import datetime, timezone

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from daycare.core.config import RequireEnv
from daycare.db import GetDb
from daycare.modules.auth.models import User, UserModuleRole

TOKEN_ALGORITHM = "HS256"


@dataclass
class UserContext:
    Id: int
    Username: str
    Roles: dict[str, str] = field(default_factory=dict)
    DisplayName: str | None = None


def NowUtc() -> datetime:
    return datetime.now(tz=timezone.utc)


def DisplayNameFor(user: User) -> str:
    parts = [user.FirstName, user.LastName]
    name = " ".join([part for part in parts if part])
    return name or user.Username


def LoadModuleRoles(db: Session, user_id: int) -> dict[str, str]:
    return {
        role.ModuleName: role.Role
        for role in db.query(UserModuleRole).filter(UserModuleRole.UserId == user_id).all()
    }


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _read_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Authentication required")
    return token.strip()


def _decode_access_token(token: str) -> int:
    try:
        payload = jwt.decode(token, RequireEnv("JWT_SECRET_KEY"), algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise _unauthorized("Session expired. Sign in again.") from exc
    except jwt.InvalidTokenError as exc:
        raise _unauthorized("Invalid token") from exc
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError) as exc:
        raise _unauthorized("Invalid token") from exc


def RequireAuthenticated(
    request: Request,
    db: Session = Depends(GetDb),
) -> UserContext:
    user_id = _decode_access_token(_read_bearer_token(request))
    user = db.query(User).filter(User.Id == user_id).first()
    if not user:
        raise _unauthorized("User not found")
    if not user.IsActive:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return UserContext(
        Id=user.Id,
        Username=user.Username,
        Roles=LoadModuleRoles(db, user.Id),
        DisplayName=DisplayNameFor(user),
    )
