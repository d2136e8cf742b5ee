from datetime import datetime, timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from daycare.core.config import GetIntEnv
from daycare.db import GetDb
from daycare.modules.attendance.utils.rbac import IsDaycareAdmin
from daycare.modules.auth.deps import (
    DisplayNameFor,
    LoadModuleRoles,
    NowUtc,
    RequireAuthenticated,
    UserContext,
)
from daycare.modules.auth.models import User
from daycare.modules.auth.schemas import LoginRequest, TokenResponse, UserOut, UserRoleOut
from daycare.modules.auth.service import CreateAccessToken, VerifyPassword

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("daycare.auth")


def _IsLocked(user: User, now: datetime) -> bool:
    if not user.LockedUntil:
        return False
    locked_until = user.LockedUntil
    if locked_until.tzinfo is None:
        locked_until = locked_until.replace(tzinfo=now.tzinfo)
    return locked_until > now


def _RecordFailedLogin(db: Session, user: User, now: datetime) -> None:
    max_attempts = GetIntEnv("AUTH_LOGIN_MAX_ATTEMPTS", 5)
    lockout_minutes = GetIntEnv("AUTH_LOGIN_LOCKOUT_MINUTES", 15)
    user.FailedLoginCount = (user.FailedLoginCount or 0) + 1
    if user.FailedLoginCount >= max_attempts:
        user.LockedUntil = now + timedelta(minutes=lockout_minutes)
        user.FailedLoginCount = 0
        logger.warning("login locked username=%s minutes=%s", user.Username, lockout_minutes)
    db.commit()


def _RoleList(roles: dict[str, str]) -> list[UserRoleOut]:
    return [UserRoleOut(ModuleName=name, Role=role) for name, role in sorted(roles.items())]


@router.post("/login", response_model=TokenResponse)
def Login(payload: LoginRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    username = payload.Username.strip()
    user = db.query(User).filter(User.Username == username).first()
    now = NowUtc()
    if user and _IsLocked(user, now):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account locked. Try again later.")

    if not user or not VerifyPassword(payload.Password, user.PasswordHash):
        if user:
            _RecordFailedLogin(db, user, now)
        logger.info("login failed username=%s", username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not user.IsActive:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    user.FailedLoginCount = 0
    user.LockedUntil = None
    user.LastLoginAt = now
    db.commit()

    roles = LoadModuleRoles(db, user.Id)
    context = UserContext(Id=user.Id, Username=user.Username, Roles=roles)
    access_token, expires_in = CreateAccessToken(user.Id, user.Username)
    logger.info("login ok user_id=%s", user.Id)
    return TokenResponse(
        AccessToken=access_token,
        ExpiresIn=expires_in,
        Username=user.Username,
        DisplayName=DisplayNameFor(user),
        IsDaycareAdmin=IsDaycareAdmin(context),
        Roles=_RoleList(roles),
    )


@router.get("/me", response_model=UserOut)
def GetMe(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> UserOut:
    record = db.query(User).filter(User.Id == user.Id).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut(
        Id=record.Id,
        Username=record.Username,
        DisplayName=DisplayNameFor(record),
        Email=record.Email,
        IsDaycareAdmin=IsDaycareAdmin(user),
        Roles=_RoleList(user.Roles),
        LastLoginAt=record.LastLoginAt,
        CreatedAt=record.CreatedAt,
    )
