from datetime import timedelta

import jwt
from passlib.context import CryptContext

from daycare.core.config import GetIntEnv, RequireEnv
from daycare.modules.auth.deps import TOKEN_ALGORITHM, NowUtc
from daycare.modules.auth.models import User, UserModuleRole

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

DEFAULT_ACCESS_TTL_MINUTES = 720


def HashPassword(password: str) -> str:
    return pwd_context.hash(password)


def VerifyPassword(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def CreateAccessToken(user_id: int, username: str) -> tuple[str, int]:
    """Sign a bearer token for the user. Returns the token and its lifetime in seconds."""
    ttl_minutes = GetIntEnv("JWT_ACCESS_TTL_MINUTES", DEFAULT_ACCESS_TTL_MINUTES)
    now = NowUtc()
    payload = {
        "sub": str(user_id),
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    token = jwt.encode(payload, RequireEnv("JWT_SECRET_KEY"), algorithm=TOKEN_ALGORITHM)
    return token, ttl_minutes * 60


def EnsureAdminUser(db, username: str, password: str, module_name: str = "daycare") -> User:
    """Create or reset a login holding the Admin role on the given module."""
    username = username.strip()
    if not username or not password:
        raise ValueError("Username and password are required.")

    now = NowUtc()
    user = db.query(User).filter(User.Username == username).first()
    if user is None:
        user = User(Username=username, PasswordHash=HashPassword(password), IsActive=True, CreatedAt=now)
        db.add(user)
        db.flush()
    else:
        user.PasswordHash = HashPassword(password)
        user.IsActive = True
        user.FailedLoginCount = 0
        user.LockedUntil = None

    role = (
        db.query(UserModuleRole)
        .filter(UserModuleRole.UserId == user.Id, UserModuleRole.ModuleName == module_name)
        .first()
    )
    if role is None:
        db.add(UserModuleRole(UserId=user.Id, ModuleName=module_name, Role="Admin", CreatedAt=now, UpdatedAt=now))
    else:
        role.Role = "Admin"
        role.UpdatedAt = now
    db.commit()
    db.refresh(user)
    return user
