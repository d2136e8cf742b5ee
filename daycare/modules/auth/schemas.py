from datetime import datetime

from pydantic import BaseModel, Field


class UserRoleOut(BaseModel):
    ModuleName: str
    Role: str


class LoginRequest(BaseModel):
    Username: str = Field(..., min_length=1, max_length=120)
    Password: str = Field(..., min_length=1, max_length=200)


class TokenResponse(BaseModel):
    AccessToken: str
    TokenType: str = "bearer"
    ExpiresIn: int
    Username: str
    DisplayName: str
    IsDaycareAdmin: bool
    Roles: list[UserRoleOut]


class UserOut(BaseModel):
    Id: int
    Username: str
    DisplayName: str
    Email: str | None = None
    IsDaycareAdmin: bool
    Roles: list[UserRoleOut]
    LastLoginAt: datetime | None = None
    CreatedAt: datetime
