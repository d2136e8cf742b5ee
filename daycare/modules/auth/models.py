from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from daycare.db import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"schema": "auth"}

    Id = Column(Integer, primary_key=True, index=True)
    Username = Column(String(120), nullable=False, unique=True, index=True)
    PasswordHash = Column(String(255), nullable=False)
    FirstName = Column(String(120))
    LastName = Column(String(120))
    Email = Column(String(254))
    IsActive = Column(Boolean, default=True, nullable=False)
    FailedLoginCount = Column(Integer, default=0, nullable=False)
    LockedUntil = Column(DateTime(timezone=True))
    LastLoginAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    ModuleRoles = relationship("UserModuleRole", back_populates="User")


class UserModuleRole(Base):
    __tablename__ = "user_module_roles"
    __table_args__ = (
        UniqueConstraint("UserId", "ModuleName", name="uq_auth_user_module_roles_user_module"),
        {"schema": "auth"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    UserId = Column(Integer, ForeignKey("auth.users.Id"), nullable=False, index=True)
    ModuleName = Column(String(80), nullable=False, index=True)
    Role = Column(String(20), nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    User = relationship("User", back_populates="ModuleRoles")
