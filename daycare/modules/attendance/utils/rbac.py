from fastapi import Depends, HTTPException, status

from daycare.modules.auth.deps import RequireAuthenticated, UserContext

DAYCARE_MODULE = "daycare"
SETTINGS_MODULE = "settings"
ADMIN_ROLE = "Admin"


def IsDaycareAdmin(user: UserContext) -> bool:
    return user.Roles.get(DAYCARE_MODULE) == ADMIN_ROLE or user.Roles.get(SETTINGS_MODULE) == ADMIN_ROLE


def RequireDaycareAdmin():
    def _checker(user: UserContext = Depends(RequireAuthenticated)) -> UserContext:
        if not IsDaycareAdmin(user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user

    return _checker
