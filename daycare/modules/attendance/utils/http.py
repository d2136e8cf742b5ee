import logging

from fastapi import HTTPException, status

from daycare.modules.attendance.services.errors import (
    STORE_UNAVAILABLE_MESSAGE,
    DaycareError,
    ForbiddenError,
    InvalidAmountError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
    StoreUnavailableError,
    ValidationFailedError,
)

logger = logging.getLogger("daycare.http")

_STATUS_BY_ERROR = {
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    PreconditionFailedError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidAmountError: status.HTTP_400_BAD_REQUEST,
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _handle_daycare_error(exc: DaycareError) -> None:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, StoreUnavailableError):
        logger.warning("daycare store unavailable: %s", exc.message)
        detail = STORE_UNAVAILABLE_MESSAGE
    else:
        logger.info("daycare request rejected code=%s detail=%s", exc.code, exc.message)
        detail = exc.message
    raise HTTPException(status_code=status_code, detail=detail) from exc


def _handle_db_error(exc: Exception) -> None:
    logger.exception("daycare database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Daycare storage not initialized. Run alembic upgrade head.",
    ) from exc
