from __future__ import annotations

from contextlib import contextmanager
from functools import wraps

from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.orm import Session


class DaycareError(Exception):
    """Base for every business-rule or store failure the daycare core raises."""

    code = "DaycareError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransitionError(DaycareError):
    code = "InvalidTransition"


class PreconditionFailedError(DaycareError):
    code = "PreconditionFailed"


class NotFoundError(DaycareError):
    code = "NotFound"


class ForbiddenError(DaycareError):
    code = "Forbidden"


class InvalidAmountError(DaycareError):
    code = "InvalidAmount"


class NoDebtError(DaycareError):
    code = "NoDebt"


class ValidationFailedError(DaycareError):
    code = "ValidationFailed"


class StoreUnavailableError(DaycareError):
    code = "StoreUnavailable"


STORE_UNAVAILABLE_MESSAGE = "Storage temporarily unavailable. Try again."


@contextmanager
def StoreGuard(db: Session):
    """Roll back and raise StoreUnavailableError when the backend drops out mid-write."""
    try:
        yield
    except (OperationalError, DisconnectionError) as exc:
        db.rollback()
        raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc


def StoreGuarded(func):
    """Run a service function whose first argument is the session under StoreGuard."""

    @wraps(func)
    def _guarded(db: Session, *args, **kwargs):
        with StoreGuard(db):
            return func(db, *args, **kwargs)

    return _guarded
