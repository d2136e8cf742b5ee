import os
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo


def GetEnv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def GetBoolEnv(name: str, default: bool = False) -> bool:
    value = GetEnv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "y", "on"}


def GetIntEnv(name: str, default: int) -> int:
    raw = GetEnv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def RequireEnv(name: str) -> str:
    value = GetEnv(name)
    if value is None:
        raise RuntimeError(f"Missing required env var: {name}")
    return value


def _GetDecimalEnv(name: str, default: str) -> Decimal:
    raw = GetEnv(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise RuntimeError(f"{name} must be a decimal amount") from exc


class DaycareSettings:
    TimeZone = GetEnv("DAYCARE_TIMEZONE", "Africa/Nairobi")
    Currency = GetEnv("DAYCARE_CURRENCY", "KES")
    DefaultDailyFee = _GetDecimalEnv("DAYCARE_DEFAULT_DAILY_FEE", "150")
    RolloverAuditEnabled = GetBoolEnv("ROLLOVER_AUDIT_ENABLED", True)
    # How far back a scheduled rollover looks for days whose last run left children open.
    RolloverRetryDays = GetIntEnv("ROLLOVER_RETRY_DAYS", 14)


Settings = DaycareSettings()


def LocalZone() -> ZoneInfo:
    return ZoneInfo(Settings.TimeZone)


def NowLocal() -> datetime:
    return datetime.now(tz=LocalZone())


def TodayLocal(now: datetime | None = None) -> date:
    """Calendar date at the daycare, which is what every record is keyed by."""
    if now is None:
        return NowLocal().date()
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(LocalZone()).date()
