from urllib.parse import quote_plus

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from daycare.core.config import GetEnv, GetIntEnv

Base = declarative_base()
engine = None
SessionLocal = None

# SQLite has no schemas, so the auth and daycare tables land in the main database.
SQLITE_SCHEMA_MAP = {"auth": None, "daycare": None}

ENCRYPT_OPTIONS = "Encrypt=yes&TrustServerCertificate=yes"


def _build_connection_url(login_env: str, password_env: str, database_override: str | None = None) -> str:
    override = GetEnv("DATABASE_URL")
    if override and database_override is None:
        return override

    parts = {
        "SQLSERVER_HOST": GetEnv("SQLSERVER_HOST"),
        "SQLSERVER_PORT": GetEnv("SQLSERVER_PORT"),
        "SQLSERVER_DB": database_override or GetEnv("SQLSERVER_DB"),
        "SQLSERVER_DRIVER": GetEnv("SQLSERVER_DRIVER"),
        login_env: GetEnv(login_env),
        password_env: GetEnv(password_env),
    }
    missing = [name for name, value in parts.items() if not value]
    if missing:
        raise RuntimeError(f"Missing database configuration: {', '.join(missing)}")

    return "mssql+pyodbc://{user}:{password}@{host}:{port}/{database}?driver={driver}&{options}".format(
        user=parts[login_env],
        password=quote_plus(parts[password_env]),
        host=parts["SQLSERVER_HOST"],
        port=parts["SQLSERVER_PORT"],
        database=parts["SQLSERVER_DB"],
        driver=quote_plus(parts["SQLSERVER_DRIVER"]),
        options=ENCRYPT_OPTIONS,
    )


def BuildUserConnectionUrl() -> str:
    return _build_connection_url("SQLSERVER_USER_LOGIN", "SQLSERVER_USER_PASSWORD")


def BuildAdminConnectionUrl(database_override: str | None = None) -> str:
    return _build_connection_url("SQLSERVER_ADMIN_LOGIN", "SQLSERVER_ADMIN_PASSWORD", database_override)


def BuildEngine(url: str, **kwargs) -> Engine:
    """Create an engine for the url; SQLite urls get the schema translate map."""
    if url.startswith("sqlite"):
        return create_engine(url, **kwargs).execution_options(schema_translate_map=SQLITE_SCHEMA_MAP)
    kwargs.setdefault("pool_pre_ping", True)
    kwargs.setdefault("pool_size", GetIntEnv("SQLALCHEMY_POOL_SIZE", 10))
    kwargs.setdefault("max_overflow", GetIntEnv("SQLALCHEMY_MAX_OVERFLOW", 20))
    kwargs.setdefault("pool_timeout", GetIntEnv("SQLALCHEMY_POOL_TIMEOUT", 60))
    return create_engine(url, **kwargs)


def _ensure_engine():
    global engine, SessionLocal
    if engine is None:
        engine = BuildEngine(BuildUserConnectionUrl())
        SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def OpenSession():
    if SessionLocal is None:
        _ensure_engine()
    return SessionLocal()


def GetDb():
    db = OpenSession()
    try:
        yield db
    finally:
        db.close()
