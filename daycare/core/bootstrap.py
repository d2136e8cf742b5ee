import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection

from daycare.core.config import GetBoolEnv, RequireEnv
from daycare.db import BuildAdminConnectionUrl

logger = logging.getLogger("daycare.bootstrap")

DAYCARE_SCHEMAS = ["auth", "daycare", "ref"]
READ_ONLY_SCHEMAS = {"ref"}
CRUD_ROLE = "DaycareCrud"

# Error 1801: database already exists (another instance won the race).
_CREATE_DATABASE_SQL = """
IF DB_ID(:db) IS NULL
BEGIN
  DECLARE @Sql nvarchar(max) = N'CREATE DATABASE ' + QUOTENAME(:db);
  BEGIN TRY
    EXEC sp_executesql @Sql;
  END TRY
  BEGIN CATCH
    IF ERROR_NUMBER() <> 1801 THROW;
  END CATCH
END
"""

# Azure SQL (engine edition 5) rejects CHECK_POLICY on logins.
_UPSERT_LOGIN_SQL = """
DECLARE @Verb nvarchar(10) = CASE WHEN SUSER_ID(:login) IS NULL THEN N'CREATE' ELSE N'ALTER' END;
DECLARE @Options nvarchar(400) = N', DEFAULT_DATABASE = ' + QUOTENAME(:db)
  + CASE WHEN CAST(SERVERPROPERTY('EngineEdition') AS int) = 5 THEN N'' ELSE N', CHECK_POLICY = OFF' END;
DECLARE @Sql nvarchar(max) = @Verb + N' LOGIN ' + QUOTENAME(:login)
  + N' WITH PASSWORD = ' + QUOTENAME(:password, '''') + @Options;
EXEC sp_executesql @Sql;
"""

_CREATE_SCHEMA_SQL = """
IF SCHEMA_ID(:schema) IS NULL
BEGIN
  DECLARE @Sql nvarchar(max) = N'CREATE SCHEMA ' + QUOTENAME(:schema);
  EXEC sp_executesql @Sql;
END
"""

_MAP_USER_SQL = """
DECLARE @Sql nvarchar(max) =
  CASE WHEN USER_ID(:login) IS NULL
    THEN N'CREATE USER ' + QUOTENAME(:login) + N' FOR LOGIN ' + QUOTENAME(:login) + N' WITH'
    ELSE N'ALTER USER ' + QUOTENAME(:login) + N' WITH LOGIN = ' + QUOTENAME(:login) + N','
  END + N' DEFAULT_SCHEMA = [daycare]';
EXEC sp_executesql @Sql;
"""

_ADD_ROLE_MEMBER_SQL = """
IF DATABASE_PRINCIPAL_ID(:role) IS NULL
BEGIN
  DECLARE @CreateSql nvarchar(max) = N'CREATE ROLE ' + QUOTENAME(:role);
  EXEC sp_executesql @CreateSql;
END
IF IS_ROLEMEMBER(:role, :login) <> 1
BEGIN
  DECLARE @MemberSql nvarchar(max) = N'ALTER ROLE ' + QUOTENAME(:role) + N' ADD MEMBER ' + QUOTENAME(:login);
  EXEC sp_executesql @MemberSql;
END
"""


def _EnsureDatabaseAndLogin(database: str, user_login: str, user_password: str) -> None:
    master_engine = create_engine(
        BuildAdminConnectionUrl(database_override="master"),
        pool_pre_ping=True,
        isolation_level="AUTOCOMMIT",
    )
    logger.info("ensuring database %s and login %s", database, user_login)
    try:
        with master_engine.connect() as connection:
            connection.execute(text(_CREATE_DATABASE_SQL), {"db": database})
            connection.execute(
                text(_UPSERT_LOGIN_SQL),
                {"db": database, "login": user_login, "password": user_password},
            )
    finally:
        master_engine.dispose()


def _EnsureSchemas(connection: Connection) -> None:
    for schema in DAYCARE_SCHEMAS:
        connection.execute(text(_CREATE_SCHEMA_SQL), {"schema": schema})


def _EnsureRoleMembership(connection: Connection, user_login: str) -> None:
    connection.execute(text(_MAP_USER_SQL), {"login": user_login})
    connection.execute(text(_ADD_ROLE_MEMBER_SQL), {"login": user_login, "role": CRUD_ROLE})


def _GrantSchemaAccess(connection: Connection) -> None:
    for schema in DAYCARE_SCHEMAS:
        privileges = "SELECT" if schema in READ_ONLY_SCHEMAS else "SELECT, INSERT, UPDATE, DELETE"
        connection.execute(text(f"GRANT {privileges} ON SCHEMA::[{schema}] TO [{CRUD_ROLE}];"))
    connection.execute(text(f"DENY ALTER, CONTROL, TAKE OWNERSHIP ON SCHEMA::[dbo] TO [{CRUD_ROLE}];"))


def EnsureDatabaseSetup() -> bool:
    """Create the database, application login, schemas and CRUD role on SQL Server.

    Returns False when SQLSERVER_SKIP_BOOTSTRAP says the database is managed elsewhere.
    """
    if GetBoolEnv("SQLSERVER_SKIP_BOOTSTRAP"):
        logger.info("database bootstrap skipped")
        return False

    database = RequireEnv("SQLSERVER_DB")
    user_login = RequireEnv("SQLSERVER_USER_LOGIN")
    user_password = RequireEnv("SQLSERVER_USER_PASSWORD")

    _EnsureDatabaseAndLogin(database, user_login, user_password)

    db_engine = create_engine(BuildAdminConnectionUrl(database_override=database), pool_pre_ping=True)
    logger.info("ensuring schemas=%s role=%s", ",".join(DAYCARE_SCHEMAS), CRUD_ROLE)
    try:
        with db_engine.begin() as connection:
            _EnsureSchemas(connection)
            _EnsureRoleMembership(connection, user_login)
            _GrantSchemaAccess(connection)
    finally:
        db_engine.dispose()

    logger.info("database bootstrap finished database=%s", database)
    return True
