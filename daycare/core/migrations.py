from pathlib import Path
import logging
import os
import threading
import time
import traceback

from alembic import command
from alembic.config import Config

from daycare.core.config import GetIntEnv
from daycare.db import BuildAdminConnectionUrl

logger = logging.getLogger("daycare.migrations")

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _append_fallback_migration_log(message: str) -> None:
    log_path = os.path.abspath(os.getenv("LOG_FILE_PATH", "./logs/daycare.log"))
    os.makedirs(os.path.dirname(log_path), exist_ok=True)
    timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
    with open(log_path, "a", encoding="utf-8") as handle:
        handle.write(f"{timestamp} ERROR daycare.migrations {message}\n")


def BuildAlembicConfig(url: str | None = None) -> Config:
    config_path = PROJECT_ROOT / "alembic.ini"
    if not config_path.exists():
        raise RuntimeError("Missing alembic.ini for migrations")

    alembic_cfg = Config(str(config_path))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    # Percent signs in url-encoded passwords would otherwise be read as interpolation.
    alembic_cfg.set_main_option("sqlalchemy.url", (url or BuildAdminConnectionUrl()).replace("%", "%%"))
    return alembic_cfg


def RunMigrations(revision: str = "head") -> None:
    """Upgrade the daycare database in a worker thread, giving up after MIGRATIONS_TIMEOUT_SECONDS."""
    alembic_cfg = BuildAlembicConfig()
    timeout_seconds = GetIntEnv("MIGRATIONS_TIMEOUT_SECONDS", 600)
    progress_seconds = GetIntEnv("MIGRATIONS_PROGRESS_LOG_SECONDS", 20)

    logger.info(
        "running migrations to %s (timeout=%ss, progress_log=%ss)",
        revision,
        timeout_seconds,
        progress_seconds,
    )

    error: dict[str, str] = {}
    done = threading.Event()

    def _run() -> None:
        try:
            command.upgrade(alembic_cfg, revision)
        except Exception:  # noqa: BLE001
            error["trace"] = traceback.format_exc()
        finally:
            done.set()

    thread = threading.Thread(target=_run, name="daycare-alembic-upgrade", daemon=True)
    thread.start()
    start = time.monotonic()

    while not done.wait(timeout=progress_seconds):
        elapsed = int(time.monotonic() - start)
        logger.info("migrations still running (%ss elapsed)", elapsed)
        if timeout_seconds > 0 and elapsed >= timeout_seconds:
            logger.error("migrations timed out after %ss", elapsed)
            _append_fallback_migration_log(f"migrations timed out after {elapsed}s")
            raise TimeoutError(f"migrations timed out after {elapsed}s")

    if "trace" in error:
        logger.error("migrations failed:\n%s", error["trace"])
        _append_fallback_migration_log("migrations failed (see traceback in logs)")
        raise RuntimeError("migrations failed")

    logger.info("migrations complete revision=%s", revision)
