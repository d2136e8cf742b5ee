import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DisconnectionError, OperationalError

from daycare.core.config import GetEnv
from daycare.core.logging import setup_logging
from daycare.modules.attendance.services.errors import STORE_UNAVAILABLE_MESSAGE
from daycare.modules.attendance.router import router as attendance_router
from daycare.modules.auth.router import router as auth_router
from daycare.modules.children.router import router as children_router
from daycare.modules.core.router import router as core_router
from daycare.modules.reports.router import router as reports_router

setup_logging()

logger = logging.getLogger("daycare.request")

_STATUS_LABELS = {
    404: "ERROR: endpoint not found",
    409: "REJECTED: state conflict",
    503: "ERROR: storage unavailable",
}


def _StatusLabel(status_code: int) -> str | None:
    if status_code in _STATUS_LABELS:
        return _STATUS_LABELS[status_code]
    if status_code >= 500:
        return "ERROR: server error"
    if status_code >= 400:
        return "ERROR: client error"
    return None


def _AllowedOrigins() -> list[str]:
    raw = GetEnv("ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def CreateApp() -> FastAPI:
    application = FastAPI(title="Daycare API")
    origins = _AllowedOrigins()
    if origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @application.exception_handler(OperationalError)
    @application.exception_handler(DisconnectionError)
    async def store_unavailable(request: Request, exc: Exception) -> JSONResponse:
        logger.warning("store unavailable path=%s error=%s", request.url.path, exc.__class__.__name__)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": STORE_UNAVAILABLE_MESSAGE},
        )

    @application.middleware("http")
    async def request_logger(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        status_code = response.status_code
        fields = [f"{request.method} {request.url.path}"]
        if request.url.query:
            fields.append(f"query={request.url.query}")
        label = _StatusLabel(status_code)
        if label:
            fields.append(label)
        fields.extend([f"status={status_code}", f"{elapsed_ms}ms", f"request_id={request_id}"])

        level = logging.ERROR if status_code >= 500 else logging.WARNING if status_code >= 400 else logging.INFO
        logger.log(level, " | ".join(fields))
        response.headers["X-Request-Id"] = request_id
        return response

    for module_router in (core_router, auth_router, children_router, attendance_router, reports_router):
        application.include_router(module_router)

    logging.getLogger("daycare.startup").info("api ready routers=%s", len(application.routes))
    return application


app = CreateApp()
