"""API Gateway - FastAPI application for login ingestion and alert handling."""

import logging
import os
import threading
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shieldwatch.api.schemas import (
    AlertListResponse,
    AlertStatsResponse,
    DetectionStatsResponse,
    ErrorResponse,
    FalsePositiveRequest,
    IngestResponse,
    LoginEventRequest,
    ResolveAlertRequest,
    SubjectReportResponse,
)
from shieldwatch.api.service import AlertService
from shieldwatch.common.config.settings import get_config
from shieldwatch.common.exceptions import (
    AlertNotFoundError,
    AlertStateError,
    InvalidEventError,
    ShieldWatchError,
)
from shieldwatch.common.logging.logger import configure_root_logging
from shieldwatch.core.types import AlertStatus, DetectionType, Severity
from shieldwatch.data.schemas.alert import Alert

configure_root_logging(get_config().log_level.value)
logger = logging.getLogger("shieldwatch_api")


class ServiceManager:
    """Thread-safe service singleton manager."""

    _instance: Optional[AlertService] = None
    _lock = threading.Lock()
    _initialized = False

    @classmethod
    def get_service(cls) -> AlertService:
        """Get or create the alert service instance (thread-safe)."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = AlertService()
                    cls._initialized = True
                    logger.info("AlertService initialized")
        return cls._instance

    @classmethod
    def set_service(cls, service: AlertService) -> None:
        """Install a pre-built service (tests, embedding)."""
        with cls._lock:
            cls._instance = service
            cls._initialized = True

    @classmethod
    def shutdown(cls) -> None:
        """Shutdown the service and release resources."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.shutdown()
                cls._instance = None
                cls._initialized = False


def get_service() -> AlertService:
    """Get the alert service instance."""
    return ServiceManager.get_service()


# =============================================================================
# CORS CONFIGURATION
# =============================================================================

def get_cors_origins() -> List[str]:
    """Get allowed CORS origins from environment.

    Example: SHIELDWATCH_CORS_ORIGINS="https://soc.example.com,https://admin.example.com"
    """
    origins_env = os.environ.get("SHIELDWATCH_CORS_ORIGINS", "")

    if origins_env:
        return [origin.strip() for origin in origins_env.split(",") if origin.strip()]

    if get_config().is_production:
        logger.warning(
            "SHIELDWATCH_CORS_ORIGINS not set in production. CORS will be disabled."
        )
        return []

    logger.warning("Running in development mode with permissive CORS (allow_origins=['*'])")
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("ShieldWatch API Gateway starting up...")
    get_service().start()
    logger.info("ShieldWatch API Gateway ready")

    yield

    logger.info("ShieldWatch API Gateway shutting down...")
    ServiceManager.shutdown()
    logger.info("ShieldWatch API Gateway shutdown complete")


enable_docs_default = "false" if get_config().is_production else "true"
enable_docs = os.environ.get("SHIELDWATCH_ENABLE_DOCS", enable_docs_default).lower() == "true"

app = FastAPI(
    title="ShieldWatch API Gateway",
    description="Suspicious-login detection and alert correlation API.",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if enable_docs else None,
    redoc_url="/redoc" if enable_docs else None,
)


cors_origins = get_cors_origins()
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "GET"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error_response(
    request: Request, status_code: int, error: str, message: str, details: Optional[dict] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details or {},
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and query parameters."""
    logger.warning(
        "Validation error",
        extra={"request_id": getattr(request.state, "request_id", None)}
    )
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return _error_response(
        request, 400, "validation_error", "Request failed validation", {"errors": errors}
    )


@app.exception_handler(InvalidEventError)
async def invalid_event_handler(request: Request, exc: InvalidEventError) -> JSONResponse:
    logger.warning(
        "Invalid login event",
        extra={"request_id": getattr(request.state, "request_id", None), "error": exc.message}
    )
    return _error_response(request, 400, "invalid_event", exc.message, exc.details)


@app.exception_handler(AlertNotFoundError)
async def alert_not_found_handler(request: Request, exc: AlertNotFoundError) -> JSONResponse:
    return _error_response(request, 404, "alert_not_found", exc.message, exc.details)


@app.exception_handler(AlertStateError)
async def alert_state_handler(request: Request, exc: AlertStateError) -> JSONResponse:
    return _error_response(request, 409, "alert_state_conflict", exc.message, exc.details)


@app.exception_handler(ShieldWatchError)
async def shieldwatch_error_handler(request: Request, exc: ShieldWatchError) -> JSONResponse:
    """Domain errors without a more specific mapping."""
    logger.error(
        "Unhandled domain error",
        extra={"request_id": getattr(request.state, "request_id", None), "error_code": exc.code},
    )
    return _error_response(
        request, 500, "processing_error", "An error occurred while processing the request"
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors.

    Logs full exception for debugging but returns sanitized message to client.
    """
    logger.exception(
        "Unexpected error",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "error_type": type(exc).__name__,
        }
    )
    return _error_response(request, 500, "internal_error", "An unexpected error occurred")


# =============================================================================
# MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to each request for tracing."""
    request_id = request.headers.get("X-Request-ID") or f"req_{uuid4().hex[:12]}"
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# =============================================================================
# ENDPOINTS
# =============================================================================

_ERROR_RESPONSES = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    500: {"description": "Internal server error", "model": ErrorResponse},
}
_ALERT_ERROR_RESPONSES = {
    404: {"description": "Unknown alert", "model": ErrorResponse},
    409: {"description": "Alert already resolved", "model": ErrorResponse},
    **_ERROR_RESPONSES,
}


@app.post(
    "/events/login",
    response_model=IngestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=_ERROR_RESPONSES,
    summary="Ingest a login event",
)
def ingest_login_event(
    request: LoginEventRequest, service: AlertService = Depends(get_service)
) -> IngestResponse:
    """Fold a login event into the subject's behavior model and run detection.

    Returns the alerts raised by this event and the number of detections
    throttled into existing alerts.
    """
    logger.info(
        "Ingesting login event",
        extra={"subject": request.subject, "outcome": request.outcome.value},
    )
    return service.ingest(request)


@app.get("/alerts", response_model=AlertListResponse, responses=_ERROR_RESPONSES)
def list_alerts(
    status_filter: Optional[AlertStatus] = Query(default=None, alias="status"),
    severity: Optional[Severity] = Query(default=None, description="Minimum severity"),
    detection_type: Optional[DetectionType] = Query(default=None, alias="type"),
    since: Optional[datetime] = None,
    subject: Optional[str] = None,
    service: AlertService = Depends(get_service),
) -> AlertListResponse:
    return service.list_alerts(
        status=status_filter,
        severity=severity,
        detection_type=detection_type,
        since=since,
        subject=subject,
    )


@app.get("/alerts/stats", response_model=AlertStatsResponse)
def alert_stats(service: AlertService = Depends(get_service)) -> AlertStatsResponse:
    return service.alert_stats()


@app.get("/alerts/{alert_id}", response_model=Alert, responses=_ALERT_ERROR_RESPONSES)
def get_alert(alert_id: str, service: AlertService = Depends(get_service)) -> Alert:
    return service.get_alert(alert_id)


@app.post("/alerts/{alert_id}/resolve", response_model=Alert, responses=_ALERT_ERROR_RESPONSES)
def resolve_alert(
    alert_id: str,
    request: Optional[ResolveAlertRequest] = None,
    service: AlertService = Depends(get_service),
) -> Alert:
    return service.resolve_alert(alert_id, request or ResolveAlertRequest())


@app.post(
    "/alerts/{alert_id}/false-positive",
    response_model=Alert,
    responses=_ALERT_ERROR_RESPONSES,
)
def mark_false_positive(
    alert_id: str,
    request: Optional[FalsePositiveRequest] = None,
    service: AlertService = Depends(get_service),
) -> Alert:
    return service.mark_false_positive(alert_id, request or FalsePositiveRequest())


@app.get("/detections/stats", response_model=DetectionStatsResponse)
def detection_stats(service: AlertService = Depends(get_service)) -> DetectionStatsResponse:
    return service.detection_stats()


@app.get("/subjects/{subject}/report", response_model=SubjectReportResponse)
def subject_report(
    subject: str, service: AlertService = Depends(get_service)
) -> SubjectReportResponse:
    return service.subject_report(subject)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "shieldwatch-gateway"}


@app.get("/ready")
async def readiness_check() -> dict:
    """Readiness check endpoint.

    Returns 503 until the service singleton is initialized.
    """
    if not ServiceManager._initialized:
        raise HTTPException(status_code=503, detail="not_ready")
    return {"status": "ready", "service": "shieldwatch-gateway"}


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "shieldwatch.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.is_development,
        log_level=config.log_level.value.lower(),
    )
