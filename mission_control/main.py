"""
Mission Control - campaign progression service.

FastAPI application entry point.
"""

import re
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mission_control.api.deps import get_request_id
from mission_control.api.middleware.request_id import RequestIdMiddleware
from mission_control.api.v1 import router as api_v1_router
from mission_control.config import get_settings
from mission_control.database import close_db, init_db
from mission_control.engines.progression.errors import (
    EvaluationError,
    GraphError,
    InvalidTransitionError,
    MissionLockedError,
    SimulationNotInitializedError,
)
from mission_control.logging_config import configure_logging, get_logger
from mission_control.schemas.common import ErrorResponse, HealthResponse
from mission_control.services.progression_service import ResourceNotFoundError

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Mission Control - gamified campaign progression.

    ## Features

    - **Campaign map**: missions joined by prerequisite edges, evaluated per cadet
    - **Submissions**: quiz, video, file, form, event, external and custom missions
    - **Review**: officers approve or reject submissions awaiting review
    - **Ranks**: experience, mission count and competency thresholds
    - **Test mode**: architects run a campaign in a sandbox before publishing

    ## Invariants

    1. A mission unlocks only when every prerequisite is COMPLETED (AND-join)
    2. A completion is rewarded exactly once
    3. Campaign graphs stay acyclic; edges that would close a cycle are refused
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first; CORS is added last so it wraps everything
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_code(exc: Exception) -> str:
    """CycleDetectedError -> cycle_detected."""
    name = type(exc).__name__
    if name.endswith("Error"):
        name = name[: -len("Error")]
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _error_response(
    request: Request,
    status_code: int,
    detail: str,
    code: Optional[str] = None,
) -> JSONResponse:
    req_id = get_request_id(request)
    headers = {"X-Request-ID": req_id} if req_id else None
    body = ErrorResponse(detail=detail, code=code, request_id=req_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    req_id = get_request_id(request)
    headers = dict(exc.headers or {})
    if req_id:
        headers["X-Request-ID"] = req_id
    content = {"detail": exc.detail}
    if req_id and exc.status_code >= 500:
        content["request_id"] = req_id
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    req_id = get_request_id(request)
    content = {"detail": "Validation error", "errors": errors}
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers={"X-Request-ID": req_id} if req_id else None,
    )


@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request: Request, exc: ResourceNotFoundError):
    return _error_response(request, status.HTTP_404_NOT_FOUND, str(exc), f"{exc.kind}_not_found")


@app.exception_handler(GraphError)
async def graph_error_handler(request: Request, exc: GraphError):
    """Edits that would break the campaign graph (cycle, dangling edge)."""
    return _error_response(request, status.HTTP_409_CONFLICT, str(exc), _error_code(exc))


@app.exception_handler(EvaluationError)
async def evaluation_error_handler(request: Request, exc: EvaluationError):
    """Stored campaign data is corrupt; the cadet cannot fix this."""
    logger.error("Progression evaluation failed: %s", exc)
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Unable to load progression", _error_code(exc),
    )


@app.exception_handler(InvalidTransitionError)
async def transition_error_handler(request: Request, exc: InvalidTransitionError):
    return _error_response(request, status.HTTP_409_CONFLICT, str(exc), "invalid_transition")


@app.exception_handler(MissionLockedError)
async def mission_locked_handler(request: Request, exc: MissionLockedError):
    return _error_response(request, status.HTTP_409_CONFLICT, str(exc), "mission_locked")


@app.exception_handler(SimulationNotInitializedError)
async def simulation_not_initialized_handler(request: Request, exc: SimulationNotInitializedError):
    return _error_response(request, status.HTTP_404_NOT_FOUND, str(exc), "test_mode_not_initialized")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = get_request_id(request)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers={"X-Request-ID": req_id} if req_id else None,
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(status="ok", version=settings.version, database="connected")


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mission_control.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
