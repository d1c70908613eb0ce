"""
Checkride Oral Examiner

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from checkride.api.middleware.rate_limit import RateLimitMiddleware
from checkride.api.middleware.request_id import RequestIdMiddleware
from checkride.api.v1 import router as api_v1_router
from checkride.config import get_settings
from checkride.database import async_session_maker, check_db, close_db, init_db
from checkride.engines.oral.question_bank import seed_question_bank
from checkride.kernel.errors import ExamError, PersistenceFailure
from checkride.kernel.exam_store import ExamStore
from checkride.logging_config import configure_logging, get_logger
from checkride.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


async def _seed_questions() -> None:
    path = Path(settings.question_bank_path) if settings.question_bank_path else None
    async with async_session_maker() as session:
        store = ExamStore(session)
        added = await seed_question_bank(store, path)
        await store.commit()
    if added:
        logger.info("Question bank loaded", extra={"questions": added})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Startup: logging, tables, question bank. Shutdown: dispose the engine.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    await _seed_questions()
    logger.info("Database initialized")
    if not settings.oracle_configured:
        logger.warning("OPENAI_API_KEY not set; answers are graded by the rule-based stub oracle")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Checkride Oral Examiner

    Adaptive oral-exam practice for pilot certificates (PPL, IR, CPL).

    - **Sessions**: start a session for a certificate mode, get the next prompt
    - **Grading**: free-text answers graded PASS / PROBE / REMEDIATE / FAIL
    - **Probe loop**: weak answers get bounded follow-up questions on the same skill task
    - **Mastery**: per-skill running score in [0, 5]
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first: CORS is added last so it is outermost
# and decorates 429s and error responses too.
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_headers(request: Request) -> dict:
    """CORS + request id headers for error responses (500s often bypass CORS middleware)."""
    origin = request.headers.get("origin") or ""
    headers = {
        "Access-Control-Allow-Origin": origin if origin in _cors_origins else _cors_origins[0],
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    return headers


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    """Map the exam error taxonomy onto HTTP status codes."""
    req_id = getattr(request.state, "request_id", None)
    content = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, PersistenceFailure):
        content["request_id"] = req_id
    elif exc.status_code >= 404:
        logger.info("Request rejected: %s", exc.message, extra={"code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=content, headers=_error_headers(request))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    req_id = getattr(request.state, "request_id", None)
    content = {"detail": exc.detail}
    if req_id and exc.status_code >= 500:
        content["request_id"] = req_id
    return JSONResponse(status_code=exc.status_code, content=content, headers=_error_headers(request))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    content = {"detail": "Validation error", "errors": errors}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=_error_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_error_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
@app.get(f"{settings.api_v1_prefix}/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    db_ok = await check_db()
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        version=settings.version,
        database="connected" if db_ok else "unavailable",
        oracle="openai" if settings.oracle_configured else "stub",
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {"v1": settings.api_v1_prefix},
    }


app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "checkride.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
