from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from clawfix.core.config import settings
from clawfix.core.exceptions import (
    ClawFixError,
    ValidationError,
    ResourceNotFoundError,
    PersistenceDisabledError,
)
from clawfix.core.logging_config import logger
from clawfix.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from clawfix.core.rate_limiter import limiter, rate_limit_exceeded_handler
from clawfix.api.v1.router import api_router
from clawfix.services.diagnosis import build_diagnosis_service
from clawfix.services.diagnosis.catalog import KNOWN_ISSUES
from slowapi.errors import RateLimitExceeded


def validate_config() -> None:
    """Log what the service will run without; nothing here is fatal"""
    if not settings.persistence_enabled:
        logger.warning("[Startup] DATABASE_URL not set - results are memory-only, stats disabled")
    if not settings.ai_enabled:
        logger.warning("[Startup] AI analysis off - diagnoses use pattern matching only")
    logger.info(f"[Startup] ✓ {len(KNOWN_ISSUES)} known issue patterns loaded")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bring the database schema up before serving; dispose the engine after"""
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting ({settings.ENVIRONMENT})")

    validate_config()

    repository = app.state.diagnosis_service.repository
    if repository is not None:
        try:
            await repository.init_schema()
        except ClawFixError as e:
            logger.error(f"[Startup] Database not ready - feedback and stats may fail: {e.message}")

    yield

    logger.info(f"{settings.APP_NAME} stopping")
    if repository is not None:
        await repository.close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Diagnoses OpenClaw installations and generates reviewable fix scripts",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# One service per process; the result store lives as long as the app
app.state.diagnosis_service = build_diagnosis_service()

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Starlette wraps in reverse: CORS sees the request first, logging last
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_PAYLOAD_BYTES)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


@app.exception_handler(ClawFixError)
async def clawfix_exception_handler(request: Request, exc: ClawFixError):
    if isinstance(exc, ResourceNotFoundError):
        return JSONResponse(status_code=404, content={"error": "Fix not found or expired"})

    if isinstance(exc, ValidationError):
        content = {"error": exc.message}
        hint = exc.details.get("hint")
        if hint:
            content["hint"] = hint
        return JSONResponse(status_code=400, content=content)

    if isinstance(exc, PersistenceDisabledError):
        return JSONResponse(
            status_code=503,
            content={"error": "Statistics unavailable", "hint": "Set DATABASE_URL to enable persistence"},
        )

    logger.log_error_with_context(exc, context=request.url.path)
    return JSONResponse(status_code=500, content={"error": exc.message, "code": exc.code})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.log_error_with_context(exc, context=request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


@app.get("/", tags=["Root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": f"{settings.API_PREFIX}/health"
    }


app.include_router(api_router, prefix=settings.API_PREFIX)


def run():
    """Console entry point: serve the API with uvicorn"""
    import uvicorn
    uvicorn.run(
        "clawfix.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
