"""
Bid 2.0 backend.

Contractors post RFQs, matched suppliers bid, contractors pick a winner.
"""
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import os
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)

from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from database import engine, init_db, get_session, check_db_health  # noqa: E402
from exceptions import Bid2Error  # noqa: E402
from observability.logging import setup_logging, get_logger, get_correlation_id  # noqa: E402
from observability.health import run_health_checks  # noqa: E402
from observability.metrics import metrics_registry  # noqa: E402
from observability.middleware import ObservabilityMiddleware  # noqa: E402
from observability.sentry_config import init_sentry  # noqa: E402
from routes.auth import router as auth_router  # noqa: E402
from routes.onboarding import router as onboarding_router  # noqa: E402
from routes.rfqs import router as rfqs_router  # noqa: E402
from routes.supplier import router as supplier_router  # noqa: E402

setup_logging()
init_sentry()
logger = get_logger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup and shutdown for the application process."""
    logger.info(
        "Bid 2.0 backend starting",
        extra={"environment": os.getenv("ENVIRONMENT", "development"), "e2e_test_mode": os.getenv("E2E_TEST_MODE")},
    )
    # Production schema is managed by Alembic; AUTO_CREATE_TABLES is for local runs
    if os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true":
        await init_db()

    yield

    logger.info("Bid 2.0 backend shutting down")
    await engine.dispose()


app = FastAPI(
    title="Bid 2.0 Backend",
    description="RFQ lifecycle, supplier matching and competitive bidding",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Configure CORS
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

app.include_router(auth_router)
app.include_router(onboarding_router)
app.include_router(rfqs_router)
app.include_router(supplier_router)


class HealthResponse(BaseModel):
    status: str
    version: str


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return {"status": "healthy", "version": APP_VERSION}


@app.get("/health/ready")
async def readiness_check(session: AsyncSession = Depends(get_session)):
    """
    Readiness check - verifies the database is reachable.

    Returns 503 if it is not. A missing LLM key only marks the service degraded.
    """
    report = await run_health_checks(session)
    report["pool"] = await check_db_health()
    return JSONResponse(status_code=200 if report["ready"] else 503, content=report)


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)


@app.exception_handler(Bid2Error)
async def bid2_exception_handler(request: Request, exc: Bid2Error):
    """Domain failures become typed JSON results; state was left untouched by the service."""
    level = "error" if exc.status_code >= 500 else "info"
    getattr(logger, level)(
        f"{exc.error_type}: {exc.message}",
        extra={"path": request.url.path, "error_type": exc.error_type, "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    - Logs full traceback
    - Returns safe error message to client
    """
    error_id = f"ERR-{datetime.utcnow().strftime('%Y%m%d%H%M%S')}-{get_correlation_id() or id(exc)}"

    logger.error(
        f"Unhandled exception {error_id}",
        extra={"error_id": error_id, "path": request.url.path, "method": request.method},
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please try again.",
        }
    )
