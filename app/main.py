import logging
import math
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import api_v1_router
from app.core.config import settings, validate_settings_for_production
from app.core.dependencies import get_proposal_service
from app.core.logging import setup_logging
from app.core.metrics import PrometheusMiddleware, metrics_response
from app.core.rate_limit import limiter
from app.core.sentry import init_sentry
from app.proposals.errors import ProposalError, RateLimitedError
from app.proposals.service import ProposalService

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    logger.info("Starting Proposal Generator (model=%s)", settings.openai_model)
    if not settings.openai_configured:
        logger.warning("OpenAI API key not configured; proposal generation will fail")

    yield

    logger.info("Proposal Generator shut down")


app = FastAPI(
    title="Proposal Generator",
    description="AI-assisted project proposal drafting for the portfolio admin area",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(ProposalError)
async def _proposal_error_handler(request: Request, exc: ProposalError):
    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": "invalid_input", "message": message})


# Log unhandled exceptions so they appear in the service logs
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"error": "internal_error", "message": "Internal server error"})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Prometheus request metrics
app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health(service: ProposalService = Depends(get_proposal_service)):
    return {
        "status": "ok",
        "openai_configured": service.gateway.is_configured,
        "model": service.config.model,
    }


@app.get("/api/v1/health/llm")
async def health_llm(service: ProposalService = Depends(get_proposal_service)):
    """Round-trip a tiny completion to the provider."""
    ok = await service.gateway.health_check()
    return JSONResponse(status_code=200 if ok else 503, content={"status": "ok" if ok else "unavailable"})


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
