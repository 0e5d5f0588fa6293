# src/storefront/main.py
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from storefront.api.dependencies import get_http_client, shutdown_sessions
from storefront.api.v1.router import api_router
from storefront.core.config import Settings, get_settings
from storefront.core.metrics import REQUEST_COUNT
from storefront.core.security import rate_limit_key

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _route_template(request: Request) -> str:
    # Session-IDs im Pfad würden sonst je eine eigene Label-Kombination erzeugen
    route = request.scope.get("route")
    if route is None:
        return "<unmatched>"
    return str(route.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        REQUEST_COUNT.labels(
            method=request.method,
            path=_route_template(request),
            status_code=str(response.status_code),
        ).inc()
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "Starting %s %s (session storage: %s)",
        settings.app_name,
        settings.app_version,
        "sqlite" if settings.session_database_url else "memory",
    )
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set, all curation requests will return empty lists")
    yield
    # Shutdown: Sessions beenden, HTTP Client schließen
    await shutdown_sessions()
    client = get_http_client()
    await client.aclose()
    get_http_client.cache_clear()


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds} seconds"],
)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Rate Limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
app.add_middleware(SlowAPIMiddleware)

# Metrics Middleware
app.add_middleware(MetricsMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["X-API-Key", "Content-Type"],
)

app.include_router(api_router)


@app.get("/healthz", tags=["Health"])
@limiter.exempt
async def health_check() -> dict[str, str]:
    return {"status": "ok", "version": settings.app_version}


@app.get("/readyz", tags=["Health"])
@limiter.exempt
async def readiness_check(
    response: Response, app_settings: Settings = Depends(get_settings)
) -> dict[str, str]:
    """Nicht bereit, solange kein Zugang zum Remote-Modell konfiguriert ist."""
    if not app_settings.gemini_api_key:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unavailable", "reason": "remote content API key missing"}
    return {"status": "ready"}


@app.get("/metrics", tags=["Monitoring"])
@limiter.exempt
async def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
