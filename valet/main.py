# valet/main.py
"""
FastAPI application entry point.
Includes security middleware, typed error mapping, global error handler, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from valet.routers import cards, checkin, drivers, health, hooks, pricing, queue, retrieval, vehicles
from valet.database import create_tables
from valet.config import settings
from valet.services.errors import ValetError
from valet.services.orchestrator import get_orchestrator
from valet.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Valet Orchestration API",
    description="Hook allocation, NFC card lifecycle and retrieval dispatch for valet stations.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (station, driver and customer apps on the LAN) ──────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to app origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional shared API key for the station/driver apps.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Typed core errors ────────────────────────────────────────────────────────
@app.exception_handler(ValetError)
async def valet_error_handler(request: Request, exc: ValetError):
    level = logger.warning if exc.http_status < 500 else logger.error
    level(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc.detail}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.detail, "error": exc.kind, "current": jsonable_encoder(exc.current)},
    )


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(checkin.router,   prefix="/api/v1", tags=["Check-in"])
app.include_router(retrieval.router, prefix="/api/v1", tags=["Retrieval"])
app.include_router(queue.router,     prefix="/api/v1", tags=["Dispatch Queue"])
app.include_router(hooks.router,     prefix="/api/v1", tags=["Hooks"])
app.include_router(cards.router,     prefix="/api/v1", tags=["Cards"])
app.include_router(vehicles.router,  prefix="/api/v1", tags=["Vehicles"])
app.include_router(drivers.router,   prefix="/api/v1", tags=["Drivers"])
app.include_router(pricing.router,   prefix="/api/v1", tags=["Pricing"])
app.include_router(health.router,    prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("Valet backend starting up...")
    create_tables()
    logger.info("Database tables ready")
    core = get_orchestrator()
    stats = core.hook_stats()
    logger.info(f"Hook board: {stats.available}/{stats.total} free")
    logger.info(f"Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("Valet backend shutting down...")
