from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import traceback

from config import settings
from api.routes_views import router as views_router
from api.websocket import BroadcastRenderSurface, handle_websocket, manager
from services.spot_sync.registry import ViewRegistry
from services.spot_sync.scheduler import AsyncioScheduler
from services.spots_client import SpotsClient
from utils.logger import setup_logging, get_logger
from utils.utcnow import utc_isoformat

# Setup logging
setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON, log_file=settings.LOG_FILE)
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting spot sync service...", spots_api=settings.SPOTS_API_URL)

    client = SpotsClient()
    scheduler = AsyncioScheduler()
    registry = ViewRegistry(
        client,
        surface_factory=lambda view_id: BroadcastRenderSurface(manager, view_id),
        scheduler=scheduler,
    )
    app.state.spots_client = client
    app.state.view_registry = registry

    try:
        yield
    finally:
        logger.info("Shutting down...")
        registry.stop_all()
        await scheduler.aclose()
        await client.close()
        logger.info("Shutdown complete")


app = FastAPI(
    title="Spot Sync",
    description="Live forecast synchronization for kite and wind spots",
    version="1.0.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        traceback=traceback.format_exc(),
    )
    return JSONResponse(
        status_code=500, content={"detail": "Internal server error", "error": str(exc)}
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API routes
app.include_router(views_router, prefix="/api/v1", tags=["Views"])


# WebSocket endpoint
@app.websocket("/ws/{view_id}")
async def websocket_endpoint(websocket: WebSocket, view_id: str):
    registry = websocket.app.state.view_registry
    status = {}
    detail = registry.peek_detail(view_id)
    if detail is not None:
        status["spot"] = detail.status()
    collection = registry.peek_collection(view_id)
    if collection is not None:
        status["spots"] = collection.status()
    await handle_websocket(websocket, view_id, status)


@app.get("/health")
async def health_check():
    """Basic health check - for load balancers"""
    registry = getattr(app.state, "view_registry", None)
    return {
        "status": "healthy",
        "timestamp": utc_isoformat(),
        "views": registry.status() if registry is not None else {},
        "websocket_connections": manager.connection_count(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=False,
        log_level=settings.LOG_LEVEL.lower(),
    )
