"""Spot watch worker: runs one headless view and logs every render call.

Run from backend dir:
  SPOT_ID=hel python -m workers.spot_watch_worker
  SPOT_COUNTRY=Poland python -m workers.spot_watch_worker   # collection mode

Optional: SPOT_MODEL (detail mode), SPOT_QUERY (collection mode),
SPOT_WATCH_STATUS_SECONDS (status heartbeat, default 60).
"""

from __future__ import annotations

import asyncio
import os
import sys

_BACKEND = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND not in sys.path:
    sys.path.insert(0, _BACKEND)
if os.getcwd() != _BACKEND:
    os.chdir(_BACKEND)

from config import settings
from services import SpotsClient, ViewRegistry
from services.spot_sync.scheduler import AsyncioScheduler
from services.spot_sync.surface import LoggingRenderSurface
from utils.logger import get_logger, setup_logging

setup_logging(
    level=os.environ.get("LOG_LEVEL", settings.LOG_LEVEL),
    json_format=settings.LOG_JSON,
    log_file=settings.LOG_FILE,
)
logger = get_logger("spot_watch_worker")

VIEW_ID = "worker"


async def _run_loop(registry: ViewRegistry) -> None:
    spot_id = os.environ.get("SPOT_ID", "").strip()
    heartbeat = max(1.0, float(os.environ.get("SPOT_WATCH_STATUS_SECONDS", "60")))

    if spot_id:
        controller = registry.detail(VIEW_ID)
        controller.start(spot_id, os.environ.get("SPOT_MODEL") or None)
    else:
        controller = registry.collection(VIEW_ID)
        controller.start(
            os.environ.get("SPOT_COUNTRY", "all"),
            os.environ.get("SPOT_QUERY", ""),
        )
    logger.info("Spot watch worker started", mode="detail" if spot_id else "collection")

    while True:
        await asyncio.sleep(heartbeat)
        logger.info("Spot watch status", **controller.status())


async def main() -> None:
    client = SpotsClient()
    scheduler = AsyncioScheduler()
    registry = ViewRegistry(
        client,
        surface_factory=lambda view_id: LoggingRenderSurface(view_id),
        scheduler=scheduler,
    )
    try:
        await _run_loop(registry)
    except asyncio.CancelledError:
        logger.info("Spot watch worker shutting down")
    finally:
        registry.stop_all()
        await scheduler.aclose()
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
