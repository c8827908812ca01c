"""Start, steer and stop the sync sessions of a view."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from services.spot_sync.detail import NoActiveSessionError
from services.spot_sync.registry import ViewRegistry
from utils.logger import api_logger as logger

router = APIRouter()


def get_view_registry(request: Request) -> ViewRegistry:
    registry = getattr(request.app.state, "view_registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="View registry not initialized")
    return registry


class StartSpotRequest(BaseModel):
    spot_id: str = Field(min_length=1)
    model: Optional[str] = None


class SwitchModelRequest(BaseModel):
    model: str


class CollectionFilterRequest(BaseModel):
    country: str = "all"
    query: str = ""
    names: Optional[list[str]] = None


# ---------------------------------------------------------------------------
# Detail view
# ---------------------------------------------------------------------------


@router.post("/views/{view_id}/spot")
async def start_spot_session(
    view_id: str,
    request: StartSpotRequest,
    registry: ViewRegistry = Depends(get_view_registry),
):
    model = request.model
    if model is not None:
        try:
            model = registry.model_selection(view_id).set(model)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    controller = registry.detail(view_id)
    controller.start(request.spot_id, model)
    logger.info("Spot session requested", view_id=view_id, spot_id=request.spot_id, model=model)
    return controller.status()


@router.put("/views/{view_id}/spot/model")
async def switch_spot_model(
    view_id: str,
    request: SwitchModelRequest,
    registry: ViewRegistry = Depends(get_view_registry),
):
    controller = registry.peek_detail(view_id)
    if controller is None:
        raise HTTPException(status_code=409, detail="No spot session for this view")
    try:
        controller.switch_model(request.model)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NoActiveSessionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return controller.status()


@router.delete("/views/{view_id}/spot")
async def stop_spot_session(view_id: str, registry: ViewRegistry = Depends(get_view_registry)):
    controller = registry.peek_detail(view_id)
    if controller is not None:
        controller.stop()
    return {"view_id": view_id, "stopped": controller is not None}


@router.get("/views/{view_id}/spot")
async def get_spot_session(view_id: str, registry: ViewRegistry = Depends(get_view_registry)):
    controller = registry.peek_detail(view_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="No spot session for this view")
    return controller.status()


# ---------------------------------------------------------------------------
# Collection view
# ---------------------------------------------------------------------------


@router.post("/views/{view_id}/spots")
async def start_collection_session(
    view_id: str,
    request: Optional[CollectionFilterRequest] = None,
    registry: ViewRegistry = Depends(get_view_registry),
):
    request = request or CollectionFilterRequest()
    controller = registry.collection(view_id)
    controller.start(request.country, request.query, request.names)
    logger.info("Collection session requested", view_id=view_id, country=request.country)
    return controller.status()


@router.put("/views/{view_id}/spots/filter")
async def set_collection_filter(
    view_id: str,
    request: CollectionFilterRequest,
    registry: ViewRegistry = Depends(get_view_registry),
):
    controller = registry.collection(view_id)
    controller.set_filter(request.country, request.query, request.names)
    return controller.status()


@router.delete("/views/{view_id}/spots")
async def stop_collection_session(
    view_id: str, registry: ViewRegistry = Depends(get_view_registry)
):
    controller = registry.peek_collection(view_id)
    if controller is not None:
        controller.stop()
    return {"view_id": view_id, "stopped": controller is not None}


@router.get("/views/{view_id}/spots")
async def get_collection_session(
    view_id: str, registry: ViewRegistry = Depends(get_view_registry)
):
    controller = registry.peek_collection(view_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="No collection session for this view")
    return controller.status()


@router.delete("/views/{view_id}")
async def stop_view(view_id: str, registry: ViewRegistry = Depends(get_view_registry)):
    return {"view_id": view_id, "stopped": registry.stop_view(view_id)}
