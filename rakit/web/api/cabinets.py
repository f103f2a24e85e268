"""Cabinet and device API endpoints."""

from fastapi import APIRouter, Body, status
from fastapi import Path as PathParam

from ..api_models import (
    ERROR_RESPONSES,
    CabinetCreate,
    CabinetUpdate,
    DeviceCreate,
    DeviceUpdate,
)
from ..web import require_cabinet_service

router = APIRouter(
    prefix="/api/cabinets", tags=["Cabinets"], responses=ERROR_RESPONSES
)


# ============================================================================
# Cabinets
# ============================================================================


@router.get("", summary="List cabinets")
async def list_cabinets():
    return {"cabinets": require_cabinet_service().list_cabinets()}


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create cabinet")
async def create_cabinet(payload: CabinetCreate = Body(...)):
    cabinet = require_cabinet_service().create_cabinet(payload.changes())
    return {"ok": True, "cabinet": cabinet}


@router.patch("/{cabinet_id}", summary="Update cabinet")
async def update_cabinet(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
    payload: CabinetUpdate = Body(...),
):
    cabinet = require_cabinet_service().update_cabinet(cabinet_id, payload.changes())
    return {"ok": True, "cabinet": cabinet}


@router.delete("/{cabinet_id}", summary="Delete cabinet with its devices")
async def delete_cabinet(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
):
    require_cabinet_service().delete_cabinet(cabinet_id)
    return {"ok": True}


# ============================================================================
# Devices
# ============================================================================


@router.get("/{cabinet_id}/devices", summary="Cabinet contents and usage")
async def list_devices(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
):
    return require_cabinet_service().get_cabinet_view(cabinet_id)


@router.post(
    "/{cabinet_id}/devices",
    status_code=status.HTTP_201_CREATED,
    summary="Mount device at the lowest free position",
)
async def create_device(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
    payload: DeviceCreate = Body(...),
):
    device = require_cabinet_service().create_device(cabinet_id, payload.changes())
    return {"ok": True, "device": device}


@router.patch("/{cabinet_id}/devices/{device_id}", summary="Update or move device")
async def update_device(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
    device_id: int = PathParam(..., ge=1, description="Device ID"),
    payload: DeviceUpdate = Body(...),
):
    device = require_cabinet_service().update_device(
        cabinet_id, device_id, payload.changes()
    )
    return {"ok": True, "device": device}


@router.delete("/{cabinet_id}/devices/{device_id}", summary="Remove device")
async def delete_device(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
    device_id: int = PathParam(..., ge=1, description="Device ID"),
):
    require_cabinet_service().delete_device(cabinet_id, device_id)
    return {"ok": True}
