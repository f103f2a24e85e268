"""Port Hub API endpoints."""

from fastapi import APIRouter, Body
from fastapi import Path as PathParam

from ..api_models import ERROR_RESPONSES, PortUpdate
from ..web import require_cabinet_service

router = APIRouter(tags=["Port Hub"], responses=ERROR_RESPONSES)


@router.get("/api/porthub/devices", summary="List port-aware devices")
async def list_port_devices():
    return {"devices": require_cabinet_service().list_port_devices()}


@router.get(
    "/api/cabinets/{cabinet_id}/devices/{device_id}/ports",
    summary="List device ports",
)
async def list_ports(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
    device_id: int = PathParam(..., ge=1, description="Device ID"),
):
    return require_cabinet_service().get_device_ports(cabinet_id, device_id)


@router.patch(
    "/api/cabinets/{cabinet_id}/devices/{device_id}/ports/{port_number}",
    summary="Edit patch panel, VLAN, comment or IP of one port",
)
async def update_port(
    cabinet_id: int = PathParam(..., ge=1, description="Cabinet ID"),
    device_id: int = PathParam(..., ge=1, description="Device ID"),
    port_number: int = PathParam(..., ge=1, description="Port number"),
    payload: PortUpdate = Body(...),
):
    port = require_cabinet_service().update_port(
        cabinet_id, device_id, port_number, payload.changes()
    )
    return {"ok": True, "port": port}
