"""IP Dash API endpoints.

Endpoints that reach the controller are plain ``def`` so FastAPI runs the
blocking HTTP calls in its threadpool.
"""

import json

from fastapi import APIRouter, Body, Query, status
from fastapi import Path as PathParam

from rakit.exceptions import ValidationError
from rakit.network.reconcile import VisibilityFilters

from ..api_models import (
    ERROR_RESPONSES,
    ControllerProbe,
    ErrorResponse,
    OfflineHostCreate,
    OfflineScopeCreate,
    ProfileCreate,
    ProfileUpdate,
)
from ..web import require_ipdash_service

router = APIRouter(
    prefix="/api/ipdash",
    tags=["IP Dash"],
    responses={
        **ERROR_RESPONSES,
        502: {"model": ErrorResponse, "description": "Controller unreachable"},
    },
)


def _parse_tags(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    try:
        tags = json.loads(raw)
    except ValueError as exc:
        raise ValidationError("tags must be a JSON object", field="tags") from exc
    if not isinstance(tags, dict):
        raise ValidationError("tags must be a JSON object", field="tags")
    return {str(k): str(v) for k, v in tags.items() if v}


# ============================================================================
# Profiles
# ============================================================================


@router.get("/profiles", summary="List controller profiles")
async def list_profiles():
    return {"profiles": require_ipdash_service().list_profiles()}


@router.post(
    "/profiles", status_code=status.HTTP_201_CREATED, summary="Create profile"
)
async def create_profile(payload: ProfileCreate = Body(...)):
    profile = require_ipdash_service().create_profile(payload.changes())
    return {"ok": True, "profile": profile}


@router.post("/profiles/test", summary="Test controller credentials")
def test_profile(payload: ControllerProbe = Body(...)):
    require_ipdash_service().test_profile(payload.host, payload.api_key)
    return {"ok": True}


@router.patch("/profiles/{profile_id}", summary="Update profile")
async def update_profile(
    profile_id: int = PathParam(..., ge=1, description="Profile ID"),
    payload: ProfileUpdate = Body(...),
):
    profile = require_ipdash_service().update_profile(profile_id, payload.changes())
    return {"ok": True, "profile": profile}


@router.delete("/profiles/{profile_id}", summary="Delete profile")
async def delete_profile(
    profile_id: int = PathParam(..., ge=1, description="Profile ID"),
):
    require_ipdash_service().delete_profile(profile_id)
    return {"ok": True}


@router.post("/sites/preview", summary="List controller sites for a credential")
def preview_sites(payload: ControllerProbe = Body(...)):
    sites = require_ipdash_service().preview_sites(payload.host, payload.api_key)
    return {"ok": True, "sites": sites}


# ============================================================================
# Snapshot and view
# ============================================================================


@router.get("/data", summary="Raw controller or offline snapshot")
def get_data(profile_id: int | None = Query(None, alias="profileId", ge=1)):
    return require_ipdash_service().get_data(profile_id)


@router.get("/view", summary="Reconciled, filtered and grouped network view")
def get_view(
    profile_id: int | None = Query(None, alias="profileId", ge=1),
    network_index: int = Query(0, alias="networkIndex", ge=0),
    group_by: str = Query("none", alias="groupBy"),
    show_online: bool = Query(False, alias="showOnline"),
    show_reserved: bool = Query(False, alias="showReserved"),
    hide_empty: bool = Query(False, alias="hideEmpty"),
    tags: str | None = Query(None, description="JSON object of group labels"),
):
    filters = VisibilityFilters(
        show_online=show_online, show_reserved=show_reserved, hide_empty=hide_empty
    )
    return require_ipdash_service().build_view(
        profile_id,
        network_index=network_index,
        group_by=group_by,
        filters=filters,
        tags=_parse_tags(tags),
    )


# ============================================================================
# Local offline scopes and hosts
# ============================================================================


@router.post(
    "/offline/scopes",
    status_code=status.HTTP_201_CREATED,
    summary="Add a CIDR scope to a Local Offline profile",
)
async def create_scope(payload: OfflineScopeCreate = Body(...)):
    scope = require_ipdash_service().add_offline_scope(
        payload.profile_id, payload.cidr, payload.label
    )
    return {"ok": True, "scope": scope}


@router.delete("/offline/scopes/{scope_id}", summary="Delete scope and its hosts")
async def delete_scope(
    scope_id: int = PathParam(..., ge=1, description="Scope ID"),
):
    require_ipdash_service().delete_offline_scope(scope_id)
    return {"ok": True}


@router.post(
    "/offline/ips",
    status_code=status.HTTP_201_CREATED,
    summary="Reserve an address inside a scope",
)
async def create_host(payload: OfflineHostCreate = Body(...)):
    host = require_ipdash_service().add_offline_host(
        payload.profile_id,
        payload.scope_id,
        payload.ip,
        hostname=payload.hostname,
        mac=payload.mac,
    )
    return {"ok": True, "host": host}


@router.delete("/offline/ips/{host_id}", summary="Release a reserved address")
async def delete_host(
    host_id: int = PathParam(..., ge=1, description="Host ID"),
):
    require_ipdash_service().delete_offline_host(host_id)
    return {"ok": True}
