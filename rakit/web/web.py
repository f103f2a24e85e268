"""Process-wide service registry used by the API routers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from fastapi import HTTPException, status

if TYPE_CHECKING:
    from rakit.cabinets.service import CabinetService
    from rakit.network.service import IpDashService

_cabinet_service: Optional["CabinetService"] = None
_ipdash_service: Optional["IpDashService"] = None


def get_cabinet_service() -> Optional["CabinetService"]:
    return _cabinet_service


def set_cabinet_service(service: Optional["CabinetService"]) -> None:
    global _cabinet_service
    _cabinet_service = service


def get_ipdash_service() -> Optional["IpDashService"]:
    return _ipdash_service


def set_ipdash_service(service: Optional["IpDashService"]) -> None:
    global _ipdash_service
    _ipdash_service = service


def require_cabinet_service() -> "CabinetService":
    service = get_cabinet_service()
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cabinet service unavailable",
        )
    return service


def require_ipdash_service() -> "IpDashService":
    service = get_ipdash_service()
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="IP Dash service unavailable",
        )
    return service
