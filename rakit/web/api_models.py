"""
Pydantic request/response models for the REST API.

Payloads use the console's camelCase keys; ``model_dump()`` yields the
snake_case names the services expect. Range and length checks live in the
services so their messages are reported verbatim.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def changes(self) -> dict[str, Any]:
        """Only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


# ============================================================================
# Cabinets and devices
# ============================================================================


class CabinetCreate(CamelModel):
    name: str | None = Field(None, description="Display name", examples=["Core A"])
    symbol: str | None = Field(None, description="Short label", examples=["A1"])
    location: str | None = Field(None, description="Room or site")
    size_u: int | None = Field(None, alias="sizeU", description="Height in units")


class CabinetUpdate(CabinetCreate):
    """Any subset of the create fields."""


class DeviceCreate(CamelModel):
    device_type: str | None = Field(None, alias="type", examples=["Switch"])
    model: str | None = None
    height_u: int | None = Field(None, alias="heightU", description="Height in units")
    comment: str | None = None
    port_aware: bool | None = Field(None, alias="portAware")
    number_of_ports: int | None = Field(None, alias="numberOfPorts")


class DeviceUpdate(DeviceCreate):
    position: int | None = Field(None, description="Lowest occupied unit (1-based)")


class PortUpdate(CamelModel):
    patch_panel: str | None = Field(None, alias="patchPanel")
    vlan: str | None = None
    comment: str | None = None
    ip_address: str | None = Field(None, alias="ipAddress")


# ============================================================================
# IP Dash
# ============================================================================


class ProfileCreate(CamelModel):
    name: str | None = None
    location: str | None = None
    host: str | None = Field(None, examples=["https://192.168.1.1"])
    mode: str | None = Field(None, examples=["proxy", "direct", "local-offline"])
    api_key: str | None = Field(None, alias="apiKey", description="Write-only")
    site_id: str | None = Field(None, alias="siteId")


class ProfileUpdate(ProfileCreate):
    """Any subset of the create fields."""


class ControllerProbe(CamelModel):
    host: str | None = None
    api_key: str | None = Field(None, alias="apiKey")


class OfflineScopeCreate(CamelModel):
    profile_id: int | None = Field(None, alias="profileId")
    cidr: str | None = Field(None, examples=["192.168.68.0/24"])
    label: str | None = None


class OfflineHostCreate(CamelModel):
    profile_id: int | None = Field(None, alias="profileId")
    scope_id: int | None = Field(None, alias="scopeId")
    ip: str | None = None
    hostname: str | None = None
    mac: str | None = None


# ============================================================================
# Responses
# ============================================================================


class HealthCheck(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: str
    path: str


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Conflicting state"},
}
