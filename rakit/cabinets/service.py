"""Cabinet service: request normalisation in front of :class:`CabinetStore`."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from rakit.exceptions import (
    CapacityExceededError,
    ConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from rakit.utils.logger import get_logger
from rakit.utils.metrics import allocations
from rakit.utils.validation import InputValidator

from .allocator import (
    DEFAULT_SIZE_U,
    MAX_PORTS,
    MAX_SIZE_U,
    MIN_SIZE_U,
    RackAllocator,
    validate_number_of_ports,
    validate_size_u,
)
from .store import CabinetRecord, CabinetStore, DeviceRecord

logger = get_logger(__name__)


class CabinetService:
    """Cabinet, device and port operations with validation and logging."""

    def __init__(
        self, store: CabinetStore, cabinet_config: Mapping[str, int] | None = None
    ) -> None:
        cfg = dict(cabinet_config or {})
        self.store = store
        self.default_size_u = int(cfg.get("default_size_u", DEFAULT_SIZE_U))
        self.min_size_u = int(cfg.get("min_size_u", MIN_SIZE_U))
        self.max_size_u = int(cfg.get("max_size_u", MAX_SIZE_U))
        self.max_ports = int(cfg.get("max_ports", MAX_PORTS))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_cabinet(self, cabinet_id: int) -> CabinetRecord:
        cabinet = self.store.get_cabinet(cabinet_id)
        if cabinet is None:
            raise ResourceNotFoundError("Cabinet not found", {"cabinet_id": cabinet_id})
        return cabinet

    def _require_device(self, cabinet_id: int, device_id: int) -> DeviceRecord:
        self._require_cabinet(cabinet_id)
        device = self.store.get_device(cabinet_id, device_id)
        if device is None:
            raise ResourceNotFoundError(
                "Device not found", {"cabinet_id": cabinet_id, "device_id": device_id}
            )
        return device

    def _size(self, value: Any) -> int:
        return validate_size_u(value, self.min_size_u, self.max_size_u)

    def _port_fields(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Normalise ``port_aware``/``number_of_ports`` when present."""
        fields: dict[str, Any] = {}
        if "port_aware" in payload:
            fields["port_aware"] = bool(payload["port_aware"])
        if payload.get("number_of_ports") is not None:
            fields["number_of_ports"] = validate_number_of_ports(
                payload["number_of_ports"], self.max_ports
            )
        return fields

    # ------------------------------------------------------------------
    # Cabinets
    # ------------------------------------------------------------------
    def list_cabinets(self) -> list[dict[str, Any]]:
        return [c.to_dict() for c in self.store.list_cabinets()]

    def create_cabinet(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        name = InputValidator.clamp_text(payload.get("name"), 80)
        if not name:
            raise ValidationError("Cabinet name required", field="name")
        size_u = payload.get("size_u")
        cabinet = self.store.create_cabinet(
            name=name,
            symbol=InputValidator.optional_text(payload.get("symbol"), 24),
            location=InputValidator.optional_text(payload.get("location"), 120),
            size_u=self._size(self.default_size_u if size_u is None else size_u),
        )
        logger.info(
            "Cabinet created",
            event="rakit.cabinet.created",
            cabinet_id=cabinet.id,
            size_u=cabinet.size_u,
        )
        return cabinet.to_dict()

    def update_cabinet(
        self, cabinet_id: int, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        self._require_cabinet(cabinet_id)
        changes: dict[str, Any] = {}
        if payload.get("name"):
            name = InputValidator.clamp_text(payload["name"], 80)
            if not name:
                raise ValidationError("Cabinet name required", field="name")
            changes["name"] = name
        if "symbol" in payload:
            changes["symbol"] = InputValidator.optional_text(payload["symbol"], 24)
        if "location" in payload:
            changes["location"] = InputValidator.optional_text(payload["location"], 120)
        if "size_u" in payload:
            changes["size_u"] = self._size(payload["size_u"])
        if not changes:
            raise ValidationError("Nothing to update")
        cabinet = self.store.update_cabinet(cabinet_id, changes)
        logger.info(
            "Cabinet updated",
            event="rakit.cabinet.updated",
            cabinet_id=cabinet_id,
            fields=sorted(changes),
        )
        return cabinet.to_dict()

    def delete_cabinet(self, cabinet_id: int) -> None:
        if not self.store.delete_cabinet(cabinet_id):
            raise ResourceNotFoundError("Cabinet not found", {"cabinet_id": cabinet_id})
        logger.info(
            "Cabinet deleted", event="rakit.cabinet.deleted", cabinet_id=cabinet_id
        )

    def get_cabinet_view(self, cabinet_id: int) -> dict[str, Any]:
        """Cabinet, its devices bottom-up and the unit usage summary."""
        cabinet = self._require_cabinet(cabinet_id)
        devices = self.store.list_devices(cabinet_id)
        usage = RackAllocator(cabinet.size_u, devices).usage()
        return {
            "cabinet": cabinet.to_dict(),
            "devices": [d.to_dict() for d in devices],
            "usage": usage.to_dict(),
        }

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def create_device(
        self, cabinet_id: int, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        self._require_cabinet(cabinet_id)
        device_type = InputValidator.clamp_text(payload.get("device_type"), 60)
        if not device_type:
            raise ValidationError("Device type required", field="type")
        height = payload.get("height_u")
        height_u = InputValidator.coerce_int(1 if height is None else height, "heightU")
        ports = self._port_fields(payload)
        try:
            device = self.store.create_device(
                cabinet_id,
                device_type=device_type,
                model=InputValidator.optional_text(payload.get("model"), 80),
                height_u=height_u,
                comment=InputValidator.optional_text(payload.get("comment"), 400),
                port_aware=ports.get("port_aware", False),
                number_of_ports=ports.get("number_of_ports"),
            )
        except CapacityExceededError:
            allocations.labels(outcome="capacity_exceeded").inc()
            logger.info(
                "No room for device",
                event="rakit.cabinet.device.no_space",
                cabinet_id=cabinet_id,
                height_u=height_u,
            )
            raise
        allocations.labels(outcome="placed").inc()
        logger.info(
            "Device placed",
            event="rakit.cabinet.device.created",
            cabinet_id=cabinet_id,
            device_id=device.id,
            position=device.position,
            height_u=device.height_u,
            ports=device.number_of_ports,
        )
        return device.to_dict()

    def update_device(
        self, cabinet_id: int, device_id: int, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Update any of type, model, comment, geometry and port state at once."""
        self._require_device(cabinet_id, device_id)
        changes: dict[str, Any] = {}
        if "device_type" in payload:
            device_type = InputValidator.clamp_text(payload["device_type"], 60)
            if not device_type:
                raise ValidationError("Device type required", field="type")
            changes["device_type"] = device_type
        if "model" in payload:
            changes["model"] = InputValidator.optional_text(payload["model"], 80)
        if "comment" in payload:
            changes["comment"] = InputValidator.optional_text(payload["comment"], 400)
        if payload.get("height_u") is not None:
            changes["height_u"] = InputValidator.coerce_int(
                payload["height_u"], "heightU"
            )
        if payload.get("position") is not None:
            changes["position"] = InputValidator.coerce_int(
                payload["position"], "position"
            )
        changes.update(self._port_fields(payload))
        if not changes:
            raise ValidationError("Nothing to update")
        try:
            device = self.store.update_device(cabinet_id, device_id, changes)
        except ConflictError:
            allocations.labels(outcome="conflict").inc()
            raise
        if "position" in changes or "height_u" in changes:
            allocations.labels(outcome="moved").inc()
        logger.info(
            "Device updated",
            event="rakit.cabinet.device.updated",
            cabinet_id=cabinet_id,
            device_id=device_id,
            fields=sorted(changes),
        )
        return device.to_dict()

    def delete_device(self, cabinet_id: int, device_id: int) -> None:
        self._require_cabinet(cabinet_id)
        if not self.store.delete_device(cabinet_id, device_id):
            raise ResourceNotFoundError(
                "Device not found", {"cabinet_id": cabinet_id, "device_id": device_id}
            )
        logger.info(
            "Device deleted",
            event="rakit.cabinet.device.deleted",
            cabinet_id=cabinet_id,
            device_id=device_id,
        )

    # ------------------------------------------------------------------
    # Ports
    # ------------------------------------------------------------------
    def list_port_devices(self) -> list[dict[str, Any]]:
        return [
            {**device.to_dict(), "cabinetName": cabinet.name}
            for device, cabinet in self.store.list_port_aware_devices()
        ]

    def get_device_ports(self, cabinet_id: int, device_id: int) -> dict[str, Any]:
        device = self._require_device(cabinet_id, device_id)
        return {
            "device": device.to_dict(),
            "ports": [p.to_dict() for p in self.store.list_ports(device_id)],
        }

    def update_port(
        self,
        cabinet_id: int,
        device_id: int,
        port_number: int,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        limits = {"patch_panel": 120, "vlan": 32, "comment": 400, "ip_address": 64}
        fields = {
            column: InputValidator.optional_text(payload[column], limit)
            for column, limit in limits.items()
            if column in payload
        }
        if not fields:
            raise ValidationError("Nothing to update")
        self._require_cabinet(cabinet_id)
        port = self.store.update_port(cabinet_id, device_id, port_number, fields)
        logger.info(
            "Port updated",
            event="rakit.porthub.port.updated",
            device_id=device_id,
            port_number=port_number,
            fields=sorted(fields),
        )
        return port.to_dict()
