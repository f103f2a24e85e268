"""SQLite-backed cabinet inventory.

Geometry and port changes are decided and applied inside a single
``session_scope``: the cabinet's devices and the device's previous port state
are read in the same transaction that writes the result, so a device and its
ports are never observed out of step.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from rakit.db.engine import Base, get_session_factory, session_scope
from rakit.exceptions import ResourceNotFoundError
from rakit.utils.logger import get_logger
from rakit.utils.metrics import port_changes

from .allocator import RackAllocator
from .models import CabinetDeviceModel, CabinetModel, DevicePortModel
from .ports import PortPlan, PortState, plan_port_transition

logger = get_logger(__name__)

DEVICE_FIELDS = (
    "device_type",
    "model",
    "comment",
    "position",
    "height_u",
    "port_aware",
    "number_of_ports",
)
PORT_FIELDS = ("patch_panel", "vlan", "comment", "ip_address")


@dataclass(frozen=True)
class CabinetRecord:
    id: int
    name: str
    symbol: str | None
    location: str | None
    size_u: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol or "",
            "location": self.location or "",
            "sizeU": self.size_u,
        }


@dataclass(frozen=True)
class DeviceRecord:
    id: int
    cabinet_id: int
    device_type: str
    model: str | None
    height_u: int
    position: int
    comment: str | None
    port_aware: bool = False
    number_of_ports: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "cabinetId": self.cabinet_id,
            "type": self.device_type,
            "model": self.model or "",
            "heightU": self.height_u,
            "position": self.position,
            "comment": self.comment or "",
            "portAware": self.port_aware,
            "numberOfPorts": self.number_of_ports,
        }


@dataclass(frozen=True)
class PortRecord:
    id: int
    device_id: int
    port_number: int
    patch_panel: str | None
    vlan: str | None
    comment: str | None
    ip_address: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deviceId": self.device_id,
            "portNumber": self.port_number,
            "patchPanel": self.patch_panel or "",
            "vlan": self.vlan or "",
            "comment": self.comment or "",
            "ipAddress": self.ip_address or "",
        }


class CabinetStore:
    """Cabinets, their devices and device ports."""

    def __init__(self, db_path: str | Path = "data/rakit.db", *, echo: bool = False):
        self.db_path = Path(db_path).resolve()
        self._lock = threading.RLock()
        self._session_factory = get_session_factory(str(self.db_path), echo=echo)
        self._engine = self._session_factory.engine  # type: ignore[attr-defined]
        Base.metadata.create_all(self._engine)

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _model_to_cabinet(row: CabinetModel) -> CabinetRecord:
        return CabinetRecord(
            id=int(row.id),
            name=row.name,
            symbol=row.symbol,
            location=row.location,
            size_u=int(row.size_u or 42),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _model_to_device(row: CabinetDeviceModel) -> DeviceRecord:
        return DeviceRecord(
            id=int(row.id),
            cabinet_id=int(row.cabinet_id),
            device_type=row.device_type,
            model=row.model,
            height_u=int(row.height_u or 1),
            position=int(row.position or 1),
            comment=row.comment,
            port_aware=bool(row.port_aware),
            number_of_ports=row.number_of_ports,
        )

    @staticmethod
    def _model_to_port(row: DevicePortModel) -> PortRecord:
        return PortRecord(
            id=int(row.id),
            device_id=int(row.device_id),
            port_number=int(row.port_number),
            patch_panel=row.patch_panel,
            vlan=row.vlan,
            comment=row.comment,
            ip_address=row.ip_address,
        )

    # ------------------------------------------------------------------
    # Session-bound lookups
    # ------------------------------------------------------------------
    @staticmethod
    def _cabinet_row(session: Session, cabinet_id: int) -> CabinetModel:
        row = session.get(CabinetModel, cabinet_id)
        if row is None:
            raise ResourceNotFoundError("Cabinet not found", {"cabinet_id": cabinet_id})
        return row

    @staticmethod
    def _device_rows(session: Session, cabinet_id: int) -> list[CabinetDeviceModel]:
        return list(
            session.scalars(
                select(CabinetDeviceModel)
                .where(CabinetDeviceModel.cabinet_id == cabinet_id)
                .order_by(CabinetDeviceModel.position, CabinetDeviceModel.id)
            ).all()
        )

    @staticmethod
    def _device_row(
        session: Session, cabinet_id: int, device_id: int
    ) -> CabinetDeviceModel:
        row = session.get(CabinetDeviceModel, device_id)
        if row is None or row.cabinet_id != cabinet_id:
            raise ResourceNotFoundError(
                "Device not found", {"cabinet_id": cabinet_id, "device_id": device_id}
            )
        return row

    def _apply_port_plan(
        self, session: Session, device_id: int, plan: PortPlan
    ) -> None:
        if plan.delete_above is not None:
            result = session.execute(
                delete(DevicePortModel).where(
                    DevicePortModel.device_id == device_id,
                    DevicePortModel.port_number > plan.delete_above,
                )
            )
            port_changes.labels(action="deleted").inc(result.rowcount or 0)
        for number in plan.create:
            session.add(DevicePortModel(device_id=device_id, port_number=number))
        if plan.create:
            port_changes.labels(action="created").inc(len(plan.create))
        session.flush()
        if not plan.is_noop:
            logger.debug(
                "Device ports reconciled",
                event="rakit.porthub.ports.reconciled",
                device_id=device_id,
                created=len(plan.create),
                delete_above=plan.delete_above,
            )

    # ------------------------------------------------------------------
    # Cabinets
    # ------------------------------------------------------------------
    def list_cabinets(self) -> list[CabinetRecord]:
        with self._lock, session_scope(self._session_factory) as session:
            rows = session.scalars(
                select(CabinetModel).order_by(CabinetModel.name, CabinetModel.id)
            ).all()
            return [self._model_to_cabinet(r) for r in rows]

    def get_cabinet(self, cabinet_id: int) -> CabinetRecord | None:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(CabinetModel, cabinet_id)
            return self._model_to_cabinet(row) if row else None

    def create_cabinet(
        self, *, name: str, symbol: str | None, location: str | None, size_u: int
    ) -> CabinetRecord:
        with self._lock, session_scope(self._session_factory) as session:
            row = CabinetModel(
                name=name, symbol=symbol, location=location, size_u=size_u
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return self._model_to_cabinet(row)

    def update_cabinet(self, cabinet_id: int, changes: dict[str, Any]) -> CabinetRecord:
        """Apply ``changes``; a smaller ``size_u`` must still fit every device."""
        with self._lock, session_scope(self._session_factory) as session:
            row = self._cabinet_row(session, cabinet_id)
            new_size = changes.get("size_u")
            if new_size is not None and new_size < row.size_u:
                devices = [
                    self._model_to_device(d)
                    for d in self._device_rows(session, cabinet_id)
                ]
                RackAllocator(row.size_u, devices).check_resize_cabinet(new_size)
            for column, value in changes.items():
                setattr(row, column, value)
            session.flush()
            session.refresh(row)
            return self._model_to_cabinet(row)

    def delete_cabinet(self, cabinet_id: int) -> bool:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(CabinetModel, cabinet_id)
            if row is None:
                return False
            session.delete(row)
        return True

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def list_devices(self, cabinet_id: int) -> list[DeviceRecord]:
        with self._lock, session_scope(self._session_factory) as session:
            return [
                self._model_to_device(r) for r in self._device_rows(session, cabinet_id)
            ]

    def get_device(self, cabinet_id: int, device_id: int) -> DeviceRecord | None:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(CabinetDeviceModel, device_id)
            if row is None or row.cabinet_id != cabinet_id:
                return None
            return self._model_to_device(row)

    def create_device(
        self,
        cabinet_id: int,
        *,
        device_type: str,
        model: str | None,
        height_u: int,
        comment: str | None = None,
        port_aware: bool = False,
        number_of_ports: int | None = None,
    ) -> DeviceRecord:
        """Place a device at the first free run and provision its ports."""
        with self._lock, session_scope(self._session_factory) as session:
            cabinet = self._cabinet_row(session, cabinet_id)
            devices = [
                self._model_to_device(d) for d in self._device_rows(session, cabinet_id)
            ]
            position = RackAllocator(cabinet.size_u, devices).plan_create(height_u)
            plan = plan_port_transition(
                PortState(False), PortState(port_aware, number_of_ports)
            )
            row = CabinetDeviceModel(
                cabinet_id=cabinet_id,
                device_type=device_type,
                model=model,
                height_u=height_u,
                position=position,
                comment=comment,
                port_aware=port_aware,
                number_of_ports=number_of_ports if port_aware else None,
            )
            session.add(row)
            session.flush()
            self._apply_port_plan(session, int(row.id), plan)
            session.refresh(row)
            return self._model_to_device(row)

    def update_device(
        self, cabinet_id: int, device_id: int, changes: dict[str, Any]
    ) -> DeviceRecord:
        """Apply field, geometry and port-state ``changes`` as one unit.

        ``changes`` keys are :data:`DEVICE_FIELDS`. Geometry is checked against
        the other devices with stacking allowed; the port transition is
        computed from the stored port state.
        """
        unknown = set(changes) - set(DEVICE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown device fields: {sorted(unknown)}")
        with self._lock, session_scope(self._session_factory) as session:
            cabinet = self._cabinet_row(session, cabinet_id)
            row = self._device_row(session, cabinet_id, device_id)
            values = dict(changes)
            if "position" in values or "height_u" in values:
                devices = [
                    self._model_to_device(d)
                    for d in self._device_rows(session, cabinet_id)
                ]
                values["position"], values["height_u"] = RackAllocator(
                    cabinet.size_u, devices
                ).plan_move(
                    device_id,
                    position=values.get("position"),
                    height_u=values.get("height_u"),
                )

            old = PortState(bool(row.port_aware), row.number_of_ports)
            port_aware = bool(values.get("port_aware", row.port_aware))
            number = values.get("number_of_ports", row.number_of_ports)
            plan = plan_port_transition(old, PortState(port_aware, number))
            values["port_aware"] = port_aware
            values["number_of_ports"] = number if port_aware else None

            for column, value in values.items():
                setattr(row, column, value)
            session.flush()
            self._apply_port_plan(session, device_id, plan)
            session.refresh(row)
            return self._model_to_device(row)

    def delete_device(self, cabinet_id: int, device_id: int) -> bool:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(CabinetDeviceModel, device_id)
            if row is None or row.cabinet_id != cabinet_id:
                return False
            session.delete(row)
        return True

    def list_port_aware_devices(self) -> list[tuple[DeviceRecord, CabinetRecord]]:
        with self._lock, session_scope(self._session_factory) as session:
            rows = session.execute(
                select(CabinetDeviceModel, CabinetModel)
                .join(CabinetModel, CabinetModel.id == CabinetDeviceModel.cabinet_id)
                .where(CabinetDeviceModel.port_aware.is_(True))
                .order_by(
                    CabinetModel.name,
                    CabinetDeviceModel.position,
                    CabinetDeviceModel.id,
                )
            ).all()
            return [
                (self._model_to_device(d), self._model_to_cabinet(c)) for d, c in rows
            ]

    # ------------------------------------------------------------------
    # Ports
    # ------------------------------------------------------------------
    def list_ports(self, device_id: int) -> list[PortRecord]:
        with self._lock, session_scope(self._session_factory) as session:
            rows = session.scalars(
                select(DevicePortModel)
                .where(DevicePortModel.device_id == device_id)
                .order_by(DevicePortModel.port_number)
            ).all()
            return [self._model_to_port(r) for r in rows]

    def update_port(
        self,
        cabinet_id: int,
        device_id: int,
        port_number: int,
        fields: dict[str, Any],
    ) -> PortRecord:
        unknown = set(fields) - set(PORT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown port fields: {sorted(unknown)}")
        with self._lock, session_scope(self._session_factory) as session:
            self._device_row(session, cabinet_id, device_id)
            row = session.scalars(
                select(DevicePortModel).where(
                    DevicePortModel.device_id == device_id,
                    DevicePortModel.port_number == port_number,
                )
            ).first()
            if row is None:
                raise ResourceNotFoundError(
                    "Port not found",
                    {"device_id": device_id, "port_number": port_number},
                )
            for column, value in fields.items():
                setattr(row, column, value)
            session.flush()
            session.refresh(row)
            return self._model_to_port(row)

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------
    def close(self) -> None:
        with self._lock:
            self._engine.dispose()

    def __enter__(self) -> CabinetStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
