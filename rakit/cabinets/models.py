"""SQLAlchemy models for cabinets, mounted devices and their ports."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from rakit.db.engine import Base


def _now() -> datetime:
    return datetime.now(UTC)


class CabinetModel(Base):
    """Fixed-height rack measured in units."""

    __tablename__ = "cabinets"
    __table_args__ = {"extend_existing": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    symbol = Column(String, nullable=True)
    location = Column(String, nullable=True)
    size_u = Column(Integer, nullable=False, default=42)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"<Cabinet id={self.id} name={self.name!r} size_u={self.size_u}>"


class CabinetDeviceModel(Base):
    """Device occupying ``[position, position + height_u - 1]`` in a cabinet."""

    __tablename__ = "cabinet_devices"
    __table_args__ = (
        Index("idx_cabinet_device_cabinet", "cabinet_id"),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    cabinet_id = Column(
        Integer, ForeignKey("cabinets.id", ondelete="CASCADE"), nullable=False
    )
    device_type = Column(String, nullable=False)
    model = Column(String, nullable=True)
    height_u = Column(Integer, nullable=False, default=1)
    position = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    port_aware = Column(Boolean, nullable=False, default=False)
    number_of_ports = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return (
            f"<CabinetDevice id={self.id} cabinet_id={self.cabinet_id} "
            f"position={self.position} height_u={self.height_u}>"
        )


class DevicePortModel(Base):
    """Numbered port on a port-aware device."""

    __tablename__ = "device_ports"
    __table_args__ = (
        UniqueConstraint("device_id", "port_number", name="uq_device_port_number"),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(
        Integer, ForeignKey("cabinet_devices.id", ondelete="CASCADE"), nullable=False
    )
    port_number = Column(Integer, nullable=False)
    patch_panel = Column(String, nullable=True)
    vlan = Column(String, nullable=True)
    comment = Column(Text, nullable=True)
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"<DevicePort device_id={self.device_id} port={self.port_number}>"
