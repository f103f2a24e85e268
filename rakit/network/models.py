"""SQLAlchemy models for IP Dash profiles and locally defined address scopes."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
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


class IpDashProfileModel(Base):
    """Connection profile for a network controller (or a local offline book)."""

    __tablename__ = "ipdash_profiles"
    __table_args__ = {"extend_existing": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    location = Column(String, nullable=True)
    host = Column(String, nullable=False, default="")
    mode = Column(String, nullable=False, default="proxy")
    site_id = Column(String, nullable=True)
    api_key_encrypted = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"<IpDashProfile id={self.id} name={self.name!r} mode={self.mode!r}>"


class IpDashScopeModel(Base):
    """CIDR block tracked by a local offline profile."""

    __tablename__ = "ipdash_scopes"
    __table_args__ = (
        Index("idx_scope_profile", "profile_id"),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(
        Integer, ForeignKey("ipdash_profiles.id", ondelete="CASCADE"), nullable=False
    )
    cidr = Column(String, nullable=False)
    label = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return (
            f"<IpDashScope id={self.id} profile_id={self.profile_id} "
            f"cidr={self.cidr!r}>"
        )


class IpDashScopeHostModel(Base):
    """Reserved address inside an offline scope."""

    __tablename__ = "ipdash_scope_hosts"
    __table_args__ = (
        UniqueConstraint("profile_id", "ip", name="uq_scope_host_profile_ip"),
        Index("idx_scope_host_scope", "scope_id"),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(
        Integer, ForeignKey("ipdash_profiles.id", ondelete="CASCADE"), nullable=False
    )
    scope_id = Column(
        Integer, ForeignKey("ipdash_scopes.id", ondelete="CASCADE"), nullable=False
    )
    ip = Column(String, nullable=False)
    name = Column(String, nullable=True)
    hostname = Column(String, nullable=True)
    mac = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"<IpDashScopeHost id={self.id} scope_id={self.scope_id} ip={self.ip!r}>"
