"""SQLite-backed storage for IP Dash profiles, offline scopes and hosts."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rakit.db.engine import Base, get_session_factory, session_scope
from rakit.exceptions import DuplicateAddressError
from rakit.utils.logger import get_logger

from .models import IpDashProfileModel, IpDashScopeHostModel, IpDashScopeModel

logger = get_logger(__name__)

MODE_PROXY = "proxy"
MODE_DIRECT = "direct"
MODE_LOCAL_OFFLINE = "local-offline"
PROFILE_MODES = (MODE_PROXY, MODE_DIRECT, MODE_LOCAL_OFFLINE)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ProfileRecord:
    """Stored controller profile. ``api_key_encrypted`` never leaves the service."""

    id: int
    name: str
    location: str | None
    host: str
    mode: str
    site_id: str | None
    api_key_encrypted: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_offline(self) -> bool:
        return self.mode == MODE_LOCAL_OFFLINE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location or "",
            "host": self.host,
            "mode": self.mode,
            "siteId": self.site_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class ScopeRecord:
    id: int
    profile_id: int
    cidr: str
    label: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "profileId": self.profile_id,
            "cidr": self.cidr,
            "label": self.label or "",
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class OfflineHostRecord:
    id: int
    profile_id: int
    scope_id: int
    ip: str
    name: str | None
    hostname: str | None
    mac: str | None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "profileId": self.profile_id,
            "scopeId": self.scope_id,
            "ip": self.ip,
            "name": self.name,
            "hostname": self.hostname,
            "mac": self.mac,
            "createdAt": _iso(self.created_at),
        }


class IpDashStore:
    """Profile and offline scope persistence."""

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
    def _model_to_profile(row: IpDashProfileModel) -> ProfileRecord:
        return ProfileRecord(
            id=int(row.id),
            name=row.name,
            location=row.location,
            host=row.host or "",
            mode=row.mode or MODE_PROXY,
            site_id=row.site_id or None,
            api_key_encrypted=row.api_key_encrypted,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _model_to_scope(row: IpDashScopeModel) -> ScopeRecord:
        return ScopeRecord(
            id=int(row.id),
            profile_id=int(row.profile_id),
            cidr=row.cidr,
            label=row.label,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _model_to_host(row: IpDashScopeHostModel) -> OfflineHostRecord:
        return OfflineHostRecord(
            id=int(row.id),
            profile_id=int(row.profile_id),
            scope_id=int(row.scope_id),
            ip=row.ip,
            name=row.name,
            hostname=row.hostname,
            mac=row.mac,
            created_at=row.created_at,
        )

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def list_profiles(self) -> list[ProfileRecord]:
        """Newest first."""
        with self._lock, session_scope(self._session_factory) as session:
            rows = session.scalars(
                select(IpDashProfileModel).order_by(
                    IpDashProfileModel.created_at.desc(), IpDashProfileModel.id.desc()
                )
            ).all()
            return [self._model_to_profile(r) for r in rows]

    def get_profile(self, profile_id: int) -> ProfileRecord | None:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(IpDashProfileModel, profile_id)
            return self._model_to_profile(row) if row else None

    def get_latest_profile(self) -> ProfileRecord | None:
        profiles = self.list_profiles()
        return profiles[0] if profiles else None

    def create_profile(
        self,
        *,
        name: str,
        location: str | None,
        host: str,
        mode: str,
        site_id: str | None,
        api_key_encrypted: str | None,
    ) -> ProfileRecord:
        with self._lock, session_scope(self._session_factory) as session:
            row = IpDashProfileModel(
                name=name,
                location=location,
                host=host,
                mode=mode,
                site_id=site_id,
                api_key_encrypted=api_key_encrypted,
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return self._model_to_profile(row)

    def update_profile(
        self, profile_id: int, changes: dict[str, Any]
    ) -> ProfileRecord | None:
        """Apply column ``changes``; unknown keys are rejected by SQLAlchemy."""
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(IpDashProfileModel, profile_id)
            if row is None:
                return None
            for column, value in changes.items():
                setattr(row, column, value)
            session.flush()
            session.refresh(row)
            return self._model_to_profile(row)

    def delete_profile(self, profile_id: int) -> bool:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(IpDashProfileModel, profile_id)
            if row is None:
                return False
            session.delete(row)
        return True

    # ------------------------------------------------------------------
    # Offline scopes
    # ------------------------------------------------------------------
    def list_scopes(self, profile_id: int) -> list[ScopeRecord]:
        with self._lock, session_scope(self._session_factory) as session:
            rows = session.scalars(
                select(IpDashScopeModel)
                .where(IpDashScopeModel.profile_id == profile_id)
                .order_by(IpDashScopeModel.created_at, IpDashScopeModel.id)
            ).all()
            return [self._model_to_scope(r) for r in rows]

    def get_scope(self, scope_id: int) -> ScopeRecord | None:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(IpDashScopeModel, scope_id)
            return self._model_to_scope(row) if row else None

    def create_scope(
        self, profile_id: int, cidr: str, label: str | None
    ) -> ScopeRecord:
        with self._lock, session_scope(self._session_factory) as session:
            row = IpDashScopeModel(profile_id=profile_id, cidr=cidr, label=label)
            session.add(row)
            session.flush()
            session.refresh(row)
            return self._model_to_scope(row)

    def delete_scope(self, scope_id: int) -> bool:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(IpDashScopeModel, scope_id)
            if row is None:
                return False
            session.delete(row)
        return True

    # ------------------------------------------------------------------
    # Offline hosts
    # ------------------------------------------------------------------
    def list_hosts(self, profile_id: int) -> list[OfflineHostRecord]:
        with self._lock, session_scope(self._session_factory) as session:
            rows = session.scalars(
                select(IpDashScopeHostModel)
                .where(IpDashScopeHostModel.profile_id == profile_id)
                .order_by(IpDashScopeHostModel.scope_id, IpDashScopeHostModel.ip)
            ).all()
            return [self._model_to_host(r) for r in rows]

    def get_host(self, host_id: int) -> OfflineHostRecord | None:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(IpDashScopeHostModel, host_id)
            return self._model_to_host(row) if row else None

    def create_host(
        self,
        *,
        profile_id: int,
        scope_id: int,
        ip: str,
        name: str | None,
        hostname: str | None,
        mac: str | None,
    ) -> OfflineHostRecord:
        """Insert a reserved host; a second host with the same IP in a profile fails."""
        with self._lock:
            try:
                with session_scope(self._session_factory) as session:
                    row = IpDashScopeHostModel(
                        profile_id=profile_id,
                        scope_id=scope_id,
                        ip=ip,
                        name=name,
                        hostname=hostname,
                        mac=mac,
                    )
                    session.add(row)
                    session.flush()
                    session.refresh(row)
                    return self._model_to_host(row)
            except IntegrityError as exc:
                logger.info(
                    "Rejected duplicate offline host address",
                    event="rakit.ipdash.store.duplicate_ip",
                    profile_id=profile_id,
                    ip=ip,
                )
                raise DuplicateAddressError(
                    "IP already defined in this profile", {"ip": ip}
                ) from exc

    def delete_host(self, host_id: int) -> bool:
        with self._lock, session_scope(self._session_factory) as session:
            row = session.get(IpDashScopeHostModel, host_id)
            if row is None:
                return False
            session.delete(row)
        return True

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------
    def close(self) -> None:
        with self._lock:
            self._engine.dispose()

    def __enter__(self) -> IpDashStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
