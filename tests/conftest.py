"""Shared fixtures: temporary SQLite stores, services and a fake controller."""

from __future__ import annotations

import copy
from typing import Any

import pytest
from fastapi.testclient import TestClient

from rakit.cabinets.service import CabinetService
from rakit.cabinets.store import CabinetStore
from rakit.exceptions import ControllerUnavailableError
from rakit.network.service import IpDashService
from rakit.network.store import IpDashStore
from rakit.utils.crypto import SecretBox
from rakit.web import web as web_registry
from rakit.web.app_setup import create_app

NOW = 1_700_000_000
CONTROLLER_IP = "192.168.1.1"


class FakeControllerClient:
    """Stands in for both the client factory and the client it returns."""

    def __init__(
        self,
        snapshot: dict[str, Any] | None = None,
        sites: list[dict[str, Any]] | None = None,
        error: str | None = None,
    ) -> None:
        self.snapshot = snapshot or {"users": [], "online": [], "networks": []}
        self.sites = sites if sites is not None else []
        self.error = error
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.site_ids: list[str | None] = []
        self.closed = 0

    def __call__(self, host: str, api_key: str, **kwargs: Any):
        self.calls.append((host, api_key, kwargs))
        return self

    def _maybe_fail(self) -> None:
        if self.error:
            raise ControllerUnavailableError(self.error, {"status": 502})

    def list_sites(self) -> list[dict[str, Any]]:
        self._maybe_fail()
        return list(self.sites)

    def load_snapshot(self, site_id: str | None = None) -> dict[str, Any]:
        self.site_ids.append(site_id)
        self._maybe_fail()
        return copy.deepcopy(self.snapshot)

    def test_connection(self) -> None:
        self._maybe_fail()

    def close(self) -> None:
        self.closed += 1


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "rakit.db"


@pytest.fixture
def cabinet_store(db_path):
    store = CabinetStore(db_path)
    yield store
    store.close()


@pytest.fixture
def cabinet_service(cabinet_store):
    return CabinetService(cabinet_store)


@pytest.fixture
def ipdash_store(db_path):
    store = IpDashStore(db_path)
    yield store
    store.close()


@pytest.fixture
def secret_box():
    return SecretBox("unit-test-secret")


@pytest.fixture
def fake_controller():
    return FakeControllerClient()


@pytest.fixture
def ipdash_service(ipdash_store, secret_box, fake_controller):
    return IpDashService(
        ipdash_store,
        secret_box,
        client_factory=fake_controller,
        resolver=lambda host: CONTROLLER_IP,
        clock=lambda: NOW,
    )


@pytest.fixture
def api_client(cabinet_service, ipdash_service):
    app = create_app(cabinet_service=cabinet_service, ipdash_service=ipdash_service)
    with TestClient(app) as client:
        yield client
    web_registry.set_cabinet_service(None)
    web_registry.set_ipdash_service(None)
