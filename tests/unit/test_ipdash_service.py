from __future__ import annotations

import time

import pytest
from prometheus_client import REGISTRY

from rakit.exceptions import (
    ConfigError,
    ControllerUnavailableError,
    DuplicateAddressError,
    ResourceNotFoundError,
    ValidationError,
)
from rakit.network.reconcile import VisibilityFilters
from rakit.network.service import IpDashService
from rakit.utils.crypto import SecretBox

NOW = 1_700_000_000
CONTROLLER_IP = "192.168.1.1"

SNAPSHOT = {
    "users": [
        {
            "_id": "u1",
            "name": "nas",
            "mac": "AA:AA:AA:AA:AA:01",
            "fixed_ip": "192.168.1.2",
        },
        {"_id": "u2", "name": "printer", "fixed_ip": "192.168.1.3"},
    ],
    "online": [
        {"mac": "aa:aa:aa:aa:aa:01", "ip": "192.168.1.2", "hostname": "nas-live"},
        {"mac": "bb:bb:bb:bb:bb:01", "ip": "192.168.1.5", "last_seen": NOW - 5},
    ],
    "networks": [
        {"_id": "lan", "name": "LAN", "ip_subnet": "192.168.1.0/29"},
        {"_id": "iot", "name": "IoT", "ip_subnet": "192.168.9.0/30"},
    ],
}


def _offline_profile(service):
    return service.create_profile({"name": "Lab", "mode": "local-offline"})


def _controller_profile(service, **extra):
    payload = {"name": "Home", "host": "192.168.1.1", "api_key": "k-123", **extra}
    return service.create_profile(payload)


# ----------------------------------------------------------------------
# Profiles
# ----------------------------------------------------------------------
def test_create_profile_seals_key(ipdash_service, ipdash_store, secret_box):
    profile = _controller_profile(ipdash_service)
    assert profile["host"] == "https://192.168.1.1"
    assert profile["mode"] == "proxy"
    assert "apiKey" not in profile
    stored = ipdash_store.get_profile(profile["id"])
    assert stored.api_key_encrypted != "k-123"
    assert secret_box.decrypt(stored.api_key_encrypted) == "k-123"


def test_offline_profile_stores_no_credentials(ipdash_service, ipdash_store):
    profile = _offline_profile(ipdash_service)
    stored = ipdash_store.get_profile(profile["id"])
    assert stored.host == ""
    assert stored.api_key_encrypted is None


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"host": "h", "api_key": "k"}, "Profile name required"),
        ({"name": "x", "api_key": "k"}, "Valid host required"),
        ({"name": "x", "host": "h", "api_key": "  "}, "API key required"),
    ],
)
def test_create_profile_validation(ipdash_service, payload, message):
    with pytest.raises(ValidationError, match=message):
        ipdash_service.create_profile(payload)


def test_missing_secret_is_a_config_error(ipdash_store):
    service = IpDashService(ipdash_store, SecretBox(None))
    with pytest.raises(ConfigError):
        _controller_profile(service)
    assert _offline_profile(service)["mode"] == "local-offline"


def test_update_profile_rules(ipdash_service, ipdash_store, secret_box):
    profile = _controller_profile(ipdash_service, site_id="site-1")
    with pytest.raises(ValidationError, match="API key cannot be empty"):
        ipdash_service.update_profile(profile["id"], {"api_key": ""})
    with pytest.raises(ValidationError, match="Nothing to update"):
        ipdash_service.update_profile(profile["id"], {"api_key": None})

    ipdash_service.update_profile(profile["id"], {"api_key": "k-456"})
    stored = ipdash_store.get_profile(profile["id"])
    assert secret_box.decrypt(stored.api_key_encrypted) == "k-456"

    offline = ipdash_service.update_profile(profile["id"], {"mode": "local-offline"})
    assert offline["host"] == ""
    assert offline["siteId"] is None
    with pytest.raises(ResourceNotFoundError):
        ipdash_service.update_profile(999, {"name": "x"})


def test_probes_use_normalized_host(ipdash_service, fake_controller):
    fake_controller.sites = [{"id": "s1", "name": "Default"}, {"_id": "s2"}, {}]
    sites = ipdash_service.preview_sites("unifi.local", "key")
    assert sites == [{"id": "s1", "name": "Default"}, {"id": "s2", "name": "s2"}]
    host, key, kwargs = fake_controller.calls[-1]
    assert (host, key) == ("https://unifi.local", "key")
    assert kwargs["timeout_ms"] == 15000
    assert fake_controller.closed == 1

    fake_controller.error = "HTTP 401"
    with pytest.raises(ControllerUnavailableError):
        ipdash_service.test_profile("unifi.local", "key")
    assert fake_controller.closed == 2
    with pytest.raises(ValidationError, match="API key required"):
        ipdash_service.test_profile("unifi.local", "")


# ----------------------------------------------------------------------
# Snapshots
# ----------------------------------------------------------------------
def test_get_data_without_profiles(ipdash_service):
    assert ipdash_service.get_data()["status"] == "missing-profile"


def test_get_data_active_and_site_inference(ipdash_service, fake_controller):
    fake_controller.snapshot = SNAPSHOT
    fake_controller.sites = [{"id": "only-site"}]
    profile = _controller_profile(ipdash_service)
    data = ipdash_service.get_data(profile["id"])
    assert data["status"] == "active"
    assert data["controllerIp"] == CONTROLLER_IP
    assert data["profile"]["id"] == profile["id"]
    assert fake_controller.site_ids == ["only-site"]


def test_get_data_inactive_on_controller_failure(ipdash_service, fake_controller):
    fake_controller.error = "HTTP 503"
    profile = _controller_profile(ipdash_service, site_id="s1")
    data = ipdash_service.get_data(profile["id"])
    assert data["status"] == "inactive"
    assert data["error"] == "HTTP 503"
    assert data["users"] == []


def test_get_data_falls_back_to_latest_profile(ipdash_service):
    _controller_profile(ipdash_service)
    latest = _offline_profile(ipdash_service)
    data = ipdash_service.get_data(12345)
    assert data["status"] == "local-offline"
    assert data["profile"]["id"] == latest["id"]


# ----------------------------------------------------------------------
# Offline scopes and hosts
# ----------------------------------------------------------------------
def test_offline_scope_validation(ipdash_service):
    offline = _offline_profile(ipdash_service)
    controller = _controller_profile(ipdash_service)
    scope = ipdash_service.add_offline_scope(offline["id"], "10.0.0.77/24", "Servers")
    assert scope["cidr"] == "10.0.0.0/24"
    with pytest.raises(ValidationError, match="CIDR required"):
        ipdash_service.add_offline_scope(offline["id"], "10.0.0.0/16")
    with pytest.raises(ValidationError, match="not Local Offline"):
        ipdash_service.add_offline_scope(controller["id"], "10.0.0.0/24")
    with pytest.raises(ValidationError, match="Profile required"):
        ipdash_service.add_offline_scope(None, "10.0.0.0/24")
    with pytest.raises(ResourceNotFoundError):
        ipdash_service.add_offline_scope(999, "10.0.0.0/24")


def test_offline_hosts(ipdash_service):
    profile = _offline_profile(ipdash_service)
    scope = ipdash_service.add_offline_scope(profile["id"], "10.0.0.0/29")
    host = ipdash_service.add_offline_host(
        profile["id"], scope["id"], " 10.0.0.3 ", hostname="db", mac="AA-BB-CC-DD-EE-FF"
    )
    assert host["ip"] == "10.0.0.3"
    assert host["mac"] == "aa-bb-cc-dd-ee-ff"

    with pytest.raises(ValidationError, match="belong to the selected scope"):
        ipdash_service.add_offline_host(profile["id"], scope["id"], "10.0.0.7")
    with pytest.raises(ValidationError, match="Reserved IP required"):
        ipdash_service.add_offline_host(profile["id"], scope["id"], "")
    with pytest.raises(DuplicateAddressError):
        ipdash_service.add_offline_host(profile["id"], scope["id"], "10.0.0.3")
    with pytest.raises(ValidationError, match="Profile and scope required"):
        ipdash_service.add_offline_host(profile["id"], None, "10.0.0.4")

    other = _offline_profile(ipdash_service)
    with pytest.raises(ResourceNotFoundError, match="Scope not found"):
        ipdash_service.add_offline_host(other["id"], scope["id"], "10.0.0.4")

    ipdash_service.delete_offline_host(host["id"])
    with pytest.raises(ResourceNotFoundError):
        ipdash_service.delete_offline_host(host["id"])
    ipdash_service.delete_offline_scope(scope["id"])
    with pytest.raises(ResourceNotFoundError):
        ipdash_service.delete_offline_scope(scope["id"])


def test_offline_host_ip_is_stored_canonically(ipdash_service):
    profile = _offline_profile(ipdash_service)
    scope = ipdash_service.add_offline_scope(profile["id"], "10.0.0.0/29")
    host = ipdash_service.add_offline_host(profile["id"], scope["id"], "10.0.0.05")
    assert host["ip"] == "10.0.0.5"

    with pytest.raises(DuplicateAddressError):
        ipdash_service.add_offline_host(profile["id"], scope["id"], "10.0.0.5")
    with pytest.raises(DuplicateAddressError):
        ipdash_service.add_offline_host(profile["id"], scope["id"], "010.0.0.005")

    other = ipdash_service.add_offline_host(profile["id"], scope["id"], "10.0.0.006")
    view = ipdash_service.build_view(
        profile["id"], filters=VisibilityFilters(hide_empty=True)
    )
    hosts = view["groups"][0]["hosts"]
    assert [h["ip"] for h in hosts] == ["10.0.0.5", "10.0.0.6"]
    assert [h["hostId"] for h in hosts] == [host["id"], other["id"]]


# ----------------------------------------------------------------------
# Views
# ----------------------------------------------------------------------
def test_build_view_reconciles_controller_snapshot(ipdash_service, fake_controller):
    fake_controller.snapshot = SNAPSHOT
    profile = _controller_profile(ipdash_service, site_id="s1")
    view = ipdash_service.build_view(
        profile["id"], filters=VisibilityFilters(hide_empty=True)
    )
    assert view["status"] == "active"
    assert view["networkIndex"] == 0
    assert [n["id"] for n in view["networks"]] == ["lan", "iot"]
    hosts = view["groups"][0]["hosts"]
    assert [h["ip"] for h in hosts] == [
        "192.168.1.1",
        "192.168.1.2",
        "192.168.1.3",
        "192.168.1.5",
    ]
    assert hosts[0]["device"]["name"] == "Home controller"
    assert hosts[1]["device"]["hostname"] == "nas-live"
    assert view["summary"] == {
        "reservations": 2,
        "online": 1,
        "used": 4,
        "usable": 6,
        "usagePercent": 66.7,
    }


def test_build_view_filters_and_grouping(ipdash_service, fake_controller):
    fake_controller.snapshot = SNAPSHOT
    profile = _controller_profile(ipdash_service, site_id="s1")
    online = ipdash_service.build_view(
        profile["id"],
        filters=VisibilityFilters(show_online=True, hide_empty=True),
    )
    # The controller host counts as seen now; .3 has no telemetry.
    assert [h["ip"] for h in online["groups"][0]["hosts"]] == [
        "192.168.1.1",
        "192.168.1.2",
        "192.168.1.5",
    ]

    grouped = ipdash_service.build_view(
        profile["id"], group_by="10", tags={"10:1-10": "Core"}
    )
    assert grouped["groupBy"] == "10"
    assert grouped["groups"][0]["displayLabel"] == "Core"

    other = ipdash_service.build_view(profile["id"], network_index=1)
    assert other["networkIndex"] == 1
    assert other["summary"]["usable"] == 2
    fallback = ipdash_service.build_view(profile["id"], network_index=7)
    assert fallback["networkIndex"] == 0


def test_build_view_offline_profile(ipdash_service):
    profile = _offline_profile(ipdash_service)
    scope = ipdash_service.add_offline_scope(profile["id"], "10.0.0.0/29", "Lab")
    host = ipdash_service.add_offline_host(
        profile["id"], scope["id"], "10.0.0.4", hostname="db"
    )
    view = ipdash_service.build_view(
        profile["id"],
        filters=VisibilityFilters(show_online=True, hide_empty=True),
    )
    assert view["status"] == "local-offline"
    hosts = view["groups"][0]["hosts"]
    assert [h["ip"] for h in hosts] == ["10.0.0.4"]
    assert hosts[0]["hostId"] == host["id"]
    assert view["networks"][0]["scopeId"] == scope["id"]


def test_build_view_without_networks(ipdash_service):
    view = ipdash_service.build_view()
    assert view["status"] == "missing-profile"
    assert view["groups"] == []
    assert view["summary"] is None


def _reconcile_samples() -> tuple[float, float]:
    count = REGISTRY.get_sample_value("rakit_reconcile_seconds_count") or 0.0
    total = REGISTRY.get_sample_value("rakit_reconcile_seconds_sum") or 0.0
    return count, total


def test_reconcile_timing_excludes_controller_io(ipdash_service, fake_controller):
    fake_controller.snapshot = SNAPSHOT
    profile = _controller_profile(ipdash_service, site_id="s1")
    load_snapshot = fake_controller.load_snapshot

    def slow_snapshot(site_id=None):
        time.sleep(0.3)
        return load_snapshot(site_id)

    fake_controller.load_snapshot = slow_snapshot
    count, total = _reconcile_samples()
    ipdash_service.build_view(profile["id"])
    after_count, after_total = _reconcile_samples()
    assert after_count == count + 1
    assert after_total - total < 0.3

    fake_controller.snapshot = {"users": [], "online": [], "networks": []}
    assert ipdash_service.build_view(profile["id"])["summary"] is None
    assert _reconcile_samples()[0] == after_count + 1
