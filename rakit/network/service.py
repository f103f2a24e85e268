"""IP Dash service layer.

Wraps :class:`~rakit.network.store.IpDashStore` with input validation, API key
sealing and controller access, and assembles the reconciled network view.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from rakit.exceptions import (
    ConfigError,
    RakitError,
    ResourceNotFoundError,
    ValidationError,
)
from rakit.utils.crypto import SecretBox
from rakit.utils.logger import get_logger
from rakit.utils.metrics import reconcile_seconds
from rakit.utils.validation import InputValidator

from .cidr import (
    MAX_HOSTS,
    SCOPE_PREFIX_BOUNDS,
    contains,
    describe_network,
    format_address,
    parse_address,
)
from .controller import ControllerClient, resolve_host_ip
from .grouping import group_hosts, parse_group_size
from .reconcile import ONLINE_WINDOW_SECONDS, AddressReconciler, VisibilityFilters
from .snapshot import (
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    STATUS_LOCAL_OFFLINE,
    STATUS_MISSING_PROFILE,
    build_offline_snapshot,
    empty_snapshot,
    parse_networks,
)
from .store import (
    MODE_DIRECT,
    MODE_LOCAL_OFFLINE,
    MODE_PROXY,
    IpDashStore,
    ProfileRecord,
)

logger = get_logger(__name__)

ClientFactory = Callable[..., Any]

CIDR_HINT = "CIDR required (example 192.168.68.0/24, max 4096 hosts)"


def normalize_mode(value: Any) -> str:
    if value == MODE_DIRECT:
        return MODE_DIRECT
    if value == MODE_LOCAL_OFFLINE:
        return MODE_LOCAL_OFFLINE
    return MODE_PROXY


def normalize_site(site: Any) -> dict[str, str] | None:
    if not isinstance(site, Mapping):
        return None
    site_id = site.get("id") or site.get("_id")
    if not site_id:
        return None
    name = site.get("name") or site.get("displayName") or site.get("desc") or site_id
    return {"id": str(site_id), "name": str(name)}


class IpDashService:
    """Profiles, offline address books and reconciled views."""

    def __init__(
        self,
        store: IpDashStore,
        secret_box: SecretBox,
        *,
        client_factory: ClientFactory = ControllerClient,
        ipdash_config: Mapping[str, Any] | None = None,
        resolver: Callable[[str | None], str | None] = resolve_host_ip,
        clock: Callable[[], float] = time.time,
    ) -> None:
        cfg = dict(ipdash_config or {})
        self.store = store
        self._secret_box = secret_box
        self._client_factory = client_factory
        self._resolver = resolver
        self._timeout_ms = int(cfg.get("timeout_ms", 15000))
        self._verify_tls = bool(cfg.get("verify_tls", False))
        self._max_retries = int(cfg.get("max_retries", 2))
        self.max_hosts = int(cfg.get("max_hosts", MAX_HOSTS))
        self.reconciler = AddressReconciler(
            online_window_seconds=int(
                cfg.get("online_window_seconds", ONLINE_WINDOW_SECONDS)
            ),
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_profile(self, profile_id: Any) -> ProfileRecord:
        if not profile_id:
            raise ValidationError("Profile required", field="profileId")
        profile = self.store.get_profile(int(profile_id))
        if profile is None:
            raise ResourceNotFoundError("Profile not found", {"profile_id": profile_id})
        return profile

    def _require_offline_profile(self, profile_id: Any) -> ProfileRecord:
        profile = self._require_profile(profile_id)
        if not profile.is_offline:
            raise ValidationError("Profile is not Local Offline", field="profileId")
        return profile

    @staticmethod
    def _require_credentials(host: Any, api_key: Any) -> tuple[str, str]:
        sanitized = InputValidator.normalize_host(host)
        if not sanitized:
            raise ValidationError("Valid host required", field="host")
        if not isinstance(api_key, str) or not api_key.strip():
            raise ValidationError("API key required", field="apiKey")
        return sanitized, api_key.strip()

    def _client(self, host: str, api_key: str):
        return self._client_factory(
            host,
            api_key,
            timeout_ms=self._timeout_ms,
            verify_tls=self._verify_tls,
            max_retries=self._max_retries,
        )

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def list_profiles(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self.store.list_profiles()]

    def get_profile(self, profile_id: int) -> dict[str, Any]:
        return self._require_profile(profile_id).to_dict()

    def create_profile(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Create a profile from ``name``, ``location``, ``host``, ``mode``,
        ``api_key`` and ``site_id``.

        Offline profiles never talk to a controller, so they store neither a
        host nor a key.
        """
        name = InputValidator.clamp_text(payload.get("name"), 120)
        if not name:
            raise ValidationError("Profile name required", field="name")
        mode = normalize_mode(payload.get("mode"))
        host = ""
        encrypted = None
        site_id = None
        if mode != MODE_LOCAL_OFFLINE:
            host, api_key = self._require_credentials(
                payload.get("host"), payload.get("api_key")
            )
            encrypted = self._secret_box.encrypt(api_key)
            site_id = InputValidator.optional_text(payload.get("site_id"), 120)
        profile = self.store.create_profile(
            name=name,
            location=InputValidator.optional_text(payload.get("location"), 120),
            host=host,
            mode=mode,
            site_id=site_id,
            api_key_encrypted=encrypted,
        )
        logger.info(
            "IP Dash profile created",
            event="rakit.ipdash.profile.created",
            profile_id=profile.id,
            mode=mode,
        )
        return profile.to_dict()

    def update_profile(
        self, profile_id: int, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Apply the keys present in ``payload``. Switching to offline mode
        clears the host and site."""
        self._require_profile(profile_id)
        changes: dict[str, Any] = {}
        clear_site = False
        if "name" in payload:
            name = InputValidator.clamp_text(payload["name"], 120)
            if not name:
                raise ValidationError("Profile name required", field="name")
            changes["name"] = name
        if "location" in payload:
            changes["location"] = InputValidator.optional_text(payload["location"], 120)
        if "host" in payload:
            host = InputValidator.normalize_host(payload["host"])
            if not host:
                raise ValidationError("Valid host required", field="host")
            changes["host"] = host
        if "mode" in payload:
            mode = normalize_mode(payload["mode"])
            changes["mode"] = mode
            if mode == MODE_LOCAL_OFFLINE:
                changes["host"] = ""
                clear_site = True
        if "api_key" in payload:
            api_key = payload["api_key"]
            if isinstance(api_key, str) and api_key.strip():
                changes["api_key_encrypted"] = self._secret_box.encrypt(api_key.strip())
            elif isinstance(api_key, str):
                raise ValidationError("API key cannot be empty", field="apiKey")
        if clear_site:
            changes["site_id"] = None
        elif "site_id" in payload:
            changes["site_id"] = InputValidator.optional_text(payload["site_id"], 120)
        if not changes:
            raise ValidationError("Nothing to update")

        updated = self.store.update_profile(profile_id, changes)
        if updated is None:
            raise ResourceNotFoundError("Profile not found", {"profile_id": profile_id})
        logger.info(
            "IP Dash profile updated",
            event="rakit.ipdash.profile.updated",
            profile_id=profile_id,
            fields=sorted(changes),
        )
        return updated.to_dict()

    def delete_profile(self, profile_id: int) -> None:
        if not self.store.delete_profile(profile_id):
            raise ResourceNotFoundError("Profile not found", {"profile_id": profile_id})
        logger.info(
            "IP Dash profile deleted",
            event="rakit.ipdash.profile.deleted",
            profile_id=profile_id,
        )

    # ------------------------------------------------------------------
    # Controller probes
    # ------------------------------------------------------------------
    def test_profile(self, host: Any, api_key: Any) -> None:
        sanitized, key = self._require_credentials(host, api_key)
        client = self._client(sanitized, key)
        try:
            client.test_connection()
        finally:
            client.close()

    def preview_sites(self, host: Any, api_key: Any) -> list[dict[str, str]]:
        sanitized, key = self._require_credentials(host, api_key)
        client = self._client(sanitized, key)
        try:
            sites = client.list_sites()
        finally:
            client.close()
        return [s for s in (normalize_site(site) for site in sites) if s]

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def _fetch_profile_data(self, profile: ProfileRecord) -> dict[str, Any]:
        api_key = self._secret_box.decrypt(profile.api_key_encrypted)
        if not api_key:
            raise ConfigError("Profile API key missing")
        if not profile.host:
            raise ValidationError("Controller host missing", field="host")
        client = self._client(profile.host, api_key)
        try:
            site_id = profile.site_id
            if not site_id:
                # A lone site is unambiguous; otherwise integration clients are skipped.
                try:
                    sites = client.list_sites()
                except RakitError:
                    sites = []
                if len(sites) == 1 and normalize_site(sites[0]):
                    site_id = normalize_site(sites[0])["id"]
            data = client.load_snapshot(site_id)
        finally:
            client.close()
        data["controllerIp"] = self._resolver(profile.host)
        return data

    def get_data(self, profile_id: int | None = None) -> dict[str, Any]:
        """Raw snapshot for ``profile_id``, falling back to the newest profile."""
        profile = self.store.get_profile(profile_id) if profile_id else None
        if profile is None:
            profile = self.store.get_latest_profile()
        if profile is None:
            return empty_snapshot(STATUS_MISSING_PROFILE)
        if profile.is_offline:
            return build_offline_snapshot(
                profile,
                self.store.list_scopes(profile.id),
                self.store.list_hosts(profile.id),
            )
        try:
            data = self._fetch_profile_data(profile)
        except RakitError as exc:
            logger.warning(
                "Controller snapshot unavailable",
                event="rakit.ipdash.data.inactive",
                profile_id=profile.id,
                error=exc.message,
            )
            return empty_snapshot(STATUS_INACTIVE, profile, error=exc.message)
        snapshot = empty_snapshot(STATUS_ACTIVE, profile)
        snapshot.update(data)
        return snapshot

    # ------------------------------------------------------------------
    # Offline scopes and hosts
    # ------------------------------------------------------------------
    def add_offline_scope(
        self, profile_id: Any, cidr: Any, label: Any = None
    ) -> dict[str, Any]:
        profile = self._require_offline_profile(profile_id)
        descriptor = describe_network(
            cidr, max_hosts=self.max_hosts, prefix_bounds=SCOPE_PREFIX_BOUNDS
        )
        if descriptor is None:
            raise ValidationError(CIDR_HINT, field="cidr", value=cidr)
        scope = self.store.create_scope(
            profile.id, descriptor.cidr, InputValidator.optional_text(label, 80)
        )
        logger.info(
            "Offline scope added",
            event="rakit.ipdash.scope.created",
            profile_id=profile.id,
            scope_id=scope.id,
            cidr=scope.cidr,
        )
        return scope.to_dict()

    def delete_offline_scope(self, scope_id: int) -> None:
        scope = self.store.get_scope(scope_id)
        if scope is None:
            raise ResourceNotFoundError("Scope not found", {"scope_id": scope_id})
        profile = self.store.get_profile(scope.profile_id)
        if profile is None or not profile.is_offline:
            raise ValidationError("Scope is not part of a Local Offline profile")
        self.store.delete_scope(scope_id)
        logger.info(
            "Offline scope deleted",
            event="rakit.ipdash.scope.deleted",
            scope_id=scope_id,
        )

    def add_offline_host(
        self,
        profile_id: Any,
        scope_id: Any,
        ip: Any,
        hostname: Any = None,
        mac: Any = None,
    ) -> dict[str, Any]:
        if not profile_id or not scope_id:
            raise ValidationError("Profile and scope required")
        profile = self._require_offline_profile(profile_id)
        scope = self.store.get_scope(int(scope_id))
        if scope is None or scope.profile_id != profile.id:
            raise ResourceNotFoundError(
                "Scope not found for this profile", {"scope_id": scope_id}
            )
        descriptor = describe_network(scope.cidr, prefix_bounds=SCOPE_PREFIX_BOUNDS)
        if descriptor is None:
            raise ValidationError(
                "Scope format invalid", field="cidr", value=scope.cidr
            )
        reserved = ip.strip() if isinstance(ip, str) else ""
        if not reserved:
            raise ValidationError("Reserved IP required", field="ip")
        if not contains(reserved, descriptor):
            raise ValidationError(
                "IP must belong to the selected scope", field="ip", value=reserved
            )
        reserved = format_address(parse_address(reserved))
        label = InputValidator.optional_text(hostname, 120)
        host = self.store.create_host(
            profile_id=profile.id,
            scope_id=scope.id,
            ip=reserved,
            name=label,
            hostname=label,
            mac=InputValidator.normalize_mac(mac),
        )
        logger.info(
            "Offline host reserved",
            event="rakit.ipdash.host.created",
            profile_id=profile.id,
            scope_id=scope.id,
            ip=reserved,
        )
        return host.to_dict()

    def delete_offline_host(self, host_id: int) -> None:
        if host_id <= 0:
            raise ValidationError("Invalid host id", field="hostId", value=host_id)
        host = self.store.get_host(host_id)
        if host is None:
            raise ResourceNotFoundError("Host not found", {"host_id": host_id})
        profile = self.store.get_profile(host.profile_id)
        if profile is None or not profile.is_offline:
            raise ValidationError("Host is not part of a Local Offline profile")
        self.store.delete_host(host_id)
        logger.info(
            "Offline host deleted",
            event="rakit.ipdash.host.deleted",
            host_id=host_id,
        )

    # ------------------------------------------------------------------
    # Reconciled view
    # ------------------------------------------------------------------
    def build_view(
        self,
        profile_id: int | None = None,
        *,
        network_index: int = 0,
        group_by: Any = None,
        filters: VisibilityFilters | None = None,
        tags: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Reconcile the selected network of a profile into grouped host rows.

        An out-of-range ``network_index`` selects the first network.
        """
        size = parse_group_size(group_by)
        filters = filters or VisibilityFilters()
        snapshot = self.get_data(profile_id)
        with reconcile_seconds.time():
            return self._reconcile(snapshot, network_index, size, filters, tags)

    def _reconcile(
        self,
        snapshot: dict[str, Any],
        network_index: int,
        size: int | None,
        filters: VisibilityFilters,
        tags: Mapping[str, str] | None,
    ) -> dict[str, Any]:
        networks = parse_networks(snapshot.get("networks"), max_hosts=self.max_hosts)
        view: dict[str, Any] = {
            "status": snapshot["status"],
            "profile": snapshot.get("profile"),
            "error": snapshot.get("error"),
            "networks": [n.to_dict() for n in networks],
            "networkIndex": None,
            "groupBy": str(size) if size else "none",
            "groups": [],
            "summary": None,
        }
        if not networks:
            return view
        if not 0 <= network_index < len(networks):
            network_index = 0
        network = networks[network_index].descriptor
        reservations = snapshot.get("users") or []
        live = snapshot.get("online") or []
        offline = snapshot["status"] == STATUS_LOCAL_OFFLINE

        index = self.reconciler.index_by_address(reservations)
        self.reconciler.merge_live(index, live)
        if not offline:
            profile = snapshot.get("profile") or {}
            self.reconciler.add_controller_host(
                index,
                snapshot.get("controllerIp"),
                name=profile.get("name"),
                host=profile.get("host"),
            )
        online_macs = self.reconciler.build_online_mac_set(live)
        hosts = self.reconciler.get_visible_hosts(
            network, index, filters, online_macs, offline_mode=offline
        )
        summary = self.reconciler.summarize(network, index, reservations, online_macs)
        view.update(
            networkIndex=network_index,
            groups=[g.to_dict() for g in group_hosts(hosts, size, tags)],
            summary=summary.to_dict(),
        )
        return view
