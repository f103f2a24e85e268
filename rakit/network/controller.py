"""HTTP client for the network controller's REST APIs.

Three API families are used:

* the legacy site API (``/proxy/network/api/s/default``) for reservations,
  live stations, network configuration and adopted devices;
* the integration API (``/proxy/network/integration/v1``) for sites and
  connected clients;
* the v2 API (``/proxy/network/v2/api``) for WireGuard server peers.

Only GET requests are issued. Every transport or protocol failure surfaces as
:class:`rakit.exceptions.ControllerUnavailableError`.
"""

from __future__ import annotations

import socket
from typing import Any
from urllib.parse import urlencode

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from rakit.exceptions import ControllerUnavailableError, ValidationError
from rakit.utils.logger import get_logger
from rakit.utils.metrics import controller_requests
from rakit.utils.validation import InputValidator

from .snapshot import (
    merge_wireguard_peers,
    normalize_devices,
    normalize_integration_clients,
    wireguard_networks,
)

logger = get_logger(__name__)

LEGACY_BASE_PATH = "/proxy/network/api/s/default"
INTEGRATION_BASE_PATH = "/proxy/network/integration/v1"
V2_BASE_PATH = "/proxy/network/v2/api"

DEFAULT_TIMEOUT_MS = 15000

# Answers that mean "nothing here" rather than "controller broken".
_EMPTY_MARKERS = ("notfound", "bad_request")
_EMPTY_STATUSES = (400, 404)


def _clean_path(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


def _as_list(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return []


def _means_empty(exc: ControllerUnavailableError) -> bool:
    if exc.details.get("status") in _EMPTY_STATUSES:
        return True
    body = str(exc.details.get("body") or "").lower()
    return any(marker in body for marker in _EMPTY_MARKERS)


def resolve_host_ip(host: str | None) -> str | None:
    """IPv4 address of a controller URL's hostname, or ``None``."""
    normalized = InputValidator.normalize_host(host)
    if not normalized:
        return None
    hostname = normalized.split("://", 1)[1].rsplit(":", 1)[0].strip("[]")
    try:
        return socket.gethostbyname(hostname)
    except (OSError, UnicodeError):
        logger.debug(
            "Controller hostname did not resolve",
            event="rakit.ipdash.controller.resolve_failed",
            hostname=hostname,
        )
        return None


class ControllerClient:
    """Read-only client bound to one controller and API key."""

    def __init__(
        self,
        host: str,
        api_key: str,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        verify_tls: bool = False,
        max_retries: int = 2,
        session: requests.Session | None = None,
    ) -> None:
        self.host_root = InputValidator.normalize_host(host)
        if not self.host_root:
            raise ValidationError("Valid host required", field="host", value=host)
        self.legacy_base = f"{self.host_root}{LEGACY_BASE_PATH}"
        self.integration_base = f"{self.host_root}{INTEGRATION_BASE_PATH}"
        self.v2_base = f"{self.host_root}{V2_BASE_PATH}"
        self.site_slug = LEGACY_BASE_PATH.rsplit("/", 1)[-1]
        self._timeout = max(1.0, timeout_ms / 1000.0)
        self._verify = verify_tls

        self._session = session or requests.Session()
        self._session.headers.update(
            {"Accept": "application/json", "X-API-KEY": api_key}
        )
        if session is None:
            adapter = HTTPAdapter(
                max_retries=Retry(
                    total=max_retries,
                    connect=max_retries,
                    read=max_retries,
                    backoff_factor=0.3,
                    status_forcelist=(429, 500, 502, 503, 504),
                    allowed_methods=frozenset({"GET"}),
                    raise_on_status=False,
                )
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _get_json(self, url: str) -> Any:
        try:
            resp = self._session.get(url, timeout=self._timeout, verify=self._verify)
        except requests.RequestException as exc:
            controller_requests.labels(outcome="transport_error").inc()
            logger.warning(
                "Controller request failed",
                event="rakit.ipdash.controller.transport_error",
                url=url,
                error=str(exc),
            )
            raise ControllerUnavailableError(
                f"Controller request failed: {exc}", {"url": url}
            ) from exc

        if not 200 <= resp.status_code < 300:
            controller_requests.labels(outcome="http_error").inc()
            body = (resp.text or "")[:300]
            raise ControllerUnavailableError(
                f"HTTP {resp.status_code} {body}".strip(),
                {"url": url, "status": resp.status_code, "body": body},
            )
        controller_requests.labels(outcome="ok").inc()
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ControllerUnavailableError(
                f"Invalid JSON response from {url}", {"url": url}
            ) from exc

    def fetch(self, path: str) -> Any:
        """GET a legacy API path and unwrap its ``data`` envelope."""
        payload = self._get_json(f"{self.legacy_base}{_clean_path(path)}")
        if isinstance(payload, dict):
            rc = (payload.get("meta") or {}).get("rc")
            if rc and rc != "ok":
                raise ControllerUnavailableError(f"Controller API rc {rc}", {"rc": rc})
            if "data" in payload:
                return payload["data"]
        return payload

    def _fetch_list(self, path: str) -> list[Any]:
        """Like :meth:`fetch` for optional collections: failures yield ``[]``."""
        try:
            return _as_list(self.fetch(path))
        except ControllerUnavailableError as exc:
            logger.debug(
                "Optional controller collection unavailable",
                event="rakit.ipdash.controller.optional_failed",
                path=path,
                error=exc.message,
            )
            return []

    def _get_tolerant(self, url: str) -> list[Any]:
        try:
            return _as_list(self._get_json(url))
        except ControllerUnavailableError as exc:
            if _means_empty(exc):
                return []
            raise

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------
    def list_sites(self) -> list[Any]:
        return self._get_tolerant(f"{self.integration_base}/sites")

    def list_clients(
        self, site_id: str | None, *, limit: int = 200, offset: int = 0
    ) -> list[Any]:
        if not site_id:
            return []
        query = urlencode({"limit": limit, "offset": offset})
        return self._get_tolerant(
            f"{self.integration_base}/sites/{site_id}/clients?{query}"
        )

    def list_wireguard_users(self, site_slug: str, network_id: str) -> list[Any]:
        if not site_slug or not network_id:
            return []
        query = urlencode({"networkId": network_id})
        return self._get_tolerant(
            f"{self.v2_base}/site/{site_slug}/wireguard/{network_id}/users?{query}"
        )

    def collect_wireguard_peers(self, networks: list[Any] | None):
        """``(peer, network)`` pairs for every WireGuard server network."""
        entries = []
        for network in wireguard_networks(networks):
            try:
                users = self.list_wireguard_users(self.site_slug, network["_id"])
            except ControllerUnavailableError:
                continue
            entries.extend((peer, network) for peer in users if isinstance(peer, dict))
        return entries

    def load_snapshot(self, site_id: str | None = None) -> dict[str, Any]:
        """Gather reservations, live records and networks.

        Reservations are mandatory; every other collection degrades to an
        empty list when the controller cannot provide it.
        """
        users = _as_list(self.fetch("/rest/user"))
        online = self._fetch_list("/stat/sta")
        networks = self._fetch_list("/rest/networkconf")
        devices = self._fetch_list("/stat/device")
        integration: list[Any] = []
        if site_id:
            try:
                integration = self.list_clients(site_id)
            except ControllerUnavailableError:
                integration = []

        users = merge_wireguard_peers(users, self.collect_wireguard_peers(networks))
        online = [
            *online,
            *normalize_devices(devices),
            *normalize_integration_clients(integration),
        ]
        logger.info(
            "Controller snapshot loaded",
            event="rakit.ipdash.controller.snapshot",
            users=len(users),
            online=len(online),
            networks=len(networks),
        )
        return {
            "users": users,
            "online": online,
            "networks": networks,
            "devices": normalize_devices(devices),
        }

    def test_connection(self) -> None:
        self.fetch("/rest/user")

    def close(self) -> None:
        self._session.close()
