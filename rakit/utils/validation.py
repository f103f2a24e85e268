"""
Input normalisation and validation helpers shared by the services.

All helpers raise :class:`rakit.exceptions.ValidationError` so the web layer
can report failures verbatim.
"""

import re
from typing import Any
from urllib.parse import urlparse

from rakit.exceptions import ValidationError


class InputValidator:
    """Centralized input validation for request payloads."""

    MAC_PATTERN = re.compile(r"^[0-9a-f]{2}([:-]?[0-9a-f]{2}){5}$")
    INT_PATTERN = re.compile(r"^[+-]?\d+$")

    @classmethod
    def clamp_text(cls, value: Any, max_len: int = 120) -> str:
        """Trim and truncate ``value``; anything that is not a string becomes ``""``."""
        if not isinstance(value, str):
            return ""
        return value.strip()[:max_len]

    @classmethod
    def optional_text(cls, value: Any, max_len: int = 120) -> str | None:
        """Like :meth:`clamp_text` but maps empty results to ``None``."""
        return cls.clamp_text(value, max_len) or None

    @classmethod
    def coerce_int(cls, value: Any, field_name: str) -> int:
        """Accept ints, integral floats, and integer strings. Booleans are rejected."""
        if isinstance(value, bool) or value is None:
            raise ValidationError(
                f"Invalid {field_name}", field=field_name, value=value
            )
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and cls.INT_PATTERN.match(value.strip()):
            return int(value.strip())
        raise ValidationError(f"Invalid {field_name}", field=field_name, value=value)

    @classmethod
    def validate_int_range(
        cls, value: Any, field_name: str, min_value: int, max_value: int
    ) -> int:
        number = cls.coerce_int(value, field_name)
        if not (min_value <= number <= max_value):
            raise ValidationError(
                f"Invalid {field_name}: must be between {min_value} and {max_value}",
                field=field_name,
                value=number,
            )
        return number

    @classmethod
    def normalize_mac(cls, value: Any) -> str | None:
        """Lower-case a MAC address; empty input yields ``None``."""
        if not isinstance(value, str) or not value.strip():
            return None
        mac = value.strip().lower()[:64]
        if not cls.MAC_PATTERN.match(mac):
            raise ValidationError("Invalid MAC address", field="mac", value=value)
        return mac

    @classmethod
    def normalize_host(cls, value: Any) -> str:
        """Reduce a controller address to ``scheme://host[:port]``.

        ``https://`` is assumed when no scheme is given. Returns ``""`` for
        empty or unparseable input.
        """
        if not isinstance(value, str) or not value.strip():
            return ""
        raw = value.strip()
        if not re.match(r"^https?://", raw, re.IGNORECASE):
            raw = f"https://{raw}"
        try:
            parsed = urlparse(raw)
            port = parsed.port
        except ValueError:
            return ""
        if not parsed.hostname:
            return ""
        host = parsed.hostname
        if ":" in host:
            host = f"[{host}]"
        netloc = f"{host}:{port}" if port else host
        return f"{parsed.scheme.lower()}://{netloc}"
