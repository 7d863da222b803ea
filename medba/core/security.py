import re
from enum import Enum, auto
from typing import Any
from urllib.parse import urlparse

from medba.config.settings import config

FORMAT_ID_PATTERN = re.compile(r"[a-zA-Z0-9+_.\-/]+")


class UrlValidationResult(Enum):
    """URL validation result without throwing exceptions"""
    OK = auto()
    BLOCKED = auto()
    INVALID = auto()


def normalize_input(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class SecurityValidator:
    """
    Validate request inputs without throwing exceptions.
    Returns plain results so handlers decide how to report them.
    """

    @staticmethod
    def validate_url(url: str) -> UrlValidationResult:
        """
        Accept only http(s) URLs on a known media host.
        A leading ``www.`` is ignored when matching the allow-list.
        """
        if not url or not isinstance(url, str) or len(url) > config.security.max_url_length:
            return UrlValidationResult.INVALID

        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            return UrlValidationResult.INVALID

        if parsed.scheme not in ("http", "https") or not hostname:
            return UrlValidationResult.INVALID

        host = hostname.lower()
        if host.startswith("www."):
            host = host[4:]

        allowed = {h.lower() for h in config.security.allowed_hosts}
        if host not in allowed:
            return UrlValidationResult.BLOCKED

        return UrlValidationResult.OK

    @staticmethod
    def is_safe_format_id(value: Any) -> bool:
        return (
            isinstance(value, str)
            and 0 < len(value) <= config.security.max_format_id_length
            and FORMAT_ID_PATTERN.fullmatch(value) is not None
        )
