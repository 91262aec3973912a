"""
Same-origin (CSRF) guard for state-changing SmartPass requests.

The kiosk form, the board buttons and the JSON API all call
`is_csrf_violation`, so the rule is identical on every write path.
"""
from __future__ import annotations

from typing import Optional, Tuple
from urllib.parse import urlparse

from fastapi import Request

from web import config as _cfg

Origin = Tuple[str, str, int]


def _first(value: Optional[str]) -> str:
    # Proxies may append: "a, b" -> "a".
    return (value or "").split(",")[0].strip()


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> Origin:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.hostname:
        raise ValueError("invalid_origin")
    scheme = parsed.scheme.lower()
    return scheme, parsed.hostname.lower(), parsed.port or _default_port(scheme)


def _forwarded_origin(request: Request) -> Origin:
    scheme = (_first(request.headers.get("x-forwarded-proto")) or request.url.scheme or "http").lower()
    authority = _first(request.headers.get("x-forwarded-host") or request.headers.get("host"))
    host, sep, port_str = authority.rpartition(":") if ":" in authority else (authority, "", "")
    if not host:
        host = request.url.hostname or ""
        port = request.url.port or _default_port(scheme)
    else:
        port = int(port_str) if sep and port_str.isdigit() else _default_port(scheme)
    xf_port = _first(request.headers.get("x-forwarded-port"))
    if xf_port:
        port = int(xf_port) if xf_port.isdigit() else _default_port(scheme)
    return scheme, host.lower(), int(port)


def server_origin(request: Request) -> Origin:
    """(scheme, host, port) of SmartPass as the browser addressed it.

    X-Forwarded-* headers count only with SMARTPASS_TRUST_PROXY=true.
    """
    if _cfg.env_flag("SMARTPASS_TRUST_PROXY"):
        return _forwarded_origin(request)
    scheme = (request.url.scheme or "http").lower()
    return scheme, (request.url.hostname or "").lower(), int(request.url.port or _default_port(scheme))


def is_csrf_violation(request: Request) -> bool:
    """True when a browser write must be rejected with 403.

    Origin wins over Referer; either must match `server_origin` exactly. With
    neither header the request passes (curl, the admin CLI), except in
    production/staging where one of them is required.
    """
    claimed = request.headers.get("origin") or request.headers.get("referer")
    if not claimed:
        return _cfg.is_prod_like(_cfg.current_environment())
    try:
        return _parse_origin(claimed) != server_origin(request)
    except ValueError:
        return True
