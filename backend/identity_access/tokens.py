"""
ID token verification for sign-in.

Why: The callback must trust the email in the ID token, because roles are
derived from it. Verification is kept out of the web adapter so it can be
tested with stubbed keys and clocks.

Security:
- The signature is checked against the provider JWKS with RS256 only; the
  `alg` advertised by a key is ignored.
- Audience must be our client id; the issuer must be the configured one
  (Google uses two spellings of its issuer).
- exp/iat/nbf are checked here with a small clock skew.
- Google rotates its signing keys; an unknown `kid` triggers one forced JWKS
  refetch before the token is rejected.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import re
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import GOOGLE_ISSUER, OIDCConfig

logger = logging.getLogger("smartpass.identity_access")

ALLOWED_ALGORITHMS = ("RS256",)
MAX_CLOCK_SKEW_SECONDS = 5
JWKS_TIMEOUT_SECONDS = 5
_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


class IDTokenVerificationError(Exception):
    """Raised when the ID token fails verification; `code` is safe to log."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass
class _CacheEntry:
    jwks: Dict[str, object]
    expires_at: float


class JWKSCache:
    """In-process JWKS cache keyed by JWKS URI.

    Entries live for `ttl_seconds`, or for the response's `Cache-Control:
    max-age` when the provider sends one (Google does).
    """

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, _CacheEntry] = {}

    def get(self, cfg: OIDCConfig, *, force: bool = False) -> Dict[str, object]:
        entry = self._entries.get(cfg.jwks_uri)
        now = time.time()
        if entry and entry.expires_at > now and not force:
            return entry.jwks
        jwks, ttl = self._fetch(cfg.jwks_uri)
        self._entries[cfg.jwks_uri] = _CacheEntry(jwks=jwks, expires_at=now + ttl)
        return jwks

    def clear(self) -> None:
        self._entries.clear()

    def _ttl_from(self, resp) -> int:
        headers = getattr(resp, "headers", None) or {}
        match = _MAX_AGE_RE.search(str(headers.get("Cache-Control") or headers.get("cache-control") or ""))
        return int(match.group(1)) if match else self.ttl_seconds

    def _fetch(self, url: str) -> tuple[Dict[str, object], int]:
        try:
            resp = requests.get(url, timeout=JWKS_TIMEOUT_SECONDS)
        except requests.RequestException as exc:
            logger.warning("JWKS fetch failed: %s", exc.__class__.__name__)
            raise IDTokenVerificationError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            logger.warning("JWKS fetch failed: status=%s", resp.status_code)
            raise IDTokenVerificationError("jwks_fetch_failed")
        try:
            jwks = resp.json()
        except ValueError as exc:
            raise IDTokenVerificationError("jwks_invalid") from exc
        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise IDTokenVerificationError("jwks_invalid")
        return jwks, self._ttl_from(resp)


JWKS_CACHE = JWKSCache()


def accepted_issuers(cfg: OIDCConfig) -> frozenset[str]:
    issuer = cfg.issuer.rstrip("/")
    if issuer == GOOGLE_ISSUER:
        return frozenset({issuer, "accounts.google.com"})
    return frozenset({issuer})


def _key_for(jwks: Dict[str, object], kid: str) -> Optional[Dict[str, object]]:
    for key in jwks.get("keys") or []:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def _signing_key(id_token: str, cfg: OIDCConfig, cache: JWKSCache) -> Dict[str, object]:
    try:
        kid = jwt.get_unverified_header(id_token).get("kid")
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    if not kid:
        raise IDTokenVerificationError("missing_kid")
    key = _key_for(cache.get(cfg), kid)
    if key is None:
        # The provider may have rotated keys since the cache was filled.
        key = _key_for(cache.get(cfg, force=True), kid)
    if key is None:
        raise IDTokenVerificationError("unknown_kid")
    return key


def _check_times(claims: Dict[str, object], now: float) -> None:
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise IDTokenVerificationError("invalid_id_token")
    for name in ("iat", "nbf"):
        value = claims.get(name)
        if isinstance(value, (int, float)) and value - MAX_CLOCK_SKEW_SECONDS > now:
            raise IDTokenVerificationError("invalid_id_token")


def verify_id_token(*, id_token: str, cfg: OIDCConfig, cache: JWKSCache | None = None) -> Dict[str, object]:
    """Return the verified claims of `id_token`.

    Raises IDTokenVerificationError with one of: invalid_id_token,
    missing_kid, unknown_kid, invalid_issuer, jwks_fetch_failed, jwks_invalid.
    """
    key = _signing_key(id_token, cfg, cache or JWKS_CACHE)
    try:
        claims = jwt.decode(
            id_token,
            key,
            algorithms=list(ALLOWED_ALGORITHMS),
            audience=cfg.client_id,
            # Issuer and time claims are checked below with our own rules.
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_iss": False,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_at_hash": False,
            },
        )
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    if str(claims.get("iss") or "").rstrip("/") not in accepted_issuers(cfg):
        raise IDTokenVerificationError("invalid_issuer")
    _check_times(claims, time.time())
    return claims
