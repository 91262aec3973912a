"""
Google sign-in (OpenID Connect authorization code flow with PKCE).

The FastAPI routes own state, nonce and verifier storage; this module only
knows the provider endpoints. Endpoints default to Google and can be pointed
at any compliant provider through configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import base64
import hashlib
import secrets
from urllib.parse import urlencode

import requests as http

GOOGLE_ISSUER = "https://accounts.google.com"
GOOGLE_AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_JWKS_URI = "https://www.googleapis.com/oauth2/v3/certs"

SCOPES = "openid email profile"
TOKEN_TIMEOUT_SECONDS = 5


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class OIDCConfig:
    client_id: str
    redirect_uri: str  # https://<host>/auth/callback, registered with Google
    issuer: str = GOOGLE_ISSUER
    auth_endpoint: str = GOOGLE_AUTH_ENDPOINT
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT
    jwks_uri: str = GOOGLE_JWKS_URI
    client_secret: Optional[str] = None
    # Google has no end-session endpoint; logout is then local only.
    end_session_endpoint: Optional[str] = None
    hosted_domain: Optional[str] = None  # `hd` account chooser hint


class OIDCClient:
    def __init__(self, config: OIDCConfig):
        self.cfg = config

    @staticmethod
    def generate_code_verifier() -> str:
        # 48 random bytes encode to 64 characters, inside RFC 7636's 43..128.
        return _b64url(secrets.token_bytes(48))

    @staticmethod
    def code_challenge_s256(code_verifier: str) -> str:
        return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())

    def build_authorization_url(self, *, state: str, code_challenge: str, nonce: Optional[str] = None) -> str:
        """URL of Google's account chooser for this sign-in attempt."""
        query = [
            ("response_type", "code"),
            ("client_id", self.cfg.client_id),
            ("redirect_uri", self.cfg.redirect_uri),
            ("scope", SCOPES),
            ("state", state),
            ("code_challenge", code_challenge),
            ("code_challenge_method", "S256"),
        ]
        if nonce:
            query.append(("nonce", nonce))
        if self.cfg.hosted_domain:
            query.append(("hd", self.cfg.hosted_domain))
        return f"{self.cfg.auth_endpoint}?{urlencode(query)}"

    def exchange_code_for_tokens(self, *, code: str, code_verifier: str) -> Dict[str, str]:
        """Redeem the callback `code`; raises ValueError("token_exchange_failed")."""
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
        }
        if self.cfg.client_secret:
            form["client_secret"] = self.cfg.client_secret
        resp = http.post(
            self.cfg.token_endpoint,
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=TOKEN_TIMEOUT_SECONDS,
        )
        if resp.status_code != 200:
            raise ValueError("token_exchange_failed")
        return resp.json()

    def build_logout_url(self, *, post_logout_redirect_uri: str, id_token_hint: Optional[str] = None) -> Optional[str]:
        if not self.cfg.end_session_endpoint:
            return None
        query = {"post_logout_redirect_uri": post_logout_redirect_uri}
        if id_token_hint:
            query["id_token_hint"] = id_token_hint
        else:
            query["client_id"] = self.cfg.client_id
        return f"{self.cfg.end_session_endpoint}?{urlencode(query)}"
