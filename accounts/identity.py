"""
Thin client for the external OAuth2 identity provider.

The backend never issues tokens itself: logins and refreshes are proxied to
the provider's token endpoint, bearer tokens are resolved through its
userinfo endpoint, and logouts are forwarded to its revocation endpoint.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field

import requests
from django.conf import settings


logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """Raised when the identity provider cannot produce a usable answer."""

    def __init__(self, message: str, *, status: int = 500, errors: dict | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or {}


class IdentityConfigurationError(IdentityProviderError):
    """Raised when the OAuth client credentials are not configured."""

    def __init__(self):
        super().__init__("OAuth server configuration is missing.", status=500)


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: dict) -> "TokenGrant":
        return cls(
            access_token=payload["access_token"],
            token_type=payload.get("token_type") or "Bearer",
            expires_in=payload.get("expires_in"),
            refresh_token=payload.get("refresh_token"),
            raw=payload,
        )

    def as_dict(self) -> dict:
        return {
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
        }


def _safe_json(response: requests.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def decode_jwt_claims(token: str) -> dict:
    """
    Read the claims of a JWT without verifying it. Only used to pick a
    profile to return alongside a freshly refreshed token; never for
    authorization decisions.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")))
    except (ValueError, UnicodeError):
        return {}
    return claims if isinstance(claims, dict) else {}


class IdentityProviderClient:
    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()
        self.token_endpoint = settings.OAUTH_TOKEN_ENDPOINT
        self.userinfo_endpoint = settings.OAUTH_USERINFO_ENDPOINT
        self.revoke_endpoint = settings.OAUTH_REVOKE_ENDPOINT
        self.client_id = settings.OAUTH_CLIENT_ID
        self.client_secret = settings.OAUTH_CLIENT_SECRET
        self.scope = settings.OAUTH_SCOPE
        self.verify = settings.OAUTH_VERIFY_TLS
        self.timeout = settings.OAUTH_TIMEOUT

    def _client_credentials(self) -> dict:
        if not (self.token_endpoint and self.client_id and self.client_secret):
            raise IdentityConfigurationError()
        return {"client_id": self.client_id, "client_secret": self.client_secret}

    def _request_token(self, form: dict, *, rejected_message: str) -> TokenGrant:
        data = {**form, **self._client_credentials(), "scope": self.scope}

        try:
            response = self.session.post(
                self.token_endpoint,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            logger.error("Token request (%s) to identity provider failed: %s", form.get("grant_type"), exc)
            raise IdentityProviderError("Could not reach the authentication server.", status=500) from exc

        payload = _safe_json(response)
        if not response.ok:
            status = 401 if response.status_code in (400, 401) else response.status_code
            logger.warning(
                "Identity provider rejected %s grant with status %s",
                form.get("grant_type"),
                response.status_code,
            )
            raise IdentityProviderError(
                payload.get("message") or rejected_message,
                status=status,
                errors=payload.get("errors") or {},
            )

        if not payload.get("access_token"):
            logger.error("Identity provider answered %s grant without an access token", form.get("grant_type"))
            raise IdentityProviderError("Invalid authentication response.", status=500)

        return TokenGrant.from_payload(payload)

    def password_grant(self, *, username: str, password: str) -> TokenGrant:
        return self._request_token(
            {"grant_type": "password", "username": username, "password": password},
            rejected_message="Invalid credentials.",
        )

    def refresh_grant(self, *, refresh_token: str) -> TokenGrant:
        return self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            rejected_message="Invalid or expired refresh token.",
        )

    def fetch_profile(self, access_token: str) -> dict:
        """
        Resolve an access token to the provider's user profile.
        """
        if not self.userinfo_endpoint:
            raise IdentityConfigurationError()

        try:
            response = self.session.get(
                self.userinfo_endpoint,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            logger.error("Userinfo request to identity provider failed: %s", exc)
            raise IdentityProviderError("Could not reach the authentication server.", status=500) from exc

        if response.status_code in (401, 403):
            raise IdentityProviderError("Invalid or expired access token.", status=401)
        if not response.ok:
            logger.warning("Identity provider userinfo answered %s", response.status_code)
            raise IdentityProviderError("Could not load the user profile.", status=500)

        profile = _safe_json(response)
        if not profile:
            raise IdentityProviderError("Invalid user profile response.", status=500)
        return profile

    def revoke(self, token: str, *, token_type_hint: str = "access_token") -> bool:
        """
        Best-effort RFC 7009 revocation. Returns True when the provider
        acknowledged it; failures are logged, never raised.
        """
        if not (self.revoke_endpoint and token):
            return False

        try:
            response = self.session.post(
                self.revoke_endpoint,
                data={
                    "token": token,
                    "token_type_hint": token_type_hint,
                    **self._client_credentials(),
                },
                timeout=self.timeout,
                verify=self.verify,
            )
        except (requests.RequestException, IdentityConfigurationError) as exc:
            logger.debug("Token revocation (%s) failed: %s", token_type_hint, exc)
            return False

        if not response.ok:
            logger.debug("Token revocation (%s) answered %s", token_type_hint, response.status_code)
        return response.ok
