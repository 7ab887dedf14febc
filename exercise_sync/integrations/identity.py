"""Access tokens for calling Player, Gallery and CITE from background workers.

Workers have no user request to borrow a token from, so they authenticate
as a service account with the OAuth2 resource owner password grant against
the identity provider's discovered token endpoint.
"""

from __future__ import annotations

from urllib.parse import urlparse

import httpx
from loguru import logger
from pydantic import BaseModel

from exercise_sync.config.settings import Settings, settings

DISCOVERY_PATH = "/.well-known/openid-configuration"


class TokenError(RuntimeError):
    """Raised when the identity provider does not hand out a token."""


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


def _discover_token_endpoint(http: httpx.Client, config: Settings) -> str:
    authority = config.identity_authority.rstrip("/")
    resp = http.get(f"{authority}{DISCOVERY_PATH}")
    resp.raise_for_status()
    document = resp.json()

    token_endpoint = document.get("token_endpoint")
    if not token_endpoint:
        raise TokenError(f"Discovery document at {authority} has no token_endpoint")

    if config.identity_validate_discovery:
        issuer = (document.get("issuer") or "").rstrip("/")
        if issuer != authority:
            raise TokenError(f"Discovery issuer {issuer!r} does not match authority {authority!r}")
        if urlparse(token_endpoint).netloc != urlparse(authority).netloc:
            raise TokenError(f"Token endpoint {token_endpoint} is not hosted by {authority}")

    return token_endpoint


def request_token(config: Settings | None = None, *, http: httpx.Client | None = None) -> TokenResponse:
    """Request an access token with the resource owner password grant.

    Args:
        config: Settings to read identity options from (defaults to app settings)
        http: Optional httpx client (tests inject one with a mock transport)

    Returns:
        TokenResponse with the bearer token

    Raises:
        TokenError: If discovery fails validation or no token is returned
        httpx.HTTPError: If the identity provider is unreachable or rejects the request
    """
    config = config or settings
    owns_client = http is None
    http = http or httpx.Client(timeout=config.client_timeout_seconds)

    try:
        token_endpoint = _discover_token_endpoint(http, config)
        form = {
            "grant_type": "password",
            "client_id": config.identity_client_id,
            "username": config.identity_username,
            "password": config.identity_password,
            "scope": config.identity_scope,
        }
        if config.identity_client_secret:
            form["client_secret"] = config.identity_client_secret

        resp = http.post(token_endpoint, data=form)
        if resp.status_code >= 400:
            logger.error(f"[IDENTITY] Token request rejected: {resp.status_code} - {resp.text}")
        resp.raise_for_status()
        payload = resp.json()
        if "access_token" not in payload:
            raise TokenError(payload.get("error_description") or payload.get("error") or "No access_token in response")

        logger.debug("[IDENTITY] Access token acquired", client_id=config.identity_client_id)
        return TokenResponse(**payload)
    finally:
        if owns_client:
            http.close()
