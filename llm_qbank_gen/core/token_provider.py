from __future__ import annotations

import logging
import uuid
from typing import Union

import httpx

from .errors import TokenError
from .types import AccessToken

logger = logging.getLogger(__name__)

GIGACHAT_OAUTH_URL = "https://ngw.devices.sberbank.ru:9443/api/v2/oauth"
GIGACHAT_SCOPE = "GIGACHAT_API_PERS"


def make_request_id() -> str:
    """Random RFC 4122 version 4 UUID used as the RqUID correlation header."""
    return str(uuid.uuid4())


class TokenProvider:
    """Exchanges the long-lived authorization key for a short-lived bearer token.

    Tokens are never cached: every provider operation asks for a fresh one.
    """

    def __init__(
        self,
        secret: str,
        client: httpx.Client,
        *,
        oauth_url: str = GIGACHAT_OAUTH_URL,
        scope: str = GIGACHAT_SCOPE,
        timeout: float = 30,
    ) -> None:
        self.secret = secret
        self.client = client
        self.oauth_url = oauth_url
        self.scope = scope
        self.timeout = timeout

    def fetch(self) -> AccessToken:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            "RqUID": make_request_id(),
            "Authorization": f"Basic {self.secret}",
        }
        try:
            resp = self.client.post(
                self.oauth_url,
                content=f"scope={self.scope}",
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("OAuth request failed: %s", e)
            raise TokenError(status=None) from e
        if resp.status_code != 200:
            raise TokenError(status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise TokenError(no_token=True) from e
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise TokenError(no_token=True)
        expires_at: Union[float, None] = None
        if isinstance(data.get("expires_at"), (int, float)):
            # GigaChat reports expiry in epoch milliseconds
            expires_at = data["expires_at"] / 1000
        return AccessToken(token=token, expires_at=expires_at)

    def get_token(self) -> str:
        return self.fetch().token
