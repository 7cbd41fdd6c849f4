from __future__ import annotations

import asyncio
import base64
import logging
import time
from typing import Callable, Optional

import aiohttp

from ..config import TOKEN_EXPIRY_MARGIN, TOKEN_URL, AutoplayConfig
from ..errors import AuthError
from ..models import CachedToken

log = logging.getLogger("red.queue_autoplay.tokens")


class TokenCache:
    """Client-credentials token for the recommendation API, refreshed only when stale.

    One instance is shared by every player using the same credentials. Concurrent
    refreshes are not serialised; whichever finishes last is kept.
    """

    def __init__(
        self,
        config: AutoplayConfig,
        session: aiohttp.ClientSession,
        *,
        token_url: str = TOKEN_URL,
        clock: Callable[[], float] = time.time,
        margin: float = TOKEN_EXPIRY_MARGIN,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.session = session
        self.token_url = token_url
        self.clock = clock
        self.margin = margin
        self.log = logger or log
        self.cached = CachedToken()

    def _basic_auth(self) -> str:
        raw = f"{self.config.client_id}:{self.config.client_secret}".encode()
        return "Basic " + base64.b64encode(raw).decode()

    async def get_token(self) -> CachedToken:
        now = self.clock()
        if self.cached.is_valid(now, self.margin):
            return self.cached
        headers = {
            "Authorization": self._basic_auth(),
            "Content-Type": "application/x-www-form-urlencoded",
        }
        try:
            async with self.session.post(
                self.token_url, data={"grant_type": "client_credentials"}, headers=headers
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise AuthError(f"Token request failed: {resp.status} {text}")
                payload = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise AuthError(f"Token request failed: {exc!r}") from exc
        try:
            token = CachedToken(
                token=payload["access_token"],
                expires_at=now + float(payload["expires_in"]),
                token_type=payload.get("token_type"),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise AuthError("Token response was malformed.") from exc
        self.cached = token
        self.log.debug("Refreshed recommendation API token, valid for %ss", payload["expires_in"])
        return token
