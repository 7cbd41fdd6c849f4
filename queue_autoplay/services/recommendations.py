from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional

import aiohttp

from ..config import RECOMMENDATIONS_URL
from ..errors import AuthError, SourceUnavailable
from ..models import Track
from .tokens import TokenCache

log = logging.getLogger("red.queue_autoplay.recommendations")

SPOTIFY_TRACK_RE = re.compile(r"https://open\.spotify\.com/(?:intl-[a-z-]+/)?track/([a-zA-Z0-9]+)")


def extract_seed_id(uri: str) -> Optional[str]:
    match = SPOTIFY_TRACK_RE.match(uri or "")
    return match.group(1) if match else None


class RecommendationClient:
    """Fetches content-based recommendations for a seed track.

    Every failure is reported as an empty list so the queue-end path never sees it.
    """

    def __init__(
        self,
        tokens: TokenCache,
        session: aiohttp.ClientSession,
        *,
        url: str = RECOMMENDATIONS_URL,
        logger: Optional[logging.Logger] = None,
    ):
        self.tokens = tokens
        self.session = session
        self.url = url
        self.log = logger or log

    async def fetch_recommendations(self, seed_track_id: Optional[str]) -> List[Track]:
        if not seed_track_id:
            return []
        try:
            token = await self.tokens.get_token()
            payload = await self._request(seed_track_id, token.authorization)
            return [Track.from_recommendation(item) for item in payload["tracks"]]
        except AuthError:
            self.log.warning("Could not authenticate with the recommendation API", exc_info=True)
        except SourceUnavailable:
            self.log.warning("Recommendation request for %s failed", seed_track_id, exc_info=True)
        except (KeyError, TypeError, ValueError, AttributeError):
            self.log.warning("Malformed recommendations for %s", seed_track_id, exc_info=True)
        return []

    async def _request(self, seed_track_id: str, authorization: str) -> dict:
        try:
            async with self.session.get(
                self.url,
                params={"seed_tracks": seed_track_id},
                headers={"Authorization": authorization},
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise SourceUnavailable(f"Recommendations request failed: {resp.status} {text}")
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise SourceUnavailable(f"Recommendations request failed: {exc!r}") from exc
