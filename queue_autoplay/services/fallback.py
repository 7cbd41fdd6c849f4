from __future__ import annotations

import logging
import random
from typing import Any, List, Optional
from urllib.parse import urlsplit

from ..config import MAX_QUERY_ATTEMPTS, RELATED_INDEX_RANGE, RELATED_MEDIA_HOSTS, RELATED_MEDIA_URL
from ..models import SearchResult, Track, TrackSource, uri_on_host

log = logging.getLogger("red.queue_autoplay.fallback")


def extract_media_id(uri: str) -> Optional[str]:
    """Return whatever follows the last ``=`` of the uri's query, or None."""
    query = urlsplit(uri or "").query
    if "=" not in query:
        return None
    media_id = query.rpartition("=")[2]
    return media_id or None


class FallbackSearchStrategy:
    """Picks a related track from the media host's generated mix list."""

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        max_attempts: int = MAX_QUERY_ATTEMPTS,
        logger: Optional[logging.Logger] = None,
    ):
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self.log = logger or log

    async def find_next(
        self,
        player: Any,
        previous_track: Track,
        exclude_uri: str,
        *,
        identity: Any = None,
    ) -> Optional[Track]:
        media_id = await self._media_id(player, previous_track, identity)
        if not media_id:
            return None

        query = self.related_query(media_id, exclude_uri)
        if query is None:
            self.log.debug("Every related query for %s collided with %s", media_id, exclude_uri)
            return None

        result = await self._search(player, query, identity)
        if result is None or result.failed:
            return None
        return self.pick(result.candidates(), exclude_uri)

    def related_query(self, media_id: str, exclude_uri: str) -> Optional[str]:
        low, high = RELATED_INDEX_RANGE
        for _ in range(self.max_attempts):
            query = RELATED_MEDIA_URL.format(id=media_id, index=self.rng.randint(low, high))
            if query != exclude_uri:
                return query
        return None

    def pick(self, candidates: List[Track], exclude_uri: str) -> Optional[Track]:
        shuffled = list(candidates)
        self.rng.shuffle(shuffled)
        for track in shuffled:
            if track.uri != exclude_uri:
                return track.with_source(TrackSource.RELATED)
        return None

    async def _media_id(self, player: Any, previous_track: Track, identity: Any) -> Optional[str]:
        if uri_on_host(previous_track.uri, RELATED_MEDIA_HOSTS):
            return extract_media_id(previous_track.uri)

        result = await self._search(player, f"{previous_track.author} - {previous_track.title}", identity)
        if result is None or result.failed:
            return None
        candidates = result.candidates()
        if not candidates:
            return None
        first = candidates[0]
        return first.identifier or extract_media_id(first.uri)

    async def _search(self, player: Any, query: str, identity: Any) -> Optional[SearchResult]:
        try:
            return await player.search(query, identity)
        except Exception:
            self.log.debug("Related media search failed for %r", query, exc_info=True)
            return None
