from __future__ import annotations

import logging
from typing import Any, Optional

from ..config import RECOMMENDATION_HOSTS, AutoplayConfig
from ..models import Track, uri_on_host
from .fallback import FallbackSearchStrategy
from .recommendations import RecommendationClient, extract_seed_id

log = logging.getLogger("red.queue_autoplay.autoplay")


class ContinuationSelector:
    """Chooses the track that continues a drained queue.

    Tracks that came from the recommendation API stay on it: when it has nothing
    usable the answer is None, never a related-media search.
    """

    def __init__(
        self,
        config: AutoplayConfig,
        fallback: FallbackSearchStrategy,
        recommendations: Optional[RecommendationClient] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.fallback = fallback
        self.recommendations = recommendations
        self.log = logger or log

    def uses_recommendations(self, previous_track: Track) -> bool:
        return (
            self.config.content_recommendation_enabled
            and self.recommendations is not None
            and uri_on_host(previous_track.uri, RECOMMENDATION_HOSTS)
        )

    async def select_next(
        self,
        player: Any,
        previous_track: Optional[Track],
        just_finished: Track,
        *,
        identity: Any = None,
    ) -> Optional[Track]:
        if previous_track is None:
            return None

        if self.uses_recommendations(previous_track):
            seed = extract_seed_id(previous_track.uri)
            candidates = await self.recommendations.fetch_recommendations(seed)
            found = next((t for t in candidates if t.uri != just_finished.uri), None)
            if found is None:
                self.log.debug("No usable recommendation for seed %s", seed)
            return found

        return await self.fallback.find_next(player, previous_track, just_finished.uri, identity=identity)
