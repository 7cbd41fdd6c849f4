from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigurationError

TOKEN_URL = "https://accounts.spotify.com/api/token"
RECOMMENDATIONS_URL = "https://api.spotify.com/v1/recommendations"

# seconds a token must still have left before it is reused
TOKEN_EXPIRY_MARGIN = 30.0

RECOMMENDATION_HOSTS = ("spotify.com", "open.spotify.com")
RELATED_MEDIA_HOSTS = ("youtube.com", "youtu.be")
RELATED_MEDIA_URL = "https://www.youtube.com/watch?v={id}&list=RD{id}&index={index}"
RELATED_INDEX_RANGE = (2, 24)
MAX_QUERY_ATTEMPTS = 10

HTTP_TIMEOUT = 10.0


@dataclass(frozen=True)
class AutoplayConfig:
    """Autoplay options, validated once when constructed."""

    content_recommendation_enabled: bool = False
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.content_recommendation_enabled, bool):
            raise ConfigurationError("content_recommendation_enabled must be a boolean.")
        if self.content_recommendation_enabled and not (self.client_id and self.client_secret):
            raise ConfigurationError(
                "Content recommendations are enabled but client_id or client_secret is missing."
            )

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "AutoplayConfig":
        return cls(
            content_recommendation_enabled=options.get("content_recommendation_enabled", False),
            client_id=options.get("client_id") or None,
            client_secret=options.get("client_secret") or None,
        )

    @classmethod
    def from_shared_tokens(cls, enabled: Any, tokens: Mapping[str, str]) -> "AutoplayConfig":
        """Build from Red's stored switch and its ``spotify`` shared API tokens."""
        return cls(
            content_recommendation_enabled=enabled,
            client_id=tokens.get("client_id") or None,
            client_secret=tokens.get("client_secret") or None,
        )

    def redacted(self) -> Dict[str, Any]:
        return {
            "content_recommendation_enabled": self.content_recommendation_enabled,
            "client_id": self.client_id,
            "client_secret": "***" if self.client_secret else None,
        }
