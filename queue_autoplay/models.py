from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlsplit


class TrackSource(str, Enum):
    RECOMMENDATION = "recommendation"
    RELATED = "related"
    REQUESTED = "requested"


class LoadType(str, Enum):
    TRACK = "track"
    PLAYLIST = "playlist"
    SEARCH = "search"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class Track:
    """Immutable reference to a playable item; two tracks are equal when their uris are."""

    uri: str
    title: str = field(default="Unknown Track", compare=False)
    author: str = field(default="", compare=False)
    source: TrackSource = field(default=TrackSource.REQUESTED, compare=False)
    identifier: Optional[str] = field(default=None, compare=False)
    lavalink_track: Optional[Any] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_lavalink(cls, audio_track: Any, source: TrackSource = TrackSource.REQUESTED) -> "Track":
        identifier = getattr(audio_track, "identifier", None)
        return cls(
            uri=getattr(audio_track, "uri", None) or identifier or "",
            title=getattr(audio_track, "title", None) or "Unknown Track",
            author=getattr(audio_track, "author", None) or "",
            source=source,
            identifier=identifier,
            lavalink_track=audio_track,
        )

    @classmethod
    def from_recommendation(cls, payload: Dict[str, Any]) -> "Track":
        artists = payload.get("artists") or []
        return cls(
            uri=payload["external_urls"]["spotify"],
            title=payload.get("name") or "Unknown Track",
            author=", ".join(artist["name"] for artist in artists),
            source=TrackSource.RECOMMENDATION,
            identifier=payload.get("id"),
        )

    def with_source(self, source: TrackSource) -> "Track":
        return Track(
            uri=self.uri,
            title=self.title,
            author=self.author,
            source=source,
            identifier=self.identifier,
            lavalink_track=self.lavalink_track,
        )


@dataclass
class SearchResult:
    """Outcome of a host search, shaped like a Lavalink load result."""

    load_type: LoadType
    tracks: List[Track] = field(default_factory=list)
    playlist_tracks: Optional[List[Track]] = None

    @property
    def failed(self) -> bool:
        return self.load_type in (LoadType.EMPTY, LoadType.ERROR)

    def candidates(self) -> List[Track]:
        if self.load_type == LoadType.PLAYLIST and self.playlist_tracks is not None:
            return list(self.playlist_tracks)
        return list(self.tracks)


@dataclass
class CachedToken:
    token: Optional[str] = None
    expires_at: float = 0.0
    token_type: Optional[str] = None

    def is_valid(self, now: float, margin: float) -> bool:
        return bool(self.token) and self.expires_at - now > margin

    @property
    def authorization(self) -> str:
        return f"{self.token_type or 'Bearer'} {self.token}"


@dataclass
class AutoplaySessionState:
    """Autoplay flag of a single player, discarded with the player."""

    enabled: bool = False
    identity: Optional[Any] = None


def uri_on_host(uri: str, hosts: Iterable[str]) -> bool:
    """True when the uri's hostname is one of ``hosts`` or a subdomain of one."""
    hostname = (urlsplit(uri or "").hostname or "").lower()
    return any(hostname == host or hostname.endswith("." + host) for host in hosts)
