from __future__ import annotations

from collections import deque
from typing import Any, Callable, List, Optional

import discord
import pytest
from unittest.mock import MagicMock

from queue_autoplay.config import AutoplayConfig
from queue_autoplay.models import LoadType, SearchResult, Track


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: str = "", exc: Optional[BaseException] = None):
        self.status = status
        self.payload = payload
        self.body = text
        self.exc = exc

    async def __aenter__(self) -> "FakeResponse":
        if self.exc is not None:
            raise self.exc
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False

    async def json(self) -> Any:
        if isinstance(self.payload, BaseException):
            raise self.payload
        return self.payload

    async def text(self) -> str:
        return self.body


class FakeSession:
    """Stands in for aiohttp.ClientSession, replaying queued responses per method."""

    def __init__(self):
        self.responses = {"post": deque(), "get": deque()}
        self.calls: List[tuple] = []

    def respond(self, method: str, response: FakeResponse) -> None:
        self.responses[method].append(response)

    def _request(self, method: str, url: str, kwargs: dict) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        return self.responses[method].popleft()

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._request("post", url, kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._request("get", url, kwargs)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeQueue:
    def __init__(self, current: Optional[Track] = None):
        self.current = current
        self.previous: Optional[Track] = None
        self.added: List[Track] = []

    def add(self, track: Track) -> None:
        self.added.append(track)


class FakePlayer:
    """Host player double; ``responder`` maps a search query to a SearchResult."""

    def __init__(
        self,
        guild_id: int = 1,
        current: Optional[Track] = None,
        responder: Optional[Callable[[str], SearchResult]] = None,
    ):
        self.guild_id = guild_id
        self.queue = FakeQueue(current)
        self.playing = True
        self.play_calls = 0
        self.searches: List[tuple] = []
        self.responder = responder or (lambda query: SearchResult(LoadType.EMPTY))

    async def search(self, query: str, identity: Any = None) -> SearchResult:
        self.searches.append((query, identity))
        return self.responder(query)

    async def play(self) -> None:
        self.play_calls += 1
        self.playing = True


class FakeManager:
    def __init__(self):
        self.handlers = {}
        self.emitted: List[tuple] = []

    def on(self, event: str, handler: Any) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Any) -> None:
        self.handlers.get(event, []).remove(handler)

    async def emit(self, event: str, *args: Any) -> None:
        self.emitted.append((event, args))
        for handler in list(self.handlers.get(event, [])):
            await handler(*args)


def make_track(uri: str, title: str = "Title", author: str = "Artist", **kwargs: Any) -> Track:
    return Track(uri=uri, title=title, author=author, **kwargs)


def youtube(video_id: str) -> Track:
    return make_track(f"https://www.youtube.com/watch?v={video_id}", title=video_id)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def spotify_config() -> AutoplayConfig:
    return AutoplayConfig(content_recommendation_enabled=True, client_id="id", client_secret="secret")


@pytest.fixture
def plain_config() -> AutoplayConfig:
    return AutoplayConfig()


@pytest.fixture
def identity() -> MagicMock:
    return MagicMock(spec=discord.ClientUser)


@pytest.fixture
def manager() -> FakeManager:
    return FakeManager()


def token_response(token: str = "fresh", expires_in: int = 3600) -> FakeResponse:
    return FakeResponse(payload={"access_token": token, "expires_in": expires_in, "token_type": "Bearer"})


def recommendation_payload(*uris: str) -> dict:
    return {
        "tracks": [
            {
                "id": uri.rsplit("/", 1)[-1],
                "uri": "spotify:track:" + uri.rsplit("/", 1)[-1],
                "external_urls": {"spotify": uri},
                "name": f"Song {index}",
                "artists": [{"name": "First"}, {"name": "Second"}],
            }
            for index, uri in enumerate(uris)
        ]
    }
