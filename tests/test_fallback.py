import random

import pytest

from conftest import FakePlayer, make_track, youtube
from queue_autoplay.models import LoadType, SearchResult, TrackSource
from queue_autoplay.services.fallback import FallbackSearchStrategy, extract_media_id


class ScriptedRandom(random.Random):
    """Returns scripted indexes from randint, repeating the last one."""

    def __init__(self, *indexes):
        super().__init__(0)
        self.indexes = list(indexes)

    def randint(self, a, b):
        if len(self.indexes) > 1:
            return self.indexes.pop(0)
        return self.indexes[0]


def related(*ids, load_type=LoadType.SEARCH):
    return SearchResult(load_type, [youtube(i) for i in ids])


@pytest.mark.parametrize(
    "uri, expected",
    [
        ("https://www.youtube.com/watch?v=XYZ", "XYZ"),
        ("https://www.youtube.com/watch?v=XYZ&list=RDXYZ&index=4", "4"),
        ("https://youtu.be/XYZ", None),
        ("https://www.youtube.com/watch?v=", None),
        ("", None),
    ],
)
def test_extract_media_id(uri, expected):
    assert extract_media_id(uri) == expected


def test_related_query_shape():
    strategy = FallbackSearchStrategy(rng=random.Random(3))
    for _ in range(50):
        query = strategy.related_query("XYZ", "https://www.youtube.com/watch?v=XYZ")
        prefix = "https://www.youtube.com/watch?v=XYZ&list=RDXYZ&index="
        assert query.startswith(prefix)
        assert 2 <= int(query[len(prefix):]) <= 24


def test_related_query_redraws_on_collision():
    strategy = FallbackSearchStrategy(rng=ScriptedRandom(5, 7))
    exclude = "https://www.youtube.com/watch?v=XYZ&list=RDXYZ&index=5"

    assert strategy.related_query("XYZ", exclude).endswith("&index=7")


async def test_persistent_collision_gives_up():
    exclude = "https://www.youtube.com/watch?v=XYZ&list=RDXYZ&index=5"
    player = FakePlayer(responder=lambda q: related("A"))
    strategy = FallbackSearchStrategy(rng=ScriptedRandom(5), max_attempts=10)
    previous = make_track("https://www.youtube.com/watch?v=XYZ")

    assert await strategy.find_next(player, previous, exclude) is None
    assert player.searches == []


async def test_youtube_track_uses_its_own_id(identity):
    player = FakePlayer(responder=lambda q: related("A", "B"))
    strategy = FallbackSearchStrategy(rng=random.Random(1))
    previous = youtube("XYZ")

    found = await strategy.find_next(player, previous, previous.uri, identity=identity)

    assert found is not None
    assert found.source is TrackSource.RELATED
    query, passed_identity = player.searches[0]
    assert query.startswith("https://www.youtube.com/watch?v=XYZ&list=RDXYZ&index=")
    assert passed_identity is identity
    assert len(player.searches) == 1


@pytest.mark.parametrize("seed", range(25))
async def test_excluded_uri_is_never_returned(seed):
    finished = youtube("DONE")
    player = FakePlayer(responder=lambda q: related("DONE", "A", "DONE", "B"))
    strategy = FallbackSearchStrategy(rng=random.Random(seed))

    found = await strategy.find_next(player, youtube("XYZ"), finished.uri)

    assert found is not None
    assert found.uri != finished.uri


async def test_only_excluded_candidates_gives_none():
    finished = youtube("DONE")
    player = FakePlayer(responder=lambda q: related("DONE", "DONE"))

    assert await FallbackSearchStrategy().find_next(player, youtube("XYZ"), finished.uri) is None


@pytest.mark.parametrize("load_type", [LoadType.EMPTY, LoadType.ERROR])
async def test_failed_related_search_gives_none(load_type):
    player = FakePlayer(responder=lambda q: SearchResult(load_type, [youtube("A")]))

    assert await FallbackSearchStrategy().find_next(player, youtube("XYZ"), youtube("XYZ").uri) is None


async def test_playlist_result_uses_playlist_tracks():
    playlist = SearchResult(LoadType.PLAYLIST, [], playlist_tracks=[youtube("LIST")])
    player = FakePlayer(responder=lambda q: playlist)

    found = await FallbackSearchStrategy().find_next(player, youtube("XYZ"), youtube("XYZ").uri)

    assert found.uri == youtube("LIST").uri


async def test_other_sources_are_searched_by_author_and_title():
    def responder(query):
        if query.startswith("https://"):
            return related("NEXT")
        return SearchResult(LoadType.SEARCH, [youtube("FOUND").with_source(TrackSource.REQUESTED)])

    player = FakePlayer(responder=responder)
    previous = make_track("https://soundcloud.com/artist/song", title="Song", author="Artist")

    found = await FallbackSearchStrategy().find_next(player, previous, previous.uri)

    assert player.searches[0][0] == "Artist - Song"
    assert "v=FOUND&list=RDFOUND" in player.searches[1][0]
    assert found.uri == youtube("NEXT").uri


async def test_text_search_identifier_is_preferred():
    def responder(query):
        if query.startswith("https://"):
            return related("NEXT")
        return SearchResult(LoadType.SEARCH, [make_track("https://example.com/v/1", identifier="IDENT")])

    player = FakePlayer(responder=responder)
    previous = make_track("https://soundcloud.com/artist/song")

    await FallbackSearchStrategy().find_next(player, previous, previous.uri)

    assert "v=IDENT&list=RDIDENT" in player.searches[1][0]


async def test_text_search_without_results_gives_none():
    player = FakePlayer(responder=lambda q: SearchResult(LoadType.SEARCH, []))
    previous = make_track("https://soundcloud.com/artist/song")

    assert await FallbackSearchStrategy().find_next(player, previous, previous.uri) is None
    assert len(player.searches) == 1


async def test_youtube_uri_without_query_gives_none():
    player = FakePlayer(responder=lambda q: related("A"))
    previous = make_track("https://youtu.be/XYZ")

    assert await FallbackSearchStrategy().find_next(player, previous, previous.uri) is None
    assert player.searches == []


async def test_search_errors_give_none():
    def responder(query):
        raise RuntimeError("lavalink down")

    player = FakePlayer(responder=responder)

    assert await FallbackSearchStrategy().find_next(player, youtube("XYZ"), youtube("XYZ").uri) is None
