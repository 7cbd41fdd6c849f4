from __future__ import annotations

import logging
import re
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from .errors import SourceUnavailable
from .lavalink_manager import LavalinkManager
from .models import SearchResult, Track

log = logging.getLogger("red.queue_autoplay.player")

URL_RE = re.compile(r"https?://")


class PlayerQueue:
    """Upcoming tracks plus the current/previous history slots."""

    def __init__(self):
        self.current: Optional[Track] = None
        self.previous: Optional[Track] = None
        self.upcoming: Deque[Track] = deque()

    def add(self, track: Track) -> None:
        self.upcoming.append(track)

    def pop_next(self) -> Optional[Track]:
        if self.upcoming:
            return self.upcoming.popleft()
        return None

    def clear(self) -> None:
        self.upcoming.clear()

    def __len__(self) -> int:
        return len(self.upcoming)


class GuildPlayer:
    """Playback state for a single guild on top of a Lavalink player."""

    def __init__(self, guild_id: int, lavalink: LavalinkManager):
        self.guild_id = guild_id
        self.lavalink = lavalink
        self.queue = PlayerQueue()
        self.playing: bool = False

    async def search(self, query: str, identity: Any = None) -> SearchResult:
        if not URL_RE.match(query):
            query = f"ytsearch:{query}"
        return await self.lavalink.load_tracks(query)

    async def play(self) -> Optional[Track]:
        """Start the next queued track, resolving it through Lavalink if needed."""
        track = self.queue.pop_next()
        if track is None:
            self.playing = False
            return None
        playable = track.lavalink_track or await self._resolve(track)
        if playable is None:
            self.playing = False
            raise SourceUnavailable(f"Could not resolve {track.uri} to a playable track.")
        player = await self.lavalink.get_player(self.guild_id)
        self.queue.current = track
        await player.play(playable)
        self.playing = True
        return track

    async def _resolve(self, track: Track) -> Any:
        for query in (track.uri, f"{track.author} - {track.title}"):
            try:
                result = await self.search(query)
            except SourceUnavailable:
                log.debug("Could not load %r", query, exc_info=True)
                continue
            candidates = [] if result.failed else result.candidates()
            if candidates:
                return candidates[0].lavalink_track
        return None

    async def stop(self) -> None:
        self.queue.clear()
        self.queue.current = None
        self.playing = False
        if self.lavalink.client:
            player = self.lavalink.client.player_manager.get(self.guild_id)
            if player:
                await player.stop()


class PlayerController:
    """Creates and destroys GuildPlayer instances, notifying listeners on destruction."""

    def __init__(self, lavalink: LavalinkManager):
        self.lavalink = lavalink
        self.players: Dict[int, GuildPlayer] = {}
        self._destroy_hooks: List[Callable[[GuildPlayer], Any]] = []

    def get(self, guild_id: int) -> Optional[GuildPlayer]:
        return self.players.get(guild_id)

    def get_player(self, guild_id: int) -> GuildPlayer:
        if guild_id not in self.players:
            self.players[guild_id] = GuildPlayer(guild_id, self.lavalink)
        return self.players[guild_id]

    def on_destroy(self, hook: Callable[[GuildPlayer], Any]) -> None:
        self._destroy_hooks.append(hook)

    async def destroy(self, guild_id: int) -> None:
        player = self.players.pop(guild_id, None)
        if player is None:
            return
        await player.stop()
        for hook in self._destroy_hooks:
            hook(player)
        await self.lavalink.disconnect(guild_id)
        await self.lavalink.destroy_player(guild_id)

    async def teardown(self) -> None:
        for guild_id in list(self.players):
            await self.destroy(guild_id)
