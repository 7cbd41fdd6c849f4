from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

import discord
import lavalink

from .errors import SourceUnavailable
from .models import LoadType, SearchResult, Track, TrackSource

log = logging.getLogger("red.queue_autoplay.lavalink")

Handler = Callable[..., Awaitable[None]]


class LavalinkVoiceClient(discord.VoiceProtocol):
    def __init__(self, client: discord.Client, channel: discord.abc.Connectable):
        super().__init__(client, channel)
        self.client = client
        self.channel = channel
        self.lavalink: lavalink.Client = getattr(client, "queue_autoplay_lavalink")

    async def on_voice_server_update(self, data: dict[str, Any]):
        await self.lavalink.voice_update_handler({"t": "VOICE_SERVER_UPDATE", "d": data})

    async def on_voice_state_update(self, data: dict[str, Any]):
        await self.lavalink.voice_update_handler({"t": "VOICE_STATE_UPDATE", "d": data})

    async def connect(self, *, timeout: float | None = None, reconnect: bool | None = None, **kwargs: Any) -> None:  # type: ignore[override]
        self.lavalink.player_manager.create(self.channel.guild.id)
        await self.channel.guild.change_voice_state(channel=self.channel)

    async def disconnect(self, *, force: bool = False) -> None:  # type: ignore[override]
        player = self.lavalink.player_manager.get(self.channel.guild.id)
        if not force and not (player and player.is_connected):
            return
        await self.channel.guild.change_voice_state(channel=None)
        if player:
            player.channel_id = None
        self.cleanup()


class LavalinkManager:
    """Owns the Lavalink client and acts as the event bus for queue events."""

    def __init__(
        self,
        bot: discord.Client,
        *,
        host: str = "localhost",
        port: int = 2333,
        password: str = "youshallnotpass",
        region: str = "us",
    ):
        self.bot = bot
        self.host = host
        self.port = port
        self.password = password
        self.region = region
        self.client: Optional[lavalink.Client] = None
        self.players: Any = None
        self._listeners: Dict[str, List[Handler]] = defaultdict(list)
        self._node_ready: asyncio.Event = asyncio.Event()

    def on(self, event: str, handler: Handler) -> None:
        self._listeners[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        try:
            self._listeners[event].remove(handler)
        except ValueError:
            pass

    async def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._listeners.get(event, ())):
            try:
                await handler(*args)
            except Exception:
                log.exception("Error in %s handler %r", event, handler)

    async def start(self, players: Any) -> None:
        if self.client:
            return
        self.players = players
        self.client = lavalink.Client(self.bot.user.id)  # type: ignore[union-attr]
        self.client.add_node(self.host, self.port, self.password, self.region, "queue-autoplay-node")
        self.bot.queue_autoplay_lavalink = self.client
        self.client.add_event_hook(self._dispatch_event)
        log.info("Connected Lavalink client to %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if not self.client:
            return
        await self.client.close()
        self.client = None
        if hasattr(self.bot, "queue_autoplay_lavalink"):
            delattr(self.bot, "queue_autoplay_lavalink")
        self._node_ready.clear()

    async def _dispatch_event(self, event: Any) -> None:
        try:
            if isinstance(event, lavalink.events.NodeConnectedEvent):
                log.info("Lavalink node connected; session is ready")
                self._node_ready.set()
            elif isinstance(event, lavalink.events.TrackStartEvent):
                player = self._guild_player(event.player.guild_id)
                if player:
                    player.playing = True
            elif isinstance(event, lavalink.events.QueueEndEvent):
                await self._queue_end(event)
        except Exception:
            log.exception("Error dispatching Lavalink event")

    async def _queue_end(self, event: Any) -> None:
        player = self._guild_player(event.player.guild_id)
        if player is None:
            return
        while player.queue.upcoming:
            try:
                await player.play()
                return
            except SourceUnavailable:
                log.warning("Skipping unplayable queued track in guild %s", player.guild_id, exc_info=True)
        finished = player.queue.current
        if finished is None:
            player.playing = False
            return
        await self.emit("queueEnd", player, finished, event)

    def _guild_player(self, guild_id: int):
        if self.players is None:
            return None
        return self.players.get(guild_id)

    async def wait_ready(self, timeout: float = 10.0) -> None:
        if not self.client:
            raise RuntimeError("Lavalink client is not initialised.")
        try:
            await asyncio.wait_for(self._node_ready.wait(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise RuntimeError("Lavalink node did not become ready in time.") from exc

    async def get_player(self, guild_id: int):
        if not self.client:
            raise RuntimeError("Lavalink client is not initialised.")
        await self.wait_ready()
        return self.client.player_manager.create(guild_id)

    async def destroy_player(self, guild_id: int) -> None:
        if self.client:
            await self.client.player_manager.destroy(guild_id)

    async def load_tracks(self, query: str, source: TrackSource = TrackSource.REQUESTED) -> SearchResult:
        try:
            await self.wait_ready()
            result = await self.client.get_tracks(query)  # type: ignore[union-attr]
        except Exception as exc:
            raise SourceUnavailable(f"Lavalink could not load {query!r}") from exc
        load_type = LoadType(getattr(result.load_type, "value", result.load_type))
        tracks = [Track.from_lavalink(data, source) for data in result.tracks[:25]]
        if load_type == LoadType.PLAYLIST:
            return SearchResult(load_type, tracks, playlist_tracks=tracks)
        return SearchResult(load_type, tracks)

    async def connect(self, guild_id: int, channel_id: int) -> None:
        if not self.client:
            raise RuntimeError("Lavalink is not available right now.")
        guild = self.bot.get_guild(guild_id)
        if not guild:
            raise RuntimeError("Guild not found for Lavalink connection")
        channel = guild.get_channel(channel_id)
        if not isinstance(channel, (discord.VoiceChannel, discord.StageChannel)):
            raise RuntimeError("Target channel is not a voice channel")
        if guild.voice_client and isinstance(guild.voice_client, LavalinkVoiceClient):
            await guild.change_voice_state(channel=channel)
        else:
            await channel.connect(cls=LavalinkVoiceClient)

    async def disconnect(self, guild_id: int) -> None:
        guild = self.bot.get_guild(guild_id)
        if guild and guild.voice_client:
            await guild.voice_client.disconnect(force=True)
