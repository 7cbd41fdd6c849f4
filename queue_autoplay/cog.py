from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp
import discord
from redbot.core import Config, commands
from redbot.core.bot import Red

from .config import HTTP_TIMEOUT, AutoplayConfig
from .embeds import autoplay_status_embed
from .errors import ConfigurationError, SourceUnavailable, ValidationError
from .events import AutoplayController
from .lavalink_manager import LavalinkManager
from .player import PlayerController
from .services.autoplay import ContinuationSelector
from .services.fallback import FallbackSearchStrategy
from .services.recommendations import RecommendationClient
from .services.tokens import TokenCache

log = logging.getLogger("red.queue_autoplay")


class QueueAutoplay(commands.Cog):
    """Keeps playback going with a related track when the queue runs out."""

    default_global = {
        "content_recommendations": False,
        "lavalink_host": "localhost",
        "lavalink_port": 2333,
        "lavalink_password": "youshallnotpass",
    }

    def __init__(self, bot: Red):
        self.bot = bot
        self.config = Config.get_conf(self, identifier=0xA070_91A7, force_registration=True)
        self.config.register_global(**self.default_global)
        self.session: Optional[aiohttp.ClientSession] = None
        self.tokens: Optional[TokenCache] = None
        self.autoplay_config: Optional[AutoplayConfig] = None
        self.controller: Optional[AutoplayController] = None
        self.lavalink: Optional[LavalinkManager] = None
        self.players: Optional[PlayerController] = None
        self._start_task: Optional[asyncio.Task] = None

    async def _load_config(self) -> AutoplayConfig:
        enabled = await self.config.content_recommendations()
        tokens = await self.bot.get_shared_api_tokens("spotify")
        return AutoplayConfig.from_shared_tokens(enabled, tokens)

    async def cog_load(self) -> None:
        self.autoplay_config = await self._load_config()
        settings = await self.config.all()
        self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT))

        recommendations = None
        if self.autoplay_config.content_recommendation_enabled:
            self.tokens = TokenCache(self.autoplay_config, self.session)
            recommendations = RecommendationClient(self.tokens, self.session)
        selector = ContinuationSelector(self.autoplay_config, FallbackSearchStrategy(), recommendations)
        self.controller = AutoplayController(self.autoplay_config, selector)

        self.lavalink = LavalinkManager(
            self.bot,
            host=settings["lavalink_host"],
            port=settings["lavalink_port"],
            password=settings["lavalink_password"],
        )
        self.players = PlayerController(self.lavalink)
        self.controller.load(self.lavalink, self.players)
        self._start_task = asyncio.create_task(self._start_lavalink())

    async def _start_lavalink(self) -> None:
        await self.bot.wait_until_red_ready()
        try:
            await self.lavalink.start(self.players)
        except Exception:
            log.exception("Could not start the Lavalink client")

    async def cog_unload(self) -> None:
        if self._start_task:
            self._start_task.cancel()
        if self.controller:
            self.controller.unload()
        if self.players:
            await self.players.teardown()
        if self.lavalink:
            await self.lavalink.stop()
        if self.session and not self.session.closed:
            await self.session.close()

    async def _ensure_voice(self, ctx: commands.Context) -> Optional[discord.VoiceChannel]:
        channel = getattr(ctx.author.voice, "channel", None)
        if not channel:
            await ctx.send("You need to be in a voice channel to use music commands.")
            return None
        return channel

    @commands.hybrid_group(name="autoplay", invoke_without_command=True)
    @commands.guild_only()
    async def autoplay(self, ctx: commands.Context) -> None:
        """Continue playback automatically when the queue ends."""
        await ctx.send_help()

    @autoplay.command(name="toggle")
    async def autoplay_toggle(self, ctx: commands.Context, enabled: bool) -> None:
        """Turn autoplay on or off for this server's player."""
        player = self.players.get_player(ctx.guild.id)
        try:
            await self.controller.enable(player, enabled, self.bot.user, self.tokens)
        except ValidationError as exc:
            await ctx.send(str(exc))
            return
        await ctx.send(f"Autoplay {'enabled' if enabled else 'disabled'}.")

    @autoplay.command(name="status")
    async def autoplay_status(self, ctx: commands.Context) -> None:
        """Show autoplay state for this server."""
        player = self.players.get_player(ctx.guild.id)
        state = self.controller.sessions.get(ctx.guild.id)
        await ctx.send(embed=autoplay_status_embed(player, state, self.autoplay_config))

    @autoplay.command(name="recommendations")
    @commands.is_owner()
    async def autoplay_recommendations(self, ctx: commands.Context, enabled: bool) -> None:
        """Use Spotify recommendations for Spotify tracks. Reload the cog to apply."""
        tokens = await self.bot.get_shared_api_tokens("spotify")
        try:
            AutoplayConfig.from_shared_tokens(enabled, tokens)
        except ConfigurationError as exc:
            await ctx.send(f"{exc} Set them with `{ctx.clean_prefix}set api spotify`.")
            return
        await self.config.content_recommendations.set(enabled)
        await ctx.send(
            f"Spotify recommendations {'enabled' if enabled else 'disabled'}. "
            f"Reload the cog to apply."
        )

    @autoplay.command(name="play")
    async def autoplay_play(self, ctx: commands.Context, *, query: str) -> None:
        """Queue a track from a query or URL."""
        channel = await self._ensure_voice(ctx)
        if not channel:
            return
        if not self.lavalink.client:
            await ctx.send("Lavalink is not available right now.")
            return
        player = self.players.get_player(ctx.guild.id)
        async with ctx.typing():
            try:
                result = await player.search(query)
            except SourceUnavailable:
                await ctx.send("Lavalink is not available right now.")
                return
            candidates = [] if result.failed else result.candidates()
            if not candidates:
                await ctx.send("No results were found for that query.")
                return
            track = candidates[0]
            player.queue.add(track)
            await ctx.send(f"Enqueued **{track.title}**.")
            if not player.playing:
                try:
                    await self.lavalink.connect(ctx.guild.id, channel.id)
                    await player.play()
                except (RuntimeError, SourceUnavailable) as exc:
                    await ctx.send(str(exc))

    @autoplay.command(name="stop")
    async def autoplay_stop(self, ctx: commands.Context) -> None:
        """Stop playback, clear the queue and leave the channel."""
        await self.players.destroy(ctx.guild.id)
        await ctx.send("Stopped playback and cleared the queue.")
