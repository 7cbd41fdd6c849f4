from __future__ import annotations

from typing import Optional

import discord

from .config import AutoplayConfig
from .models import AutoplaySessionState
from .player import GuildPlayer


def autoplay_status_embed(
    player: GuildPlayer, state: Optional[AutoplaySessionState], config: AutoplayConfig
) -> discord.Embed:
    enabled = bool(state and state.enabled)
    embed = discord.Embed(title="Autoplay", description="Enabled" if enabled else "Disabled")
    embed.add_field(
        name="Recommendations",
        value="Spotify" if config.content_recommendation_enabled else "Related videos only",
        inline=True,
    )
    embed.add_field(name="Queued", value=str(len(player.queue)), inline=True)
    if player.queue.current:
        track = player.queue.current
        embed.add_field(name="Now Playing", value=f"**{track.title}** • {track.author}", inline=False)
    if player.queue.previous:
        track = player.queue.previous
        embed.add_field(name="Previous", value=f"{track.title} ({track.source.value})", inline=False)
    return embed
