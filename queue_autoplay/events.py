from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Set

import discord

from .config import AutoplayConfig
from .errors import AuthError, ValidationError
from .models import AutoplaySessionState, Track
from .services.autoplay import ContinuationSelector

log = logging.getLogger("red.queue_autoplay.events")

QUEUE_END = "queueEnd"


class AutoplayController:
    """Queue-end state machine deciding between stopping and continuing playback."""

    def __init__(
        self,
        config: AutoplayConfig,
        selector: ContinuationSelector,
        *,
        identity_type: type = discord.ClientUser,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.selector = selector
        self.identity_type = identity_type
        self.log = logger or log
        self.sessions: Dict[int, AutoplaySessionState] = {}
        self.manager: Any = None
        self._reemitting: Set[int] = set()

    def load(self, manager: Any, players: Any = None) -> None:
        self.manager = manager
        manager.on(QUEUE_END, self.queue_end)
        if players is not None:
            players.on_destroy(self.discard)
        self.log.info("Autoplay loaded with options: %s", self.config.redacted())

    def unload(self) -> None:
        if self.manager is not None:
            self.manager.off(QUEUE_END, self.queue_end)
            self.manager = None

    @staticmethod
    def _key(player: Any) -> int:
        return player.guild_id

    def session(self, player: Any) -> AutoplaySessionState:
        key = self._key(player)
        if key not in self.sessions:
            self.sessions[key] = AutoplaySessionState()
        return self.sessions[key]

    def is_enabled(self, player: Any) -> bool:
        state = self.sessions.get(self._key(player))
        return bool(state and state.enabled)

    def discard(self, player: Any) -> None:
        self.sessions.pop(self._key(player), None)

    def set_autoplay(self, player: Any, enabled: bool, identity: Any) -> None:
        if not isinstance(enabled, bool):
            raise ValidationError("enabled must be a boolean.")
        if not isinstance(identity, self.identity_type):
            raise ValidationError(f"identity must be a {self.identity_type.__name__} object.")
        state = self.session(player)
        state.enabled = enabled
        state.identity = identity

    async def enable(self, player: Any, enabled: bool, identity: Any, tokens: Any = None) -> None:
        """Set the flag, then warm the recommendation token when switching on."""
        self.set_autoplay(player, enabled, identity)
        if not enabled or tokens is None:
            return
        try:
            await tokens.get_token()
        except AuthError:
            self.log.warning("Could not pre-authenticate with the recommendation API", exc_info=True)

    async def queue_end(self, player: Any, track: Track, payload: Any) -> None:
        key = self._key(player)
        if key in self._reemitting:
            return

        queue = player.queue
        queue.previous = queue.current
        queue.current = None

        state = self.sessions.get(key)
        if state is None or not state.enabled:
            player.playing = False
            await self._reemit(key, player, track, payload)
            return

        try:
            next_track = await self.selector.select_next(
                player, queue.previous, track, identity=state.identity
            )
        except Exception:
            self.log.exception("Error selecting a continuation for guild %s", key)
            next_track = None

        if next_track is None:
            self.log.debug("No continuation found for guild %s", key)
            player.playing = False
            return

        queue.add(next_track)
        try:
            await player.play()
        except Exception:
            self.log.exception("Autoplay failed to start %s in guild %s", next_track.uri, key)
            player.playing = False
            return
        self.log.info("Autoplay queued %s in guild %s", next_track.uri, key)

    async def _reemit(self, key: int, player: Any, track: Track, payload: Any) -> None:
        if self.manager is None:
            return
        self._reemitting.add(key)
        try:
            await self.manager.emit(QUEUE_END, player, track, payload)
        finally:
            self._reemitting.discard(key)
