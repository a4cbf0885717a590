"""
Game session controller for Star Sums.
Binds games to Discord channels and keeps each level timer in step with the game phase.
"""
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .models import GamePhase
from .math_game import MathGame
from .game_engine import GameEngine
from .config_manager import ConfigManager


# Awaited with the event name ("tick" or "expired") and the game snapshot
GameListener = Callable[[str, Dict[str, Any]], Awaitable[None]]


class GameControllerError(Exception):
    """Base exception for game controller errors."""
    pass


class SessionConflictError(GameControllerError):
    """Raised when a channel already has a game."""
    pass


class SessionNotFoundError(GameControllerError):
    """Raised when attempting to operate on a channel without a game."""
    pass


@dataclass
class ActiveGame:
    """A game bound to a channel."""
    game: MathGame
    owner_id: int
    listener: Optional[GameListener] = None
    opened_at: datetime = field(default_factory=datetime.now)


class GameController:
    """
    Orchestrates games across Discord channels.

    Each channel has at most one game. The controller starts the level timer
    whenever a game enters the playing phase and cancels it as soon as the
    game leaves that phase or is stopped.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        game_engine: Optional[GameEngine] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the game controller.

        Args:
            config_manager: Instance for managing configuration
            game_engine: Timer registry, a new one when None
            clock: Monotonic clock shared by games and timers
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager
        self._clock = clock
        self.game_engine = game_engine or GameEngine(clock=clock)

        # Active games mapped by channel ID
        self._active_games: Dict[int, ActiveGame] = {}

        self.logger.info("GameController initialized")

    def open_game(
        self,
        channel_id: int,
        owner_id: int,
        listener: Optional[GameListener] = None,
        rng: Optional[random.Random] = None
    ) -> Dict[str, Any]:
        """
        Open a new game in the start phase for a channel.

        Args:
            channel_id: Discord channel identifier
            owner_id: The player allowed to press the game buttons
            listener: Awaited on timer ticks and expiry
            rng: Random source for questions

        Returns:
            Dictionary with operation result and game snapshot
        """
        try:
            if self.has_active_game(channel_id):
                raise SessionConflictError(f"Channel {channel_id} already has a game")

            game = MathGame(
                settings=self.config_manager.get_game_settings(),
                rng=rng,
                clock=self._clock
            )
            self._active_games[channel_id] = ActiveGame(game=game, owner_id=owner_id, listener=listener)

            self.logger.info(
                f"Opened game for channel {channel_id}",
                extra={
                    'event_type': 'game_opened',
                    'channel_id': channel_id,
                    'owner_id': owner_id,
                    'timestamp': time.time()
                }
            )
            return {
                'success': True,
                'accepted': True,
                'message': f"Game opened for channel {channel_id}",
                'user_message': "✅ Game ready! Press Start to begin.",
                'snapshot': game.snapshot()
            }

        except GameControllerError as e:
            return self._handle_game_error(channel_id, e, "open_game")

    def get_game(self, channel_id: int) -> Optional[MathGame]:
        """
        Get the game for a channel.

        Returns:
            MathGame if the channel has one, None otherwise
        """
        active = self._active_games.get(channel_id)
        return active.game if active else None

    def has_active_game(self, channel_id: int) -> bool:
        """Check if a channel has a game."""
        return channel_id in self._active_games

    def is_owner(self, channel_id: int, user_id: int) -> bool:
        """Check whether a user opened the game in a channel."""
        active = self._active_games.get(channel_id)
        return active is not None and active.owner_id == user_id

    def set_listener(self, channel_id: int, listener: Optional[GameListener]) -> bool:
        """Attach the render listener for timer events."""
        active = self._active_games.get(channel_id)
        if active is None:
            return False
        active.listener = listener
        return True

    def _require_game(self, channel_id: int) -> MathGame:
        game = self.get_game(channel_id)
        if game is None:
            raise SessionNotFoundError(f"No game for channel {channel_id}")
        return game

    def _result(self, game: MathGame, accepted: bool, message: str) -> Dict[str, Any]:
        return {
            'success': True,
            'accepted': accepted,
            'message': message,
            'user_message': game.get_message() or "",
            'snapshot': game.snapshot()
        }

    async def trigger(self, channel_id: int) -> Dict[str, Any]:
        """
        Begin, retry or advance to the next level depending on the phase.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with operation result and game snapshot
        """
        try:
            game = self._require_game(channel_id)
            previous_phase = game.phase
            accepted = game.trigger()

            if accepted:
                self._start_level_timer(channel_id, game)
                self.logger.info(
                    f"Channel {channel_id}: {previous_phase.value} -> {game.phase.value}, level {game.level}"
                )

            return self._result(game, accepted, f"Trigger in phase {previous_phase.value}")

        except GameControllerError as e:
            return self._handle_game_error(channel_id, e, "trigger")

    async def select_digit(self, channel_id: int, digit: int) -> Dict[str, Any]:
        """
        Submit a digit for the current question.

        Args:
            channel_id: Discord channel identifier
            digit: Selected digit, 0-9

        Returns:
            Dictionary with operation result and game snapshot
        """
        try:
            game = self._require_game(channel_id)
            if await self._expire_if_due(channel_id, game):
                return self._result(game, False, "Level expired")
            accepted = game.select_digit(digit)
            await self._sync_timer_with_phase(channel_id, game)
            return self._result(game, accepted, f"Selected {digit}")

        except (GameControllerError, ValueError) as e:
            return self._handle_game_error(channel_id, e, "select_digit")

    async def next_question(self, channel_id: int) -> Dict[str, Any]:
        """
        Move to a new question after a correct answer.

        Returns:
            Dictionary with operation result and game snapshot
        """
        try:
            game = self._require_game(channel_id)
            if await self._expire_if_due(channel_id, game):
                return self._result(game, False, "Level expired")
            accepted = game.next_question()
            return self._result(game, accepted, "Next question")

        except GameControllerError as e:
            return self._handle_game_error(channel_id, e, "next_question")

    async def stop_game(self, channel_id: int) -> Dict[str, Any]:
        """
        Stop a game, cancelling its timer and discarding the session.

        Returns:
            Dictionary with operation result and the final snapshot
        """
        active = self._active_games.pop(channel_id, None)

        if active is None:
            return self._handle_game_error(
                channel_id,
                SessionNotFoundError(f"No game for channel {channel_id}"),
                "stop_game"
            )

        timer_cancelled = await self.game_engine.cancel_timer(str(channel_id))

        self.logger.info(
            f"Stopped and cleaned up game for channel {channel_id}, timer cancelled: {timer_cancelled}",
            extra={
                'event_type': 'game_stopped',
                'channel_id': channel_id,
                'timer_cancelled': timer_cancelled,
                'timestamp': time.time()
            }
        )
        return {
            'success': True,
            'accepted': True,
            'message': "Game stopped",
            'user_message': "🛑 Game stopped.",
            'snapshot': active.game.snapshot()
        }

    async def shutdown(self) -> int:
        """Stop every game. Returns the number of games stopped."""
        channel_ids = list(self._active_games.keys())
        for channel_id in channel_ids:
            await self.stop_game(channel_id)
        await self.game_engine.cancel_all_timers()
        return len(channel_ids)

    def _start_level_timer(self, channel_id: int, game: MathGame) -> None:
        # Callbacks carry the level start stamp so a stale timer cannot touch a newer level
        level_token = game.session.level_started_at
        self.game_engine.start_level_timer(
            str(channel_id),
            level_token,
            game.settings.level_duration,
            game.settings.tick_interval,
            lambda remaining: self._on_timer_update(channel_id, level_token, remaining),
            lambda: self._on_timer_expired(channel_id, level_token)
        )

    async def _expire_if_due(self, channel_id: int, game: MathGame) -> bool:
        """
        Apply the clock before player input.

        The countdown task can be held up by a slow render, so an input may
        arrive after the deadline but before the timer reports it.

        Returns:
            True if the level ran out of time
        """
        if not game.tick():
            return False
        self.logger.info(f"Channel {channel_id}: level {game.level} expired before input was applied")
        await self.game_engine.cancel_timer(str(channel_id))
        return True

    async def _sync_timer_with_phase(self, channel_id: int, game: MathGame) -> None:
        """Cancel the level timer once the game is no longer playing."""
        if game.phase is not GamePhase.PLAYING and self.game_engine.has_active_timer(str(channel_id)):
            await self.game_engine.cancel_timer(str(channel_id))

    def _current_game_for(self, channel_id: int, level_token: float) -> Optional[MathGame]:
        game = self.get_game(channel_id)
        if game is None or game.phase is not GamePhase.PLAYING:
            return None
        if game.session.level_started_at != level_token:
            return None
        return game

    async def _on_timer_update(self, channel_id: int, level_token: float, remaining: float) -> None:
        game = self._current_game_for(channel_id, level_token)
        if game is None:
            return
        game.update_time_remaining(remaining)
        await self._notify(channel_id, "tick", game)

    async def _on_timer_expired(self, channel_id: int, level_token: float) -> None:
        game = self._current_game_for(channel_id, level_token)
        if game is None:
            self.logger.debug(f"Ignoring expiry for channel {channel_id}: level already finished")
            return
        game.expire()
        await self._notify(channel_id, "expired", game)

    async def _notify(self, channel_id: int, event: str, game: MathGame) -> None:
        active = self._active_games.get(channel_id)
        if active is None or active.listener is None:
            return
        try:
            await active.listener(event, game.snapshot())
        except Exception as e:
            self.logger.error(f"Listener failed on {event} for channel {channel_id}: {e}", exc_info=True)

    def get_game_snapshot(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """Get the display snapshot for a channel's game, None if there is none."""
        game = self.get_game(channel_id)
        return game.snapshot() if game else None

    def get_session_status_summary(self, channel_id: int) -> str:
        """
        Get a human-readable summary of the game status.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Formatted string describing the game status
        """
        active = self._active_games.get(channel_id)

        if active is None:
            return "No game in this channel."

        snapshot = active.game.snapshot()
        status_parts = [
            f"Level: {snapshot['level']}",
            f"Stars: {snapshot['stars']}/{snapshot['stars_to_win']}",
            f"Status: {snapshot['phase'].capitalize()}"
        ]

        if snapshot['phase'] == GamePhase.PLAYING.value:
            status_parts.append(f"Time left: {snapshot['time_remaining']:.0f}s")

        duration = datetime.now() - active.opened_at
        minutes = int(duration.total_seconds() // 60)
        seconds = int(duration.total_seconds() % 60)
        status_parts.append(f"Open for: {minutes}m {seconds}s")

        return " | ".join(status_parts)

    def get_all_active_games(self) -> Dict[int, Dict[str, Any]]:
        """Get snapshots of every open game keyed by channel ID."""
        return {
            channel_id: active.game.snapshot()
            for channel_id, active in self._active_games.items()
        }

    def _handle_game_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log an error and turn it into a result dictionary.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error handling results
        """
        self.logger.warning(f"Error in {operation} for channel {channel_id}: {error}")
        return {
            'success': False,
            'accepted': False,
            'error': str(error),
            'operation': operation,
            'message': str(error),
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, SessionConflictError):
            return "❌ A game is already running in this channel. Stop it first with `/stop`."

        elif isinstance(error, SessionNotFoundError):
            return "❌ No game in this channel. Start one with `/play`."

        elif isinstance(error, ValueError):
            return "❌ Pick a digit from 0 to 9."

        else:
            return f"❌ An unexpected error occurred during {operation}. Please try again."
