"""
Game state machine for Star Sums.

A game moves start -> playing -> {win, lose} -> playing. Events that do not
fit the current phase are ignored and reported by a False return value.
"""
import logging
import random
import time
from typing import Any, Callable, Dict, Optional

from .models import GamePhase, GameSession, GameSettings
from .game_engine import generate_question


class MathGame:
    """
    Owns one session record and applies player and timer events to it.

    The clock and random source are injectable so a game can be driven
    deterministically.
    """

    def __init__(
        self,
        settings: Optional[GameSettings] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.logger = logging.getLogger(__name__)
        self.settings = settings or GameSettings()
        self._rng = rng or random.Random()
        self._clock = clock
        self.session = GameSession(time_remaining=float(self.settings.level_duration))

    @property
    def phase(self) -> GamePhase:
        return self.session.phase

    @property
    def level(self) -> int:
        return self.session.level

    @property
    def stars(self) -> int:
        return self.session.stars

    @property
    def time_remaining(self) -> float:
        return self.session.time_remaining

    @property
    def can_advance(self) -> bool:
        """True when the next-question control should be exposed."""
        return self.session.phase is GamePhase.PLAYING and self.session.is_correct is True

    def _start_level(self) -> None:
        """Reset the session for a fresh attempt at the current level."""
        self.session.phase = GamePhase.PLAYING
        self.session.stars = 0
        self.session.time_remaining = float(self.settings.level_duration)
        self.session.level_started_at = self._clock()
        self._new_question()

    def _new_question(self) -> None:
        self.session.question = generate_question(self._rng)
        self.session.last_answer = None
        self.session.is_correct = None

    def begin(self) -> bool:
        """Start the first level. Legal only in the start phase."""
        if self.session.phase is not GamePhase.START:
            return False
        self._start_level()
        self.logger.info(f"Level {self.session.level} started")
        return True

    def retry(self) -> bool:
        """Replay the same level after running out of time."""
        if self.session.phase is not GamePhase.LOSE:
            return False
        self._start_level()
        self.logger.info(f"Retrying level {self.session.level}")
        return True

    def next_level(self) -> bool:
        """Move on to the next level after a win."""
        if self.session.phase is not GamePhase.WIN:
            return False
        self.session.level += 1
        self._start_level()
        self.logger.info(f"Advanced to level {self.session.level}")
        return True

    def trigger(self) -> bool:
        """The single begin / retry / next-level action for the current phase."""
        if self.session.phase is GamePhase.START:
            return self.begin()
        if self.session.phase is GamePhase.LOSE:
            return self.retry()
        if self.session.phase is GamePhase.WIN:
            return self.next_level()
        return False

    def select_digit(self, digit: int) -> bool:
        """
        Submit an answer from the digit pad.

        Args:
            digit: The selected digit, 0-9

        Returns:
            True if the selection was recorded, False if it was ignored

        Raises:
            ValueError: If digit is not an integer in 0-9
        """
        if isinstance(digit, bool) or not isinstance(digit, int) or not 0 <= digit <= 9:
            raise ValueError(f"Digit must be an integer from 0 to 9, got {digit!r}")

        if self.session.phase is not GamePhase.PLAYING:
            return False

        # Already scored for this question
        if self.session.is_correct:
            return False

        question = self.session.question
        self.session.last_answer = digit
        self.session.is_correct = digit == question.answer

        if not self.session.is_correct:
            self.logger.debug(f"Wrong answer {digit} for {question.x} + {question.y}")
            return True

        self.session.stars = min(self.session.stars + 1, self.settings.stars_to_win)
        self.logger.debug(f"Correct answer, stars now {self.session.stars}")

        if self.session.stars >= self.settings.stars_to_win:
            self.session.phase = GamePhase.WIN
            self.logger.info(
                f"Level {self.session.level} won with {self.session.time_remaining:.1f}s remaining"
            )
        return True

    def next_question(self) -> bool:
        """Replace the question once the current one has been answered correctly."""
        if not self.can_advance:
            return False
        self._new_question()
        return True

    def compute_remaining(self, now: Optional[float] = None) -> float:
        """Remaining time derived from the level start timestamp."""
        if self.session.level_started_at is None:
            return float(self.settings.level_duration)
        now = self._clock() if now is None else now
        elapsed = now - self.session.level_started_at
        return max(0.0, self.settings.level_duration - elapsed)

    def update_time_remaining(self, remaining: float) -> bool:
        """
        Record the remaining time reported by the countdown.

        The stored value only ever goes down while playing.
        """
        if self.session.phase is not GamePhase.PLAYING:
            return False
        remaining = max(0.0, float(remaining))
        self.session.time_remaining = min(self.session.time_remaining, remaining)
        return True

    def expire(self) -> bool:
        """Time ran out: the level is lost, whatever the current question state."""
        if self.session.phase is not GamePhase.PLAYING:
            return False
        self.session.time_remaining = 0.0
        self.session.phase = GamePhase.LOSE
        self.logger.info(
            f"Level {self.session.level} lost with {self.session.stars} star(s)"
        )
        return True

    def tick(self, now: Optional[float] = None) -> bool:
        """
        Apply one countdown step using the game's own clock.

        Returns:
            True if this tick expired the level
        """
        if self.session.phase is not GamePhase.PLAYING:
            return False
        remaining = self.compute_remaining(now)
        self.update_time_remaining(remaining)
        if remaining <= 0:
            return self.expire()
        return False

    def get_message(self) -> Optional[str]:
        """Summary message for the terminal phases."""
        if self.session.phase is GamePhase.WIN:
            return f"Level {self.session.level} complete!"
        if self.session.phase is GamePhase.LOSE:
            return f"Time's up! You earned {self.session.stars} of {self.settings.stars_to_win} stars on level {self.session.level}."
        return None

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view of everything the display needs."""
        session = self.session
        question = session.question
        duration = float(self.settings.level_duration)
        stars = self.settings.stars_to_win if session.phase is GamePhase.WIN else session.stars

        return {
            'phase': session.phase.value,
            'level': session.level,
            'stars': stars,
            'stars_to_win': self.settings.stars_to_win,
            'x': question.x if question else None,
            'y': question.y if question else None,
            'answer': session.last_answer,
            'is_correct': session.is_correct,
            'can_advance': self.can_advance,
            'time_remaining': session.time_remaining,
            'level_duration': duration,
            'time_fraction': session.time_remaining / duration if duration else 0.0,
            'message': self.get_message()
        }
