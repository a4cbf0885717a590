"""
Core data models for the Star Sums game.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


STARS_TO_WIN = 3


class GamePhase(Enum):
    """Enumeration of possible game phases."""
    START = "start"
    PLAYING = "playing"
    WIN = "win"
    LOSE = "lose"


@dataclass(frozen=True)
class Question:
    """A single addition problem. The sum is always in [0, 9]."""
    x: int
    y: int
    answer: int


@dataclass
class GameSettings:
    """Configuration settings for a game."""
    level_duration: int = 30
    tick_interval: float = 0.1
    stars_to_win: int = STARS_TO_WIN


@dataclass
class GameSession:
    """Mutable record of score, timer and question for one level attempt."""
    phase: GamePhase = GamePhase.START
    question: Optional[Question] = None
    stars: int = 0
    level: int = 1
    time_remaining: float = 0.0
    level_started_at: Optional[float] = None
    last_answer: Optional[int] = None
    is_correct: Optional[bool] = None
