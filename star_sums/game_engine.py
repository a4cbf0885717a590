"""
Game engine core logic for Star Sums.
Handles question generation and the per-level countdown timer.
"""
import random
import asyncio
import logging
import math
import time
from typing import Callable, Dict, Optional, Any

from star_sums.models import Question

# Timer lifecycle records go through this logger
logger = logging.getLogger(__name__)

MAX_OPERAND = 9


def generate_question(rng: Optional[random.Random] = None) -> Question:
    """
    Generate a random addition problem whose sum never exceeds 9.

    Args:
        rng: Random source, the module-level generator when None

    Returns:
        A new Question
    """
    rng = rng or random
    x = rng.randint(0, MAX_OPERAND)
    y = rng.randint(0, MAX_OPERAND - x)
    return Question(x=x, y=y, answer=x + y)


class TimerLifecycleLogger:
    """
    Structured log records for the level timer.

    Every record carries an ``event_type`` of the form ``level_timer_<stage>``
    plus the channel, so log processors can follow one countdown end to end.
    """

    @staticmethod
    def _emit(level: int, stage: str, channel_id: str, message: str, **fields: Any) -> None:
        extra = {'event_type': f'level_timer_{stage}', 'channel_id': channel_id, 'timestamp': time.time()}
        extra.update(fields)
        logger.log(level, f"Level timer [{channel_id}] {stage.upper()}: {message}", extra=extra)

    @staticmethod
    def log_timer_created(channel_id: str, duration: float) -> None:
        TimerLifecycleLogger._emit(logging.INFO, 'created', channel_id, f"{duration}s level", duration=duration)

    @staticmethod
    def log_timer_start(channel_id: str, remaining_time: float) -> None:
        TimerLifecycleLogger._emit(
            logging.INFO, 'started', channel_id,
            f"{remaining_time:.1f}s on the clock", remaining_time=remaining_time
        )

    @staticmethod
    def log_timer_update(channel_id: str, remaining_time: float, total_duration: float) -> None:
        """Debug record for a tick; only every tenth second and the last five are logged."""
        whole_seconds = math.ceil(remaining_time)
        if whole_seconds % 10 and whole_seconds > 5:
            return
        elapsed_share = (total_duration - remaining_time) / total_duration if total_duration else 1.0
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'tick', channel_id,
            f"{remaining_time:.1f}s left ({elapsed_share:.0%} used)",
            remaining_time=remaining_time, total_duration=total_duration
        )

    @staticmethod
    def log_timer_completion(channel_id: str, completion_type: str, total_duration: float) -> None:
        """completion_type is natural_expiry, cancelled or asyncio_cancelled."""
        TimerLifecycleLogger._emit(
            logging.INFO, 'finished', channel_id, completion_type,
            completion_type=completion_type, total_duration=total_duration
        )

    @staticmethod
    def log_timer_cleanup_complete(channel_id: str, cleanup_start_time: float, success: bool) -> None:
        took = time.time() - cleanup_start_time
        TimerLifecycleLogger._emit(
            logging.INFO if success else logging.WARNING, 'cleanup', channel_id,
            f"{'done' if success else 'task still running'} after {took:.3f}s",
            cleanup_duration=took, success=success
        )

    @staticmethod
    def log_timer_state_transition(channel_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        message = f"{from_state} -> {to_state}"
        if reason:
            message += f" ({reason})"
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'state', channel_id, message,
            from_state=from_state, to_state=to_state, reason=reason
        )

    @staticmethod
    def log_timer_error(channel_id: str, error_type: str, error_message: str, operation: str) -> None:
        TimerLifecycleLogger._emit(
            logging.ERROR, 'error', channel_id, f"{operation} failed with {error_type}: {error_message}",
            error_type=error_type, error_message=error_message, operation=operation
        )

    @staticmethod
    def log_race_condition_detected(channel_id: str, details: str) -> None:
        TimerLifecycleLogger._emit(logging.WARNING, 'race', channel_id, details, details=details)


class CountdownTimer:
    """
    Counts a level down against the wall clock.

    Remaining time is derived from the level start timestamp on every tick,
    so a slow callback never makes the countdown drift.
    """

    def __init__(self, channel_id: str = None, clock: Callable[[], float] = time.monotonic):
        """channel_id only labels log records."""
        self._task: Optional[asyncio.Task] = None
        self._clock = clock
        self._channel_id = channel_id
        self._started_at = 0.0
        self._total_duration = 0.0
        self._remaining_time = 0.0
        self._is_cancelled = False
        self._is_expired = False

    def compute_remaining(self) -> float:
        """Return max(0, duration - elapsed) for the current clock reading."""
        elapsed = self._clock() - self._started_at
        return max(0.0, self._total_duration - elapsed)

    async def run(
        self,
        started_at: float,
        duration: float,
        tick_interval: float,
        update_callback: Callable[[float], Any],
        completion_callback: Callable[[], Any]
    ) -> None:
        """
        Run the countdown until it expires or is cancelled.

        Args:
            started_at: Clock reading when the level started
            duration: Level duration in seconds
            tick_interval: Delay between ticks in seconds
            update_callback: Awaited on each tick with the remaining time while > 0
            completion_callback: Awaited exactly once when remaining time reaches 0
        """
        self._started_at = started_at
        self._total_duration = duration
        self._remaining_time = self.compute_remaining()
        self._is_cancelled = False
        self._is_expired = False

        TimerLifecycleLogger.log_timer_start(self._channel_id, self._remaining_time)

        try:
            while not self._is_cancelled:
                self._remaining_time = self.compute_remaining()

                if self._remaining_time <= 0:
                    self._is_expired = True
                    TimerLifecycleLogger.log_timer_completion(
                        self._channel_id,
                        "natural_expiry",
                        self._total_duration
                    )
                    await completion_callback()
                    return

                TimerLifecycleLogger.log_timer_update(
                    self._channel_id,
                    self._remaining_time,
                    self._total_duration
                )
                await update_callback(self._remaining_time)
                await asyncio.sleep(tick_interval)

            TimerLifecycleLogger.log_timer_completion(
                self._channel_id,
                "cancelled",
                self._total_duration
            )

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(
                self._channel_id,
                "asyncio_cancelled",
                self._total_duration
            )
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._channel_id,
                "countdown_execution_error",
                str(e),
                "run"
            )
            raise

    def cancel(self) -> None:
        """Cancel the countdown. A cancelled timer never reports expiry."""
        TimerLifecycleLogger.log_timer_state_transition(
            self._channel_id,
            "running",
            "cancelled",
            "cancel requested"
        )
        self._is_cancelled = True
        if self._task and not self._task.done() and self._task is not asyncio.current_task():
            logger.debug(f"Cancelling timer task for channel {self._channel_id}")
            self._task.cancel()

    @property
    def is_active(self) -> bool:
        """Check if the countdown task is still running."""
        return self._task is not None and not self._task.done() and not self._is_cancelled

    @property
    def is_cancelled(self) -> bool:
        """True once cancel() was called or the task was cancelled."""
        return self._is_cancelled

    @property
    def is_expired(self) -> bool:
        """Check if the countdown reached zero."""
        return self._is_expired

    @property
    def remaining_time(self) -> float:
        """Get remaining time in seconds as of the last tick."""
        return self._remaining_time


class GameEngine:
    """Keeps at most one countdown timer per channel."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize the game engine."""
        self._clock = clock
        self._timers: Dict[str, CountdownTimer] = {}  # Channel ID -> Timer mapping

    def start_level_timer(
        self,
        channel_id: str,
        started_at: float,
        duration: float,
        tick_interval: float,
        update_callback: Callable[[float], Any],
        completion_callback: Callable[[], Any]
    ) -> CountdownTimer:
        """
        Start a countdown for a level as a background task.

        Any timer still running for the channel is cancelled first.

        Returns:
            The running CountdownTimer
        """
        existing = self._timers.get(channel_id)
        if existing is not None and existing.is_active:
            TimerLifecycleLogger.log_race_condition_detected(
                channel_id,
                "Active timer replaced by a new level timer"
            )
            existing.cancel()

        timer = CountdownTimer(channel_id, clock=self._clock)
        self._timers[channel_id] = timer
        TimerLifecycleLogger.log_timer_created(channel_id, duration)

        timer._task = asyncio.create_task(
            timer.run(started_at, duration, tick_interval, update_callback, completion_callback)
        )
        timer._task.add_done_callback(lambda task: self._on_task_done(channel_id, timer, task))

        logger.debug(
            f"Started countdown task for channel {channel_id}",
            extra={
                'event_type': 'level_timer_task',
                'channel_id': channel_id,
                'task_id': str(id(timer._task)),
                'duration': duration,
                'timestamp': time.time()
            }
        )
        return timer

    def _on_task_done(self, channel_id: str, timer: CountdownTimer, task: asyncio.Task) -> None:
        """Drop the timer from tracking once its task has finished."""
        if not task.cancelled() and task.exception() is not None:
            TimerLifecycleLogger.log_timer_error(
                channel_id,
                "execution_error",
                str(task.exception()),
                "timer_task_execution"
            )
        if self._timers.get(channel_id) is timer:
            del self._timers[channel_id]
            TimerLifecycleLogger.log_timer_state_transition(
                channel_id,
                "finished",
                "removed_from_tracking",
                "task done"
            )

    async def cancel_timer(self, channel_id: str) -> bool:
        """
        Cancel the timer for a specific channel and wait for its task to finish.

        Args:
            channel_id: Discord channel identifier

        Returns:
            True if a timer was cancelled, False if no timer was tracked
        """
        cleanup_start_time = time.time()
        timer = self._timers.pop(channel_id, None)

        if timer is None:
            logger.debug(
                f"No active timer found for channel {channel_id}",
                extra={
                    'event_type': 'level_timer_cancel_missing',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            return False

        timer.cancel()
        task = timer._task

        if task is not None and task is not asyncio.current_task():
            max_wait_time = 2.0
            wait_start = time.time()

            while not task.done() and (time.time() - wait_start) < max_wait_time:
                # Give the task a chance to process its cancellation
                await asyncio.sleep(0.01)

            if not task.done():
                TimerLifecycleLogger.log_timer_error(
                    channel_id,
                    "cancellation_timeout",
                    f"Timer task did not finish cancellation within {max_wait_time}s",
                    "cancel_timer"
                )
                TimerLifecycleLogger.log_timer_cleanup_complete(channel_id, cleanup_start_time, False)
                return True

        TimerLifecycleLogger.log_timer_cleanup_complete(channel_id, cleanup_start_time, True)
        return True

    async def cancel_all_timers(self) -> int:
        """Cancel every tracked timer. Returns the number cancelled."""
        channel_ids = list(self._timers.keys())
        for channel_id in channel_ids:
            await self.cancel_timer(channel_id)
        return len(channel_ids)

    def has_active_timer(self, channel_id: str) -> bool:
        """Check whether a channel has a running countdown."""
        timer = self._timers.get(channel_id)
        return timer is not None and timer.is_active

    def get_timer_status(self, channel_id: str) -> Optional[Dict[str, Any]]:
        """
        Get timer status for a specific channel.

        Returns:
            Dictionary with timer status, or None if no timer is tracked
        """
        timer = self._timers.get(channel_id)
        if timer is None:
            return None

        return {
            'remaining_time': timer.remaining_time,
            'is_active': timer.is_active,
            'is_cancelled': timer.is_cancelled,
            'is_expired': timer.is_expired
        }
