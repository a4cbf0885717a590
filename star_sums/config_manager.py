"""
Configuration manager for Star Sums game settings.
"""
import logging
from typing import Dict, Any, List

from .models import GameSettings


class ConfigManager:
    """Manages game configuration settings."""

    # Default configuration values
    DEFAULT_LEVEL_DURATION = 30
    DEFAULT_TICK_INTERVAL = 0.1

    # Validation limits
    MIN_LEVEL_DURATION = 5
    MAX_LEVEL_DURATION = 300  # 5 minutes
    MIN_TICK_INTERVAL = 0.01
    MAX_TICK_INTERVAL = 1.0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = GameSettings(
            level_duration=self.DEFAULT_LEVEL_DURATION,
            tick_interval=self.DEFAULT_TICK_INTERVAL
        )

    def get_game_settings(self) -> GameSettings:
        """
        Get a copy of the current game settings.

        Returns:
            GameSettings object with current configuration
        """
        return GameSettings(
            level_duration=self._global_settings.level_duration,
            tick_interval=self._global_settings.tick_interval,
            stars_to_win=self._global_settings.stars_to_win
        )

    def set_level_duration(self, duration: int) -> Dict[str, Any]:
        """
        Set the time allowed for each level.

        Args:
            duration: Level duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(duration, bool) or not isinstance(duration, int):
            error_msg = f"Level duration must be an integer, got {type(duration).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(duration).__name__}"
            }

        if duration < self.MIN_LEVEL_DURATION:
            error_msg = f"Level duration must be at least {self.MIN_LEVEL_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too short: Minimum is {self.MIN_LEVEL_DURATION} seconds"
            }

        if duration > self.MAX_LEVEL_DURATION:
            error_msg = f"Level duration cannot exceed {self.MAX_LEVEL_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too long: Maximum is {self.MAX_LEVEL_DURATION} seconds ({self.MAX_LEVEL_DURATION // 60} minutes)"
            }

        self._global_settings.level_duration = duration
        self.logger.info(f"Level duration set to {duration} seconds")
        return {
            'success': True,
            'message': f"Level duration set to {duration} seconds",
            'user_message': f"✅ Each level now lasts {duration} seconds"
        }

    def get_level_duration(self) -> int:
        """Get current level duration in seconds."""
        return self._global_settings.level_duration

    def set_tick_interval(self, interval: float) -> Dict[str, Any]:
        """
        Set the delay between countdown ticks.

        Args:
            interval: Seconds between ticks

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(interval, bool) or not isinstance(interval, (int, float)):
            error_msg = f"Tick interval must be a number, got {type(interval).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(interval).__name__}"
            }

        if not self.MIN_TICK_INTERVAL <= interval <= self.MAX_TICK_INTERVAL:
            error_msg = (
                f"Tick interval must be between {self.MIN_TICK_INTERVAL} "
                f"and {self.MAX_TICK_INTERVAL} seconds"
            )
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self._global_settings.tick_interval = float(interval)
        self.logger.info(f"Tick interval set to {interval} seconds")
        return {
            'success': True,
            'message': f"Tick interval set to {interval} seconds",
            'user_message': f"✅ Timer ticks every {interval} seconds"
        }

    def get_tick_interval(self) -> float:
        """Get current tick interval in seconds."""
        return self._global_settings.tick_interval

    def apply_config(self, game_config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'game' section of config.json.

        Invalid entries are skipped and the defaults kept.

        Returns:
            List of error messages for the entries that were rejected
        """
        errors = []

        if 'level_duration' in game_config:
            result = self.set_level_duration(game_config['level_duration'])
            if not result['success']:
                errors.append(result['error'])

        if 'tick_interval' in game_config:
            result = self.set_tick_interval(game_config['tick_interval'])
            if not result['success']:
                errors.append(result['error'])

        return errors

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        return (
            f"Game Settings:\n"
            f"• Level timer: {self.get_level_duration()} seconds\n"
            f"• Timer refresh: every {self.get_tick_interval()} seconds\n"
            f"• Stars to win: {self._global_settings.stars_to_win}"
        )
