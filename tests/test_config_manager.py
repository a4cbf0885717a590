"""
Unit tests for ConfigManager class.
"""
import unittest
import logging

from star_sums.config_manager import ConfigManager
from star_sums.models import GameSettings


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        settings = self.config_manager.get_game_settings()

        self.assertIsInstance(settings, GameSettings)
        self.assertEqual(settings.level_duration, 30)
        self.assertEqual(settings.tick_interval, 0.1)
        self.assertEqual(settings.stars_to_win, 3)

    def test_get_game_settings_returns_copy(self):
        settings = self.config_manager.get_game_settings()
        settings.level_duration = 999

        self.assertEqual(self.config_manager.get_level_duration(), 30)

    def test_set_level_duration_valid_values(self):
        for value in (5, 45, 300):
            result = self.config_manager.set_level_duration(value)
            self.assertTrue(result['success'])
            self.assertEqual(self.config_manager.get_level_duration(), value)

    def test_set_level_duration_invalid_values(self):
        for value in ("30", 30.5, True, None, 4, 0, -1, 301):
            result = self.config_manager.set_level_duration(value)
            self.assertFalse(result['success'], value)
            self.assertIn('user_message', result)

        self.assertEqual(self.config_manager.get_level_duration(), 30)

    def test_set_tick_interval(self):
        result = self.config_manager.set_tick_interval(0.5)
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_tick_interval(), 0.5)

        result = self.config_manager.set_tick_interval(1)
        self.assertTrue(result['success'])
        self.assertIsInstance(self.config_manager.get_tick_interval(), float)

    def test_set_tick_interval_invalid_values(self):
        for value in ("0.1", False, 0, 0.001, 2.0):
            result = self.config_manager.set_tick_interval(value)
            self.assertFalse(result['success'], value)

        self.assertEqual(self.config_manager.get_tick_interval(), 0.1)

    def test_apply_config(self):
        errors = self.config_manager.apply_config({'level_duration': 60, 'tick_interval': 0.25})

        self.assertEqual(errors, [])
        self.assertEqual(self.config_manager.get_level_duration(), 60)
        self.assertEqual(self.config_manager.get_tick_interval(), 0.25)

    def test_apply_config_keeps_defaults_for_invalid_entries(self):
        errors = self.config_manager.apply_config({'level_duration': 1, 'tick_interval': 0.2})

        self.assertEqual(len(errors), 1)
        self.assertIn("at least", errors[0])
        self.assertEqual(self.config_manager.get_level_duration(), 30)
        self.assertEqual(self.config_manager.get_tick_interval(), 0.2)

    def test_apply_empty_config(self):
        self.assertEqual(self.config_manager.apply_config({}), [])

    def test_settings_summary(self):
        self.config_manager.set_level_duration(45)

        summary = self.config_manager.get_settings_summary()

        self.assertIn("45 seconds", summary)
        self.assertIn("Stars to win: 3", summary)
        self.assertIn("every 0.1 seconds", summary)


if __name__ == '__main__':
    unittest.main()
