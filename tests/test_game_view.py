"""
Unit tests for the game embed and the button view.
"""
import unittest
import logging
import random

import discord

from star_sums.config_manager import ConfigManager
from star_sums.game_controller import GameController
from star_sums.game_view import (
    GameView, build_game_embed, render_progress_bar, render_stars, NEXT_QUESTION_LABEL
)
from tests.test_fixtures import FakeClock, GameFixtures, MockDiscordObjects


class TestRendering(unittest.TestCase):
    """Test cases for embed rendering helpers."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.clock = FakeClock()
        self.game = GameFixtures.create_game(clock=self.clock, level_duration=20)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_render_stars(self):
        self.assertEqual(render_stars(0, 3), "☆☆☆")
        self.assertEqual(render_stars(2, 3), "⭐⭐☆")
        self.assertEqual(render_stars(5, 3), "⭐⭐⭐")

    def test_render_progress_bar(self):
        self.assertEqual(render_progress_bar(1.0, width=4), "▓▓▓▓")
        self.assertEqual(render_progress_bar(0.5, width=4), "▓▓░░")
        self.assertEqual(render_progress_bar(0.0, width=4), "░░░░")

    def test_start_embed(self):
        embed = build_game_embed(self.game.snapshot())

        self.assertEqual(embed.title, "Level 1")
        self.assertIn("Start", embed.description)

    def test_playing_embed_shows_equation(self):
        self.game.begin()
        question = self.game.session.question

        embed = build_game_embed(self.game.snapshot())

        self.assertIn(f"{question.x} + {question.y} = ?", embed.description)
        field_values = [field.value for field in embed.fields]
        self.assertIn("☆☆☆", field_values)
        self.assertTrue(any(value.endswith("20s") for value in field_values))

    def test_playing_embed_marks_answers(self):
        self.game.begin()
        wrong = GameFixtures.wrong_digit(self.game)
        self.game.select_digit(wrong)
        self.assertIn(f"= {wrong} ❌", build_game_embed(self.game.snapshot()).description)

        GameFixtures.answer_correctly(self.game)
        embed = build_game_embed(self.game.snapshot())
        self.assertIn("✅", embed.description)
        self.assertIn("⭐☆☆", [field.value for field in embed.fields])

    def test_win_embed(self):
        self.game.begin()
        for _ in range(3):
            GameFixtures.answer_correctly(self.game)
            self.game.next_question()

        embed = build_game_embed(self.game.snapshot())

        self.assertEqual(embed.description, "Level 1 complete!")
        self.assertIn("⭐⭐⭐", [field.value for field in embed.fields])

    def test_lose_embed(self):
        self.game.begin()
        self.game.expire()

        embed = build_game_embed(self.game.snapshot())

        self.assertIn("Time's up!", embed.description)
        self.assertIn("☆☆☆", [field.value for field in embed.fields])


class TestGameView(unittest.IsolatedAsyncioTestCase):
    """Test cases for GameView buttons and callbacks."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.clock = FakeClock()
        config_manager = ConfigManager()
        config_manager.set_level_duration(10)
        self.controller = GameController(config_manager, clock=self.clock)
        self.channel_id = 12345
        self.owner_id = 67890
        self.controller.open_game(self.channel_id, self.owner_id, rng=random.Random(11))
        self.interaction = MockDiscordObjects.create_mock_interaction(self.channel_id, self.owner_id)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    async def asyncTearDown(self):
        await self.controller.shutdown()

    def _labels(self, view):
        return [item.label for item in view.children]

    def _answer(self):
        return self.controller.get_game(self.channel_id).session.question.answer

    async def test_start_view_has_start_button(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        self.assertEqual(self._labels(view), ["Start"])

    async def test_trigger_shows_digit_pad(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)

        await view.on_trigger(self.interaction)

        self.assertEqual(self._labels(view), [str(d) for d in range(10)])
        self.interaction.response.edit_message.assert_awaited_once()
        kwargs = self.interaction.response.edit_message.call_args.kwargs
        self.assertIsInstance(kwargs['embed'], discord.Embed)
        self.assertIs(kwargs['view'], view)

    async def test_next_button_only_after_correct_answer(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        await view.on_trigger(self.interaction)

        await view.on_digit(self.interaction, (self._answer() + 1) % 10)
        self.assertNotIn(NEXT_QUESTION_LABEL, self._labels(view))

        await view.on_digit(self.interaction, self._answer())
        self.assertIn(NEXT_QUESTION_LABEL, self._labels(view))
        digits = [item for item in view.children if item.label != NEXT_QUESTION_LABEL]
        self.assertTrue(all(item.disabled for item in digits))

        await view.on_next_question(self.interaction)
        self.assertNotIn(NEXT_QUESTION_LABEL, self._labels(view))

    async def test_win_shows_next_level(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        await view.on_trigger(self.interaction)

        for i in range(3):
            await view.on_digit(self.interaction, self._answer())
            if i < 2:
                await view.on_next_question(self.interaction)

        self.assertEqual(self._labels(view), ["Next Level"])

        await view.on_trigger(self.interaction)
        embed = self.interaction.response.edit_message.call_args.kwargs['embed']
        self.assertEqual(embed.title, "Level 2")

    async def test_expiry_event_shows_retry(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        view.game_message = MockDiscordObjects.create_mock_message()
        await view.on_trigger(self.interaction)
        game = self.controller.get_game(self.channel_id)
        game.expire()

        await view.on_game_event("expired", game.snapshot())

        self.assertEqual(self._labels(view), ["Retry"])
        view.game_message.edit.assert_awaited_once()

    async def test_ticks_throttled_to_displayed_seconds(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        view.game_message = MockDiscordObjects.create_mock_message()
        await view.on_trigger(self.interaction)
        game = self.controller.get_game(self.channel_id)

        for remaining in (9.9, 9.5, 9.1, 8.7):
            game.update_time_remaining(remaining)
            await view.on_game_event("tick", game.snapshot())

        # 10s was shown after Start; 9.9 -> 10 is unchanged, 9.5 and 9.1 -> 10, 8.7 -> 9
        self.assertEqual(view.game_message.edit.await_count, 1)

    async def test_tick_without_message_is_ignored(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        await view.on_game_event("tick", self.controller.get_game_snapshot(self.channel_id))

    async def test_message_edit_failure_is_logged(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        view.game_message = MockDiscordObjects.create_mock_message()
        view.game_message.edit.side_effect = MockDiscordObjects.create_http_exception()

        await view.on_game_event("expired", self.controller.get_game_snapshot(self.channel_id))

    async def test_close_clears_buttons(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        view.game_message = MockDiscordObjects.create_mock_message()

        await view.close()

        self.assertEqual(view.children, [])
        self.assertTrue(view.is_finished())
        view.game_message.edit.assert_awaited_once_with(view=None)

    async def test_close_survives_edit_failure(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        view.game_message = MockDiscordObjects.create_mock_message()
        view.game_message.edit.side_effect = MockDiscordObjects.create_http_exception()

        await view.close()

        self.assertTrue(view.is_finished())

    async def test_other_users_rejected(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        stranger = MockDiscordObjects.create_mock_interaction(self.channel_id, user_id=1)

        self.assertFalse(await view.interaction_check(stranger))
        stranger.response.send_message.assert_awaited_once()
        self.assertTrue(stranger.response.send_message.call_args.kwargs['ephemeral'])

        self.assertTrue(await view.interaction_check(self.interaction))

    async def test_failed_action_sends_ephemeral_error(self):
        view = GameView(self.controller, self.channel_id, self.owner_id)
        await self.controller.stop_game(self.channel_id)

        await view.on_trigger(self.interaction)

        self.interaction.response.send_message.assert_awaited_once()
        self.interaction.response.edit_message.assert_not_awaited()


if __name__ == '__main__':
    unittest.main()
