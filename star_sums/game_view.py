"""
Discord rendering for Star Sums: the game embed and the button view.
"""
import logging
import math
from typing import Any, Dict, Optional

import discord

from .game_controller import GameController
from .models import GamePhase

logger = logging.getLogger(__name__)

STAR_EARNED = "⭐"
STAR_EMPTY = "☆"
NEXT_QUESTION_LABEL = "➜"
PROGRESS_BAR_WIDTH = 20

PHASE_COLORS = {
    GamePhase.START.value: 0x6699ff,
    GamePhase.PLAYING.value: 0x00ff00,
    GamePhase.WIN.value: 0xffd700,
    GamePhase.LOSE.value: 0xff0000,
}


def render_stars(earned: int, total: int) -> str:
    """Render earned and empty stars, e.g. ⭐⭐☆."""
    earned = max(0, min(earned, total))
    return STAR_EARNED * earned + STAR_EMPTY * (total - earned)


def render_progress_bar(fraction: float, width: int = PROGRESS_BAR_WIDTH) -> str:
    """Render the share of time left as a text bar."""
    fraction = max(0.0, min(1.0, fraction))
    filled = math.ceil(fraction * width)
    return "▓" * filled + "░" * (width - filled)


def render_equation(snapshot: Dict[str, Any]) -> str:
    """Render 'x + y = ?' or the submitted answer with a correctness marker."""
    if snapshot['x'] is None:
        return ""

    if snapshot['answer'] is None:
        return f"# {snapshot['x']} + {snapshot['y']} = ?"

    marker = "✅" if snapshot['is_correct'] else "❌"
    return f"# {snapshot['x']} + {snapshot['y']} = {snapshot['answer']} {marker}"


def displayed_seconds(snapshot: Dict[str, Any]) -> int:
    """Whole seconds shown to the player."""
    return math.ceil(snapshot['time_remaining'])


def build_game_embed(snapshot: Dict[str, Any]) -> discord.Embed:
    """
    Build the embed showing the current game state.

    Args:
        snapshot: Output of MathGame.snapshot()

    Returns:
        discord.Embed for the game message
    """
    phase = snapshot['phase']
    embed = discord.Embed(
        title=f"Level {snapshot['level']}",
        color=PHASE_COLORS.get(phase, 0x6699ff)
    )

    if phase == GamePhase.START.value:
        embed.description = "Add the two numbers and pick the answer.\nPress **Start** when you're ready!"
        embed.add_field(
            name="⏱️ Time per level",
            value=f"{snapshot['level_duration']:.0f} seconds",
            inline=True
        )
        embed.add_field(
            name="⭐ Stars to win",
            value=str(snapshot['stars_to_win']),
            inline=True
        )
        return embed

    if phase == GamePhase.PLAYING.value:
        embed.description = render_equation(snapshot)
        embed.add_field(
            name="Stars",
            value=render_stars(snapshot['stars'], snapshot['stars_to_win']),
            inline=True
        )
        embed.add_field(
            name="⏱️ Time Remaining",
            value=f"{render_progress_bar(snapshot['time_fraction'])} {displayed_seconds(snapshot)}s",
            inline=False
        )
        return embed

    # Terminal phases
    embed.description = snapshot['message']
    embed.add_field(
        name="Stars",
        value=render_stars(snapshot['stars'], snapshot['stars_to_win']),
        inline=True
    )
    if phase == GamePhase.WIN.value:
        embed.set_footer(text="Press Next Level to continue")
    else:
        embed.set_footer(text="Press Retry to play this level again")
    return embed


class GameView(discord.ui.View):
    """Buttons for one game: Start / digit pad / next question / Next Level / Retry."""

    def __init__(self, controller: GameController, channel_id: int, owner_id: int):
        super().__init__(timeout=None)
        self.controller = controller
        self.channel_id = channel_id
        self.owner_id = owner_id
        self.game_message: Optional[discord.Message] = None
        self._last_rendered_seconds: Optional[int] = None
        self.rebuild(controller.get_game_snapshot(channel_id))

    def rebuild(self, snapshot: Optional[Dict[str, Any]]) -> None:
        """Replace the buttons with the ones the current phase exposes."""
        self.clear_items()
        if snapshot is None:
            return

        phase = snapshot['phase']

        if phase == GamePhase.START.value:
            self._add_trigger_button("Start", discord.ButtonStyle.success)

        elif phase == GamePhase.PLAYING.value:
            locked = snapshot['is_correct'] is True
            for digit in range(10):
                button = discord.ui.Button(
                    label=str(digit),
                    style=discord.ButtonStyle.secondary,
                    custom_id=f"star_sums:{self.channel_id}:digit:{digit}",
                    disabled=locked,
                    row=digit // 5
                )
                button.callback = self._make_digit_callback(digit)
                self.add_item(button)

            if snapshot['can_advance']:
                button = discord.ui.Button(
                    label=NEXT_QUESTION_LABEL,
                    style=discord.ButtonStyle.primary,
                    custom_id=f"star_sums:{self.channel_id}:next",
                    row=2
                )
                button.callback = self.on_next_question
                self.add_item(button)

        elif phase == GamePhase.WIN.value:
            self._add_trigger_button("Next Level", discord.ButtonStyle.success)

        elif phase == GamePhase.LOSE.value:
            self._add_trigger_button("Retry", discord.ButtonStyle.danger)

    def _add_trigger_button(self, label: str, style: discord.ButtonStyle) -> None:
        button = discord.ui.Button(
            label=label,
            style=style,
            custom_id=f"star_sums:{self.channel_id}:trigger"
        )
        button.callback = self.on_trigger
        self.add_item(button)

    def _make_digit_callback(self, digit: int):
        async def callback(interaction: discord.Interaction):
            await self.on_digit(interaction, digit)
        return callback

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        """Only the player who opened the game may press its buttons."""
        if interaction.user.id == self.owner_id:
            return True
        await interaction.response.send_message(
            "This isn't your game. Start your own with `/play`.",
            ephemeral=True
        )
        return False

    async def on_trigger(self, interaction: discord.Interaction) -> None:
        result = await self.controller.trigger(self.channel_id)
        await self._respond(interaction, result)

    async def on_digit(self, interaction: discord.Interaction, digit: int) -> None:
        result = await self.controller.select_digit(self.channel_id, digit)
        await self._respond(interaction, result)

    async def on_next_question(self, interaction: discord.Interaction) -> None:
        result = await self.controller.next_question(self.channel_id)
        await self._respond(interaction, result)

    async def _respond(self, interaction: discord.Interaction, result: Dict[str, Any]) -> None:
        """Re-render in place after a button press."""
        try:
            if not result['success']:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
                return

            snapshot = result['snapshot']
            self.rebuild(snapshot)
            self._last_rendered_seconds = displayed_seconds(snapshot)
            await interaction.response.edit_message(embed=build_game_embed(snapshot), view=self)

        except discord.HTTPException as e:
            logger.error(f"Failed to update game message for channel {self.channel_id}: {e}")

    async def on_game_event(self, event: str, snapshot: Dict[str, Any]) -> None:
        """
        Listener for timer events from the controller.

        Ticks re-render only when the displayed second changes; expiry always re-renders.
        """
        if self.game_message is None:
            return

        seconds = displayed_seconds(snapshot)
        if event == "tick" and seconds == self._last_rendered_seconds:
            return

        self._last_rendered_seconds = seconds
        self.rebuild(snapshot)
        try:
            await self.game_message.edit(embed=build_game_embed(snapshot), view=self)
        except discord.HTTPException as e:
            logger.warning(f"Failed to refresh game message for channel {self.channel_id}: {e}")

    async def close(self) -> None:
        """Take the buttons off the posted message once the game is stopped."""
        self.clear_items()
        self.stop()
        if self.game_message is None:
            return
        try:
            await self.game_message.edit(view=None)
        except discord.HTTPException as e:
            logger.warning(f"Failed to remove buttons for channel {self.channel_id}: {e}")
