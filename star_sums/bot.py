import discord
from discord.ext import commands
import logging
import asyncio
from typing import Dict, Optional
import os

from .config_manager import ConfigManager
from .game_controller import GameController
from .game_view import GameView, build_game_embed

logger = logging.getLogger(__name__)


class MathGameBot(commands.Bot):
    """Discord bot hosting Star Sums games"""

    def __init__(self, config=None):
        # Minimal intents for slash commands and button interactions
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        # Created in setup_hook
        self.config_manager: Optional[ConfigManager] = None
        self.game_controller: Optional[GameController] = None

        # Posted game views by channel, so /stop can take their buttons down
        self.game_views: Dict[int, GameView] = {}

    async def setup_hook(self):
        """Create the game components before connecting"""
        try:
            logger.info("Creating config manager and game controller")

            self.config_manager = ConfigManager()

            if self.app_config:
                self.apply_configuration()

            self.game_controller = GameController(self.config_manager)

            await self.setup_commands()

            logger.info("Game components ready")

        except Exception as e:
            logger.error(f"Failed to set up game components: {e}")
            raise

    def apply_configuration(self):
        """Apply settings from configuration file to the config manager."""
        errors = self.config_manager.apply_config(self.app_config.get('game', {}))
        for error in errors:
            logger.warning(f"Ignoring invalid game setting, keeping default: {error}")
        logger.info(
            f"Configuration applied: level timer {self.config_manager.get_level_duration()}s, "
            f"tick every {self.config_manager.get_tick_interval()}s"
        )

    async def setup_commands(self):
        """Register the game slash commands on the app command tree"""
        @self.tree.command(name="help", description="Display available commands and how to play")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="play", description="Open a new Star Sums game in this channel")
        async def play_command(interaction: discord.Interaction):
            await self.handle_play(interaction)

        @self.tree.command(name="stop", description="Stop the game in this channel")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show the current level, stars and time")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="set_timer", description="Set the time allowed per level (5-300 seconds)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.handle_set_timer(interaction, seconds)

        logger.info("Registered /help, /play, /stop, /status and /set_timer")

    async def on_ready(self):
        """Sync slash commands once the gateway connection is up"""
        logger.info(f"Connected as {self.user} in {len(self.guilds)} guild(s)")
        print(f"⭐ {self.user} is ready to play!")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} application command(s)")
        except discord.HTTPException as e:
            logger.error(f"Application command sync failed: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Log unhandled event errors"""
        logger.error(f"Unhandled error in event {event}", exc_info=True)

    async def close(self):
        """Cancel every game timer before disconnecting"""
        if self.game_controller is not None:
            stopped = await self.game_controller.shutdown()
            logger.info(f"Stopped {stopped} game(s) on shutdown")
        await super().close()

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            embed = discord.Embed(
                title="⭐ Star Sums - Help",
                description="Add the two numbers and pick the answer from the digit pad. "
                            "Three correct answers before the timer runs out clear the level.",
                color=0x6699ff
            )
            embed.add_field(
                name="🎮 Commands",
                value=(
                    "`/play` - Open a new game in this channel\n"
                    "`/stop` - Stop the game\n"
                    "`/status` - Show level, stars and time left\n"
                    "`/set_timer <seconds>` - Time allowed per level\n"
                    "`/help` - Show this message"
                ),
                inline=False
            )
            embed.add_field(
                name="⚙️ Current Settings",
                value=self.config_manager.get_settings_summary(),
                inline=False
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Could not send help embed: {e}")
            await self.send_error_response(interaction, "Failed to display help", "❌ Help Error")

    async def handle_play(self, interaction: discord.Interaction):
        """Handle /play command: open a game and post it with a Start button"""
        channel_id = interaction.channel_id
        owner_id = interaction.user.id

        result = self.game_controller.open_game(channel_id, owner_id)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Cannot Start Game")
            return

        view = GameView(self.game_controller, channel_id, owner_id)
        self.game_controller.set_listener(channel_id, view.on_game_event)

        try:
            await interaction.response.send_message(embed=build_game_embed(result['snapshot']), view=view)
            view.game_message = await interaction.original_response()
            self.game_views[channel_id] = view
            logger.info(f"Game posted in channel {channel_id} for user {owner_id}")

        except discord.HTTPException as e:
            logger.error(f"Failed to post game for channel {channel_id}: {e}")
            await self.game_controller.stop_game(channel_id)
            await self.send_error_response(interaction, "Failed to post the game. Please try again.", "❌ Discord Error")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        channel_id = interaction.channel_id

        if not self.game_controller.has_active_game(channel_id):
            await self.send_info_response(interaction, "No game is running in this channel.", "ℹ️ No Game")
            return

        if not self.game_controller.is_owner(channel_id, interaction.user.id):
            await self.send_warning_response(interaction, "Only the player who started the game can stop it.")
            return

        result = await self.game_controller.stop_game(channel_id)
        view = self.game_views.pop(channel_id, None)
        if view is not None:
            await view.close()
        snapshot = result['snapshot']

        embed = discord.Embed(
            title="🛑 Game Stopped",
            description=f"Reached level {snapshot['level']} with {snapshot['stars']} star(s) on the last attempt.",
            color=0xff6600
        )
        try:
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Could not announce stopped game: {e}")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        summary = self.game_controller.get_session_status_summary(interaction.channel_id)
        await self.send_info_response(interaction, summary, "📊 Game Status")

    async def handle_set_timer(self, interaction: discord.Interaction, seconds: int):
        """Handle /set_timer command"""
        result = self.config_manager.set_level_duration(seconds)

        if result['success']:
            await self.send_info_response(
                interaction,
                f"{result['user_message']}\nApplies to games opened from now on.",
                "⏱️ Timer Updated"
            )
        else:
            await self.send_error_response(interaction, result['user_message'], "❌ Invalid Timer")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user, falling back to plain text"""
        embed = discord.Embed(
            title=title,
            description=message,
            color=0xff0000
        )
        embed.set_footer(text="Use /help to see how to play")
        await self._send_ephemeral(interaction, embed, f"{title}: {message}")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send an ephemeral info embed"""
        embed = discord.Embed(
            title=title,
            description=message,
            color=0x6699ff
        )
        await self._send_ephemeral(interaction, embed, f"{title}: {message}")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send an ephemeral warning embed"""
        embed = discord.Embed(
            title=title,
            description=message,
            color=0xffaa00
        )
        await self._send_ephemeral(interaction, embed, f"{title}: {message}")

    async def _send_ephemeral(self, interaction: discord.Interaction, embed: discord.Embed, fallback: str):
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Failed to send embed response: {e}")
            try:
                if interaction.response.is_done():
                    await interaction.followup.send(fallback, ephemeral=True)
                else:
                    await interaction.response.send_message(fallback, ephemeral=True)
            except discord.HTTPException:
                logger.error("Failed to send fallback response message")


async def run_bot(token=None, config=None):
    """Start the bot and make sure it closes on exit"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("Cannot start: DISCORD_BOT_TOKEN is not set and no token was passed")
        return

    bot = MathGameBot(config)

    try:
        logger.info("Starting Star Sums bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Discord rejected the bot token")
    except discord.HTTPException as e:
        logger.error(f"Discord HTTP error while running: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()


if __name__ == "__main__":
    asyncio.run(run_bot())
