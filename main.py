#!/usr/bin/env python3
"""
Star Sums - Main Entry Point

Runs the Star Sums Discord bot.

Usage:
    python main.py [path/to/config.json]

The bot token is read from DISCORD_BOT_TOKEN, falling back to the "bot.token"
field of the config file. Level timing lives in the "game" section and log
output in the "logging" section.
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path

DEFAULT_CONFIG_PATH = "config.json"
TOKEN_PLACEHOLDER = "YOUR_DISCORD_BOT_TOKEN_HERE"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _fail(message):
    print(f"❌ {message}")
    sys.exit(1)


def load_config(config_path=DEFAULT_CONFIG_PATH):
    """Read the JSON config file, exiting with a message if it is unusable."""
    path = Path(config_path)

    if not path.is_file():
        _fail(f"Config file {path} not found. Copy config.json next to main.py and add your token.")

    try:
        with path.open('r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        _fail(f"{path} is not valid JSON (line {e.lineno}): {e.msg}")
    except OSError as e:
        _fail(f"Could not read {path}: {e}")

    if not isinstance(config, dict):
        _fail(f"{path} must contain a JSON object")

    return config


def get_bot_token(config):
    """DISCORD_BOT_TOKEN wins over the token in the config file."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')

    if not token or token == TOKEN_PLACEHOLDER:
        _fail(
            "No Discord bot token configured. Set DISCORD_BOT_TOKEN "
            "or fill in bot.token in the config file."
        )

    return token


def setup_logging_from_config(config):
    """Log to stderr and to <log_directory>/star_sums.log."""
    log_config = config.get('logging', {})
    level_name = str(log_config.get('level', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "star_sums.log", encoding='utf-8')
        ]
    )

    # Gateway and HTTP chatter only above warning level
    for name in ('discord', 'discord.http', 'discord.gateway'):
        logging.getLogger(name).setLevel(logging.WARNING)


async def run_bot_with_config(config_path=DEFAULT_CONFIG_PATH):
    """Load config, configure logging and run the bot until it disconnects."""
    config = load_config(config_path)
    setup_logging_from_config(config)
    token = get_bot_token(config)

    from star_sums.bot import run_bot
    await run_bot(token, config)


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG_PATH
    try:
        print("⭐ Starting Star Sums...")
        asyncio.run(run_bot_with_config(path))
    except KeyboardInterrupt:
        print("\n👋 Star Sums stopped")
