#!/usr/bin/env python3
"""
Quiz Session Bot entry point.

Reads config.json (or the file named by QUIZ_BOT_CONFIG), configures logging
and starts the Discord client with timed quiz sessions.

Usage:
    python main.py

Environment Variables:
    DISCORD_BOT_TOKEN: Bot token, used instead of bot.token in the config file
    QUIZ_BOT_CONFIG: Path of the config file, defaults to ./config.json
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


class StartupError(Exception):
    """Raised when the bot cannot be started from the given configuration."""
    pass


def config_path_from_env() -> Path:
    return Path(os.getenv('QUIZ_BOT_CONFIG', DEFAULT_CONFIG_PATH))


def load_config(config_path: Path) -> dict:
    """Read the JSON config file into a dict."""
    if not config_path.exists():
        raise StartupError(f"{config_path} not found. Create it from the bundled config.json and set the bot token.")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise StartupError(f"{config_path} is not valid JSON: {e}") from e
    except OSError as e:
        raise StartupError(f"Could not read {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise StartupError(f"{config_path} must contain a JSON object")
    return config


def get_bot_token(config: dict) -> str:
    token = os.getenv('DISCORD_BOT_TOKEN')
    if token:
        return token

    token = config.get('bot', {}).get('token')
    if not token or token == TOKEN_PLACEHOLDER:
        raise StartupError("No bot token: set DISCORD_BOT_TOKEN or bot.token in the config file")
    return token


def setup_logging_from_config(config: dict) -> Path:
    """
    Send logs to the console, bot.log and errors.log.

    Returns:
        Directory the log files are written to
    """
    log_config = config.get('logging', {})
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    error_handler = logging.FileHandler(log_directory / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(error_handler)

    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)
    return log_directory


def describe_startup(config: dict) -> str:
    quiz_config = config.get('quiz', {})
    count = quiz_config.get('default_question_count')
    return (
        f"quizzes from {quiz_config.get('quiz_directory', './quizzes/')}, "
        f"{'all' if count is None else count} questions per session, "
        f"timer {'on' if quiz_config.get('timer_enabled', True) else 'off'}"
    )


async def run_bot_with_config(config_path: Path):
    config = load_config(config_path)
    log_directory = setup_logging_from_config(config)
    token = get_bot_token(config)

    logger = logging.getLogger(__name__)
    logger.info(f"Starting with {describe_startup(config)}; logs in {log_directory}")

    from quizsession.bot import run_bot
    await run_bot(token, config)


if __name__ == "__main__":
    print("🤖 Starting Quiz Session Bot...")
    try:
        asyncio.run(run_bot_with_config(config_path_from_env()))
    except StartupError as e:
        print(f"❌ {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n👋 Quiz Session Bot stopped")
