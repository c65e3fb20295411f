"""The main interface for the bot."""

from loguru import logger

from modsync import constants
from modsync.bot import ModSyncBot

if not constants.Bot.token:
    logger.critical("The TOKEN environment variable must be set")
    raise SystemExit(1)

instance = ModSyncBot.create()
instance.run(constants.Bot.token)
