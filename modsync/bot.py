"""Our custom instance of discord.ext.commands.Bot."""

from __future__ import annotations

from asyncio import Event
from typing import Optional

from discord import Activity, ActivityType, AllowedMentions, Guild, Intents
from discord.ext import commands
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

from modsync import constants
from modsync.database import Database
from modsync.directory import Directory
from modsync.lifecycle import InfractionLifecycleManager
from modsync.notifier import Notifier
from modsync.reconciliation import ReconciliationEngine
from modsync.services import Services


class ModSyncBot(commands.Bot):
    """Our custom instance of discord.ext.commands.Bot."""

    # pylint: disable=abstract-method,too-many-ancestors

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        self.mongo_client: Optional[AsyncIOMotorClient] = None

        self.services: Optional[Services] = None
        self.reconciliation: Optional[ReconciliationEngine] = None
        self.lifecycle: Optional[InfractionLifecycleManager] = None

        self._guild_available = Event()

    @classmethod
    def create(cls) -> ModSyncBot:
        """Creates an instance of the bot."""
        activity = Activity(name="the member list", type=ActivityType.watching)

        return cls(
            command_prefix=commands.when_mentioned_or(constants.Bot.prefix),
            activity=activity,
            case_insensitive=True,
            allowed_mentions=AllowedMentions(everyone=False),
            intents=Intents.all(),
        )

    async def setup_hook(self) -> None:
        """Connects to the database, builds the components, and loads extensions."""
        self.mongo_client = AsyncIOMotorClient(constants.Database.uri)

        database = Database(self.mongo_client[constants.Database.name])
        await database.init()

        self.services = Services(
            database=database,
            directory=Directory(self, constants.Server.id),
            notifier=Notifier(self),
        )
        self.reconciliation = ReconciliationEngine(self.services)
        self.lifecycle = InfractionLifecycleManager(self.services)

        await self.load_extensions()

    async def load_extensions(self) -> None:
        """Loads all extensions."""
        # This is done here to avoid circular imports.
        from modsync.utils.extensions import EXTENSIONS  # pylint: disable=import-outside-toplevel

        for extension in sorted(EXTENSIONS):
            logger.debug(f"Loading extension {extension}")
            await self.load_extension(extension)

    async def close(self) -> None:
        """Cancels pending expiries and closes the database connection before logging out."""
        if self.lifecycle is not None:
            self.lifecycle.shutdown()

        if self.mongo_client is not None:
            self.mongo_client.close()

        await super().close()

    async def on_guild_available(self, guild: Guild) -> None:
        """
        Set the internal guild available event when constants.Server.id becomes available.
        If the cache appears to still be empty (no members, no channels, or no roles), the event
        will not be set.
        """
        if guild.id != constants.Server.id:
            return

        if not guild.roles or not guild.members or not guild.channels:
            logger.warning("Guild available event was dispatched but the cache appears to still be empty!")
            return

        self._guild_available.set()

    async def on_guild_unavailable(self, guild: Guild) -> None:
        """Clear the internal guild available event when constants.Server.id becomes unavailable."""
        if guild.id != constants.Server.id:
            return

        self._guild_available.clear()

    async def wait_until_guild_available(self) -> None:
        """Waits until the guild is available and the cache is ready.

        The on_ready event is inadequate because it only waits 2 seconds for a
        GUILD_CREATE gateway event before giving up and thus not populating the
        cache for unavailable guilds.
        """
        await self._guild_available.wait()

    async def on_connect(self):
        """Logs when the bot connects to Discord."""
        logger.info(f"Connected to Discord as {self.user}")

    async def on_ready(self) -> None:
        """Logs when the bot is ready."""
        logger.info("Bot is ready")

    async def on_disconnect(self) -> None:
        """Logs when the bot disconnects from Discord."""
        logger.critical("Disconnected from Discord")

    async def on_resumed(self) -> None:
        """Logs when the bot resumes from a disconnection."""
        logger.info("Resumed Discord session")
