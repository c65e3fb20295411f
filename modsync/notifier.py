"""Messages sent to users and to the staff channels."""

import typing as t

import discord
from discord.ext import commands
from loguru import logger

from modsync.constants import Channels, Colors, Roles
from modsync.utils.messages import truncate


class Notifier:
    """Sends direct messages, channel messages, and log embeds."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def direct_message(self, user_id: int, embed: discord.Embed) -> bool:
        """Sends an embed to a user's DMs and returns whether the DM was successful."""
        try:
            user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            await user.send(embed=embed)
            return True
        except discord.HTTPException:
            logger.debug(
                f"A direct message could not be sent to user {user_id}. "
                "The user either could not be retrieved or probably disabled their DMs."
            )
            return False

    async def channel_message(
        self,
        channel_id: int,
        *,
        content: t.Optional[str] = None,
        embed: t.Optional[discord.Embed] = None,
        delete_after: t.Optional[float] = None,
    ) -> t.Optional[discord.Message]:
        """Sends a message to a channel, optionally deleting it after `delete_after` seconds."""
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            logger.warning(f"Can't send a message to channel {channel_id}: channel not found")
            return None

        try:
            return await channel.send(content=content, embed=embed, delete_after=delete_after)
        except discord.HTTPException as error:
            logger.warning(f"Failed to send a message to channel {channel_id}: status {error.status}")
            return None

    async def send_log_message(
        self,
        text: str,
        title: str,
        *,
        color: t.Union[discord.Color, int] = Colors.blurple,
        thumbnail: t.Optional[str] = None,
        channel_id: int = Channels.mod_log,
        ping_moderators: bool = False,
        footer: t.Optional[str] = None,
    ) -> t.Optional[discord.Message]:
        """Generates a log embed and sends it to a logging channel."""
        embed = discord.Embed(description=truncate(text), color=color, timestamp=discord.utils.utcnow())
        embed.set_author(name=title)

        if footer:
            embed.set_footer(text=footer)

        if thumbnail:
            embed.set_thumbnail(url=thumbnail)

        content = f"<@&{Roles.moderators}>" if ping_moderators else None

        return await self.channel_message(channel_id, content=content, embed=embed)

    async def alert(self, title: str, text: str) -> t.Optional[discord.Message]:
        """Reports a problem that needs an operator's attention."""
        logger.warning(f"{title}: {text}")
        return await self.send_log_message(
            text, title, color=Colors.red, channel_id=Channels.alerts, ping_moderators=True
        )
