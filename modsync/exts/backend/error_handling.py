"""Command error handling."""

from discord import Message
from discord.ext.commands import Cog, Context, errors
from loguru import logger

from modsync.bot import ModSyncBot
from modsync.errors import DirectoryError, DirectoryForbidden, SanctionTargetUnavailable
from modsync.utils.messages import send_denial


class ErrorHandling(Cog):
    """The command error handler for the bot."""

    def __init__(self, bot: ModSyncBot):
        self.bot = bot

    @staticmethod
    async def _send_error_embed(ctx: Context, title: str, body: str) -> Message:
        """Sends an error embed to the channel."""
        return await send_denial(ctx, f"**{title}**\n{body}")

    @Cog.listener()
    async def on_command_error(self, ctx: Context, error: errors.CommandError) -> None:
        """Handles errors that occur while executing a command."""
        command = ctx.command

        if getattr(error, "handled", False):
            logger.trace(f"Command {command}'s error was already handled locally.")
            return

        debug_message = f"Command {command} invoked by {ctx.author} with error {error.__class__.__name__}: {error}"

        if isinstance(error, errors.UserInputError):
            logger.debug(debug_message)
            await self.handle_user_input_error(ctx, error)
        elif isinstance(error, errors.CheckFailure):
            logger.debug(debug_message)
            await self.handle_check_failure(ctx, error)
        elif isinstance(error, errors.CommandNotFound):
            logger.debug(f"Unknown command invoked by {ctx.author}: {ctx.message.content}")
        elif isinstance(error, errors.CommandInvokeError) and isinstance(error.original, DirectoryError):
            logger.debug(debug_message)
            await self.handle_directory_error(ctx, error.original)
        elif isinstance(error, errors.CommandInvokeError | errors.ConversionError):
            await self.handle_unexpected_error(ctx, error.original)
        elif isinstance(error, errors.DisabledCommand):
            logger.debug(debug_message)
        else:
            await self.handle_unexpected_error(ctx, error)

    async def handle_user_input_error(self, ctx: Context, error: errors.UserInputError) -> None:
        """Handles errors that occur while parsing user input."""
        if isinstance(error, errors.MissingRequiredArgument):
            await self._send_error_embed(ctx, "Missing required argument", error.param.name)
        elif isinstance(error, errors.TooManyArguments):
            await self._send_error_embed(ctx, "Too many arguments", str(error))
        elif isinstance(error, errors.BadUnionArgument):
            await self._send_error_embed(ctx, "Bad argument", f"{error}\n{error.errors[-1]}")
        elif isinstance(error, errors.BadArgument):
            await self._send_error_embed(ctx, "Bad argument", str(error))
        elif isinstance(error, errors.ArgumentParsingError):
            await self._send_error_embed(ctx, "Argument parsing error", str(error))
        else:
            await send_denial(ctx, "Something about your input seems off. Check the arguments and try again.")

    @staticmethod
    async def handle_check_failure(ctx: Context, error: errors.CheckFailure) -> None:
        """Handles check failures."""
        bot_missing_errors = errors.BotMissingPermissions | errors.BotMissingRole | errors.BotMissingAnyRole
        user_missing_errors = errors.MissingPermissions | errors.MissingRole | errors.MissingAnyRole

        if isinstance(error, bot_missing_errors):
            logger.opt(exception=error).warning(
                f"Missing permissions to execute command invoked by {ctx.author}: {ctx.message.content}"
            )
            await ctx.send("Sorry, it looks like I don't have the permissions or roles I need to do that.")
        elif isinstance(error, user_missing_errors):
            logger.debug(f"User {ctx.author} missing permissions to invoke command: {ctx.message.content}")
            await send_denial(ctx, "You don't have the permissions or roles you need to do that.")
        elif isinstance(error, errors.NoPrivateMessage):
            logger.debug(f"User {ctx.author} tried to invoke command in DM: {ctx.message.content}")
            await send_denial(ctx, "Sorry, I can't do that in DMs.")
        else:
            await send_denial(ctx, str(error) or "You can't use that command here.")

    async def handle_directory_error(self, ctx: Context, error: DirectoryError) -> None:
        """Handles a failed Discord call that a command made on purpose."""
        if isinstance(error, SanctionTargetUnavailable):
            await self._send_error_embed(ctx, "User not found", f"I couldn't find <@{error.target_id}> on Discord.")
        elif isinstance(error, DirectoryForbidden):
            await self._send_error_embed(ctx, "Missing permissions", "I'm not allowed to do that to this user.")
        else:
            logger.warning(f"Discord call failed for command invoked by {ctx.author}: {error}")
            await self._send_error_embed(ctx, "Discord is having trouble", "Please try again in a moment.")

    async def handle_unexpected_error(self, ctx: Context, error: Exception) -> None:
        """Handles unexpected errors."""
        logger.opt(exception=error).error(f"Error executing command invoked by {ctx.author}: {ctx.message.content}")

        await self._send_error_embed(
            ctx,
            "An unexpected error occurred. Please let us know!",
            f"```{error.__class__.__name__}: {error}```",
        )


async def setup(bot: ModSyncBot) -> None:
    """Loads the error handling cog."""
    await bot.add_cog(ErrorHandling(bot))
