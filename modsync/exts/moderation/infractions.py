"""Infraction commands."""

from typing import Optional

import arrow
import discord
from discord.ext.commands import Cog, Context, MissingAnyRole, command, has_any_role
from loguru import logger

from modsync.bot import ModSyncBot
from modsync.constants import MODERATION_ROLES, TRAINEE_ROLES
from modsync.converters import Duration, InfractionTypeConverter
from modsync.lifecycle import InfractionLifecycleManager
from modsync.models import InfractionType
from modsync.utils.time import format_expiry

Target = discord.Member | discord.User


class Infractions(Cog):
    """Applying and pardoning infractions."""

    def __init__(self, bot: ModSyncBot):
        self.bot = bot

    @property
    def lifecycle(self) -> InfractionLifecycleManager:
        """The infraction lifecycle manager owned by the bot."""
        return self.bot.lifecycle

    @staticmethod
    def _ensure_allowed(ctx: Context, infraction_type: InfractionType) -> None:
        """Raises `MissingAnyRole` if a trainee tries to use a type reserved for moderators."""
        if not infraction_type.not_for_trainees:
            return

        if not any(role.id in MODERATION_ROLES for role in getattr(ctx.author, "roles", ())):
            raise MissingAnyRole(list(MODERATION_ROLES))

    async def apply(
        self,
        ctx: Context,
        infraction_type: InfractionType,
        user: Target,
        expires_at: Optional[arrow.Arrow] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Creates an infraction and reports the outcome to the invoking context."""
        # pylint: disable=too-many-arguments

        self._ensure_allowed(ctx, infraction_type)

        if infraction_type.expires and await self.lifecycle.database.active_infractions_by_user(
            user.id, infraction_type
        ):
            await ctx.send(f":x: {user.mention} already has an active **{infraction_type.display_name}** infraction.")
            return

        infraction, applied = await self.lifecycle.create_infraction(
            infraction_type,
            user.id,
            ctx.author.id,
            reason=reason,
            expires_at=expires_at.datetime if expires_at is not None else None,
        )

        dm_result = ":incoming_envelope: " if infraction.sent_dm else ""

        if not applied:
            await ctx.send(
                f"{dm_result}:x: failed to apply **{infraction_type.display_name}** to {user.mention}. "
                "The infraction was recorded; see the alerts channel."
            )
            return

        if not infraction_type.expires:
            expiry_message = ""
        elif infraction.expires_at is not None:
            expiry_message = f" until {format_expiry(infraction.expires_at)}"
        else:
            expiry_message = " permanently"

        await ctx.send(
            f"{dm_result}:ok_hand: applied **{infraction_type.display_name}** to {user.mention}{expiry_message} "
            f"(`{infraction.id}`)."
        )

    async def pardon_infraction(self, ctx: Context, infraction_type: InfractionType, user: Target) -> None:
        """Pardons a user's active infractions of a type and reports the outcome."""
        self._ensure_allowed(ctx, infraction_type)

        pardoned = await self.lifecycle.undo_infraction(infraction_type, user.id, actor_id=ctx.author.id)

        if not pardoned:
            await ctx.send(f":x: There's no active **{infraction_type.display_name}** infraction for {user.mention}.")
            return

        ids = ", ".join(f"`{infraction.id}`" for infraction in pardoned)
        logger.debug(f"{ctx.author} pardoned {infraction_type.value} infraction(s) {ids} for {user.id}")
        await ctx.send(f":ok_hand: pardoned **{infraction_type.display_name}** for {user.mention} ({ids}).")

    # Applying

    @command()
    async def warn(self, ctx: Context, user: discord.Member, *, reason: str) -> None:
        """Warns a member for a given reason."""
        await self.apply(ctx, InfractionType.WARN, user, reason=reason)

    @command()
    async def note(self, ctx: Context, user: discord.User, *, reason: str) -> None:
        """Records a note about a user without telling them."""
        await self.apply(ctx, InfractionType.NOTE, user, reason=reason)

    @command()
    async def kick(self, ctx: Context, user: discord.Member, *, reason: Optional[str] = None) -> None:
        """Kicks a member for a given reason."""
        await self.apply(ctx, InfractionType.KICK, user, reason=reason)

    @command()
    async def ban(
        self, ctx: Context, user: discord.User, duration: Optional[Duration] = None, *, reason: Optional[str] = None
    ) -> None:
        """Bans a user, permanently unless a duration is given.

        A unit of time should be appended to the duration, like `2d` or `1w`.
        """
        await self.apply(ctx, InfractionType.BAN, user, duration, reason)

    @command()
    async def mute(
        self, ctx: Context, user: discord.Member, duration: Optional[Duration] = None, *, reason: Optional[str] = None
    ) -> None:
        """Mutes a member, permanently unless a duration is given."""
        await self.apply(ctx, InfractionType.MUTE, user, duration, reason)

    @command(aliases=["meta_mute"])
    async def metamute(
        self, ctx: Context, user: discord.Member, duration: Optional[Duration] = None, *, reason: Optional[str] = None
    ) -> None:
        """Stops a member from talking in the meta channel."""
        await self.apply(ctx, InfractionType.META_MUTE, user, duration, reason)

    @command(aliases=["reaction_mute"])
    async def reactionmute(
        self, ctx: Context, user: discord.Member, duration: Optional[Duration] = None, *, reason: Optional[str] = None
    ) -> None:
        """Stops a member from adding reactions."""
        await self.apply(ctx, InfractionType.REACTION_MUTE, user, duration, reason)

    @command(aliases=["requests_mute"])
    async def requestsmute(
        self, ctx: Context, user: discord.Member, duration: Optional[Duration] = None, *, reason: Optional[str] = None
    ) -> None:
        """Stops a member from talking in the requests channel."""
        await self.apply(ctx, InfractionType.REQUESTS_MUTE, user, duration, reason)

    @command(aliases=["support_mute"])
    async def supportmute(
        self, ctx: Context, user: discord.Member, duration: Optional[Duration] = None, *, reason: Optional[str] = None
    ) -> None:
        """Stops a member from talking in the support channels."""
        await self.apply(ctx, InfractionType.SUPPORT_MUTE, user, duration, reason)

    # Pardoning

    @command()
    async def unban(self, ctx: Context, user: discord.User) -> None:
        """Lifts a user's ban."""
        await self.pardon_infraction(ctx, InfractionType.BAN, user)

    @command()
    async def unmute(self, ctx: Context, user: discord.User) -> None:
        """Lifts a member's mute."""
        await self.pardon_infraction(ctx, InfractionType.MUTE, user)

    @command(aliases=["unmeta_mute"])
    async def unmetamute(self, ctx: Context, user: discord.User) -> None:
        """Lets a member talk in the meta channel again."""
        await self.pardon_infraction(ctx, InfractionType.META_MUTE, user)

    @command(aliases=["unreaction_mute"])
    async def unreactionmute(self, ctx: Context, user: discord.User) -> None:
        """Lets a member add reactions again."""
        await self.pardon_infraction(ctx, InfractionType.REACTION_MUTE, user)

    @command(aliases=["unrequests_mute"])
    async def unrequestsmute(self, ctx: Context, user: discord.User) -> None:
        """Lets a member talk in the requests channel again."""
        await self.pardon_infraction(ctx, InfractionType.REQUESTS_MUTE, user)

    @command(aliases=["unsupport_mute"])
    async def unsupportmute(self, ctx: Context, user: discord.User) -> None:
        """Lets a member talk in the support channels again."""
        await self.pardon_infraction(ctx, InfractionType.SUPPORT_MUTE, user)

    @command()
    async def pardon(self, ctx: Context, infraction_type: InfractionTypeConverter, user: discord.User) -> None:
        """Pardons a user's active infractions of any type, like `pardon warn @user`."""
        await self.pardon_infraction(ctx, infraction_type, user)

    async def cog_check(self, ctx: Context) -> bool:
        """Only allow moderators and trainee moderators to invoke the commands in this cog."""
        # pylint: disable=invalid-overridden-method

        return await has_any_role(*TRAINEE_ROLES).predicate(ctx)


async def setup(bot: ModSyncBot) -> None:
    """Loads the infractions cog."""
    await bot.add_cog(Infractions(bot))
