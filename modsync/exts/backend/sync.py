"""Keeping the database in sync with the guild."""

import asyncio
from dataclasses import dataclass

import discord
from discord.ext.commands import Cog, Context, command, has_any_role
from loguru import logger

from modsync import constants
from modsync.bot import ModSyncBot
from modsync.directory import MemberSnapshot, RoleSnapshot, UserSnapshot
from modsync.lifecycle import InfractionLifecycleManager, RehydrationSummary
from modsync.reconciliation import ReconciliationEngine, SyncSummary
from modsync.utils.scheduling import create_task


@dataclass(frozen=True)
class SyncStatistics:
    """The outcome of a full sync, as reported to staff."""

    sync: SyncSummary
    infractions: RehydrationSummary

    def as_dict(self) -> dict[str, int]:
        """Returns the headline counts."""
        return {
            "roles_updated": self.sync.roles_updated,
            "roles_removed": self.sync.roles_removed,
            "users_updated": self.sync.users_updated,
            "users_absent": self.sync.users_absent,
            "infractions_total": self.infractions.total,
            "infractions_expired_now": self.infractions.expired_now,
        }

    def to_embed(self) -> discord.Embed:
        """Renders the statistics for a channel."""
        embed = discord.Embed(title="Sync statistics", colour=constants.Colors.blurple, timestamp=discord.utils.utcnow())

        embed.add_field(
            name="Roles",
            value=f"**Updated:** {self.sync.roles_updated} | **Removed:** {self.sync.roles_removed}",
            inline=False,
        )
        embed.add_field(
            name="Users",
            value=f"**Updated:** {self.sync.users_updated} | **Absent:** {self.sync.users_absent}",
            inline=False,
        )
        embed.add_field(
            name="Infractions",
            value=f"**All:** {self.infractions.total} | **Expired now:** {self.infractions.expired_now}",
            inline=False,
        )

        problems = (
            self.sync.problems
            + self.infractions.corrupt
            + self.infractions.failed
            + self.infractions.directory_failures
        )
        if problems:
            embed.add_field(
                name="Problems",
                value=(
                    f"**Stale records:** {self.sync.stale_records} | **Failed records:** {self.sync.failed_records}\n"
                    f"**Corrupt infractions:** {self.infractions.corrupt} | "
                    f"**Failed infractions:** {self.infractions.failed} | "
                    f"**Failed Discord calls:** {self.infractions.directory_failures}"
                ),
                inline=False,
            )

        return embed


class Sync(Cog):
    """Mirrors roles, members, and role assignments into the database."""

    def __init__(self, bot: ModSyncBot):
        self.bot = bot

        # Serializes whole passes, so two passes never rehydrate at once.
        self._sync_lock = asyncio.Lock()
        self._init_task = create_task(self._async_init(), name="initial_sync")

    @property
    def busy(self) -> bool:
        """Whether a sync pass or update is in progress."""
        return self._sync_lock.locked() or self.engine.busy

    @property
    def engine(self) -> ReconciliationEngine:
        """The reconciliation engine owned by the bot."""
        return self.bot.reconciliation

    @property
    def lifecycle(self) -> InfractionLifecycleManager:
        """The infraction lifecycle manager owned by the bot."""
        return self.bot.lifecycle

    async def _async_init(self) -> None:
        """Runs the first sync once the guild is available and has settled."""
        await self.bot.wait_until_guild_available()

        logger.info(f"Delaying sync for {constants.Sync.settle_delay} seconds.")
        await asyncio.sleep(constants.Sync.settle_delay)
        logger.info("Beginning sync.")

        statistics = await self.run_sync()

        await self.bot.services.notifier.channel_message(
            constants.Channels.action_log, embed=statistics.to_embed()
        )

    async def run_sync(self) -> SyncStatistics:
        """Syncs the database with the guild and rebuilds the infraction expiry timers."""
        async with self._sync_lock:
            summary = await self.engine.full_sync()
            infractions = await self.lifecycle.rehydrate()

        statistics = SyncStatistics(summary, infractions)
        logger.info(f"Sync done: {statistics.as_dict()}")

        if summary.problems:
            await self.bot.services.notifier.alert(
                "Sync incomplete",
                f"**Stale records:** {summary.stale_records} | **Failed records:** {summary.failed_records}\n"
                "Check the logs for details. The next sync will retry these records.",
            )

        return statistics

    @command(name="sync")
    @has_any_role(constants.Roles.admins)
    async def sync_command(self, ctx: Context) -> None:
        """Syncs roles, members, and infractions with the server right away."""
        if self.busy:
            await ctx.send(":hourglass: A sync is already running; this one will start when it's done.")

        async with ctx.typing():
            statistics = await self.run_sync()

        await ctx.send(embed=statistics.to_embed())

    @Cog.listener()
    async def on_guild_role_create(self, role: discord.Role) -> None:
        """Stores a new role."""
        if role.guild.id != constants.Server.id:
            return

        await self.engine.role_updated(RoleSnapshot.from_role(role))

    @Cog.listener()
    async def on_guild_role_update(self, before: discord.Role, after: discord.Role) -> None:
        """Stores a changed role."""
        if after.guild.id != constants.Server.id:
            return

        await self.engine.role_updated(RoleSnapshot.from_role(after))

    @Cog.listener()
    async def on_guild_role_delete(self, role: discord.Role) -> None:
        """Removes a deleted role and every link to it."""
        if role.guild.id != constants.Server.id:
            return

        await self.engine.role_deleted(role.id)

    @Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        """Stores a new member and re-applies any infractions they were still serving."""
        if member.guild.id != constants.Server.id:
            return

        await self.engine.member_joined(MemberSnapshot.from_member(member))

        if reapplied := await self.lifecycle.reapply_standing_infractions(member.id):
            logger.info(f"Reapplied {reapplied} infraction(s) to rejoining member {member} ({member.id})")

    @Cog.listener()
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        """Stores a member's new profile or roles."""
        if after.guild.id != constants.Server.id:
            return

        await self.engine.member_updated(MemberSnapshot.from_member(after))

    @Cog.listener()
    async def on_raw_member_remove(self, payload: discord.RawMemberRemoveEvent) -> None:
        """Marks a departed member as absent, whether or not they were cached."""
        if payload.guild_id != constants.Server.id:
            return

        await self.engine.member_left(payload.user.id)

    @Cog.listener()
    async def on_user_update(self, before: discord.User, after: discord.User) -> None:
        """Stores a user's new profile."""
        await self.engine.user_updated(UserSnapshot.from_user(after))

    async def cog_unload(self) -> None:
        """Cancels the initial sync if it hasn't run yet."""
        self._init_task.cancel()


async def setup(bot: ModSyncBot) -> None:
    """Loads the sync cog."""
    await bot.add_cog(Sync(bot))
