"""Applying, pardoning, and expiring infractions."""

import textwrap
import typing as t
from collections import Counter
from dataclasses import dataclass
from datetime import datetime

import arrow
import discord
from dateutil.relativedelta import relativedelta
from loguru import logger

from modsync.constants import Channels, Colors, Infractions
from modsync.errors import CorruptScheduleData, DirectoryError, SanctionTargetUnavailable
from modsync.expiry import ExpiryScheduler
from modsync.models import Infraction, InfractionType
from modsync.services import Services
from modsync.utils.messages import format_user_id, truncate
from modsync.utils.time import expiry_delay, format_expiry, humanize_delta

INFRACTION_TITLE = "Please review our rules"
INFRACTION_AUTHOR_NAME = "Infraction information"
INFRACTION_APPEAL_FOOTER = "\nIf you would like to discuss or appeal this infraction, send a message to the ModMail bot."

INFRACTION_DESCRIPTION_TEMPLATE = "**Type:** {type}\n**Expires:** {expires}\n**Reason:** {reason}\n"


@dataclass
class RehydrationSummary:
    """Counts of what rebuilding the expiry timers did."""

    total: int = 0
    expired_now: int = 0
    rescheduled: int = 0
    corrupt: int = 0
    failed: int = 0
    directory_failures: int = 0


class InfractionLifecycleManager:
    """Owns the life of an infraction from application to expiry or pardon.

    An infraction becomes inactive exactly once. The stored record is the source
    of truth: it is kept even when applying or reverting the sanction on Discord
    fails, and such failures are reported to the alerts channel instead.
    """

    def __init__(self, services: Services):
        self.database = services.database
        self.directory = services.directory
        self.notifier = services.notifier

        self.scheduler = ExpiryScheduler(self.expire_infraction)

        # Failed Discord calls, keyed by error class name.
        self.directory_failures: Counter[str] = Counter()

    async def create_infraction(
        self,
        infraction_type: InfractionType,
        target_id: int,
        actor_id: int,
        reason: t.Optional[str] = None,
        expires_at: t.Optional[datetime] = None,
    ) -> tuple[Infraction, bool]:
        """Stores a new infraction, notifies its target, and applies it.

        Returns the infraction and whether the sanction was applied on Discord.
        """
        # pylint: disable=too-many-arguments

        if expires_at is not None and not infraction_type.expires:
            logger.debug(f"Ignoring the expiry given for a {infraction_type.value} infraction")
            expires_at = None

        infraction = await self.database.insert_infraction(
            Infraction(
                type=infraction_type, target_id=target_id, actor_id=actor_id, reason=reason, expires_at=expires_at
            )
        )

        # The target has to be notified while they still share the guild with the bot.
        if infraction_type.relay:
            await self.notify_applied(infraction)

        applied = await self.apply_infraction(infraction, target_id)

        duration = ""
        if expires_at is not None:
            delta = relativedelta(arrow.get(expires_at).datetime, arrow.get(infraction.created_at).datetime)
            duration = f" ({humanize_delta(delta, precision='minutes', max_units=2)})"

        await self.notifier.send_log_message(
            textwrap.dedent(
                f"""
                Member: {format_user_id(target_id)}
                Actor: <@{actor_id}>
                DM: {"Sent" if infraction.sent_dm else "**Failed**"}
                Expires: {format_expiry(expires_at) or "Never"}{duration}
                Reason: {reason or "No reason provided."}
                """
            ),
            f"Infraction {'applied' if applied else 'failed to apply'}: {infraction_type.display_name}",
            color=Colors.red,
            footer=f"ID: {infraction.id}",
        )

        logger.info(f"Applied {infraction_type.value} infraction #{infraction.id} to {target_id}.")
        return infraction, applied

    async def apply_infraction(
        self, infraction: Infraction, target_id: int, expires_override: t.Optional[datetime] = None
    ) -> bool:
        """Applies an infraction's sanction and, for expiring types, schedules its reversal.

        Applying an infraction twice has the same effect on Discord as applying
        it once, and an infraction that already has a timer keeps it. This is
        what makes it safe to call again when a sanctioned member rejoins.

        Returns whether the sanction was applied on Discord.
        """
        logger.trace(f"Applying {infraction.type.value} infraction #{infraction.id} to {target_id}.")

        applied = True
        try:
            await self.directory.apply_sanction(infraction.type, target_id)
        except DirectoryError as error:
            applied = False
            await self._report_directory_failure("apply", infraction, error)

        # A pardon or expiry may have claimed the record while the sanction was being applied.
        stored = await self.database.get_infraction(infraction.id)
        if stored is None or not stored.active:
            logger.debug(f"Infraction #{infraction.id} was deactivated while being applied; reverting it")
            infraction.active = False
            self.scheduler.cancel_undo_infraction(infraction.id)

            if applied:
                await self._revert(infraction, target_id)
            return False

        expires_at = expires_override if expires_override is not None else infraction.expires_at
        if infraction.type.expires and expires_at is not None:
            try:
                await self.scheduler.schedule_undo_infraction(
                    target_id, infraction, expiry_delay(expires_at, infraction.id)
                )
            except CorruptScheduleData as error:
                logger.warning(f"Can't schedule the expiry of infraction #{infraction.id}: {error}")

        return applied

    async def reapply_standing_infractions(self, member_id: int) -> int:
        """Re-applies the active, expiring infractions of a member who rejoined.

        No new infractions are created. Returns the number re-applied.
        """
        infractions = [
            infraction
            for infraction in await self.database.active_infractions_by_user(member_id)
            if infraction.type.expires
        ]

        for infraction in infractions:
            logger.debug(f"Reapplying infraction #{infraction.id} to {member_id}")
            await self.apply_infraction(infraction, member_id)

        return len(infractions)

    async def undo_infraction(
        self, infraction_type: InfractionType, target_id: int, actor_id: t.Optional[int] = None
    ) -> list[Infraction]:
        """Pardons every active infraction of `infraction_type` for a target.

        Returns the infractions that were pardoned; an empty list means there
        was nothing to pardon.
        """
        infractions = await self.database.active_infractions_by_user(target_id, infraction_type)

        if not infractions:
            logger.debug(f"No active {infraction_type.value} infractions to pardon for {target_id}")
            return []

        pardoned = []
        for infraction in infractions:
            if await self._deactivate(infraction, target_id, actor_id):
                pardoned.append(infraction)

        return pardoned

    async def expire_infraction(self, target_id: int, infraction: Infraction) -> bool:
        """Undoes an infraction whose time is up.

        Returns False if it had already been pardoned or expired.
        """
        logger.debug(f"Infraction #{infraction.id} for {target_id} expired")
        return await self._deactivate(infraction, target_id, actor_id=None)

    async def rehydrate(self) -> RehydrationSummary:
        """Rebuilds the expiry timers from the stored infractions.

        Infractions that expired while the bot was offline are undone before this
        returns. The others are rescheduled, and re-applied if their target is in
        the guild. An infraction that can't be loaded or scheduled is skipped.
        """
        summary = RehydrationSummary(total=await self.database.infraction_count())
        failures_before = sum(self.directory_failures.values())
        infraction_ids = await self.database.active_expiring_infraction_ids()

        logger.info(f"Rescheduling {len(infraction_ids)} expiring infraction(s)")

        for infraction_id in infraction_ids:
            try:
                await self._rehydrate_one(infraction_id, summary)
            except CorruptScheduleData as error:
                logger.warning(f"Not rescheduling infraction #{infraction_id}: {error}")
                summary.corrupt += 1
            except Exception:  # pylint: disable=broad-except
                logger.exception(f"Failed to reschedule infraction #{infraction_id}")
                summary.failed += 1

        summary.directory_failures = sum(self.directory_failures.values()) - failures_before

        if summary.corrupt or summary.failed:
            await self.notifier.alert(
                "Infraction expiry rescheduling incomplete",
                f"**Corrupt:** {summary.corrupt} | **Failed:** {summary.failed}\n"
                "These infractions will not expire on their own. Check the logs for their IDs.",
            )

        return summary

    async def _rehydrate_one(self, infraction_id: t.Hashable, summary: RehydrationSummary) -> None:
        """Reschedules or undoes a single stored infraction."""
        infraction = await self.database.get_infraction(infraction_id)
        if infraction is None or not infraction.active:
            return

        target_id = infraction.target_id
        delay = expiry_delay(infraction.expires_at, infraction.id)

        if delay <= 0:
            logger.debug(f"Infraction #{infraction.id} expired while offline")
            await self.scheduler.schedule_undo_infraction(target_id, infraction, explicit_delay=0)
            summary.expired_now += 1
            return

        try:
            member = await self.directory.get_member(target_id)
        except DirectoryError as error:
            logger.debug(f"Couldn't look up {target_id} while rescheduling #{infraction.id}: {error}")
            member = None

        if member is not None:
            logger.debug(f"Reapplying infraction #{infraction.id}")
            await self.apply_infraction(infraction, target_id)
        else:
            await self.scheduler.schedule_undo_infraction(target_id, infraction, delay)

        summary.rescheduled += 1

    def shutdown(self) -> None:
        """Cancels every pending expiry."""
        self.scheduler.cancel_all()

    async def _deactivate(self, infraction: Infraction, target_id: int, actor_id: t.Optional[int]) -> bool:
        """Cancels, deactivates, and reverts an infraction, then tells everyone about it.

        Only the caller that flips the stored record to inactive goes on to
        revert the sanction, so a pardon racing the expiry timer reverts it once.
        """
        self.scheduler.cancel_undo_infraction(infraction.id)

        if not await self.database.deactivate_infraction(infraction.id):
            logger.debug(f"Infraction #{infraction.id} is already inactive")
            return False

        infraction.active = False

        # A rejoin or rehydration may have scheduled a timer between the first cancel and the claim.
        self.scheduler.cancel_undo_infraction(infraction.id)

        reverted = await self._revert(infraction, target_id)

        pardoned = actor_id is not None

        if infraction.type.relay:
            await self.notify_deactivated(infraction, pardoned)

        lines = [
            f"Member: {format_user_id(target_id)}",
            f"Actor: <@{actor_id}>" if pardoned else "Actor: Expiry",
            f"Reason: {infraction.reason or 'No reason provided.'}",
        ]
        if not reverted:
            lines.append("**The sanction could not be reverted on Discord.**")

        await self.notifier.send_log_message(
            "\n".join(lines),
            f"Infraction {'pardoned' if pardoned else 'expired'}: {infraction.type.display_name}",
            color=Colors.green,
            footer=f"ID: {infraction.id}",
        )

        logger.info(f"Deactivated {infraction.type.value} infraction #{infraction.id} for {target_id}")
        return True

    async def _revert(self, infraction: Infraction, target_id: int) -> bool:
        """Reverts an infraction's sanction on Discord. Returns whether it was reverted."""
        try:
            await self.directory.revert_sanction(infraction.type, target_id)
        except SanctionTargetUnavailable:
            logger.info(
                f"Can't revert {infraction.type.value} infraction #{infraction.id} from {target_id}: "
                "target not found. The infraction was deactivated locally."
            )
            return False
        except DirectoryError as error:
            await self._report_directory_failure("revert", infraction, error)
            return False

        return True

    async def notify_applied(self, infraction: Infraction) -> bool:
        """DMs the target of a new infraction. Returns whether the DM was sent."""
        logger.trace(f"Sending {infraction.target_id} a DM about infraction #{infraction.id}.")

        text = INFRACTION_DESCRIPTION_TEMPLATE.format(
            type=infraction.type.display_name,
            expires=format_expiry(infraction.expires_at) or "N/A",
            reason=infraction.reason or "No reason provided.",
        )
        text = truncate(text, 4096 - len(INFRACTION_APPEAL_FOOTER)) + INFRACTION_APPEAL_FOOTER

        embed = discord.Embed(title=INFRACTION_TITLE, description=text, colour=Colors.red)
        embed.set_author(name=INFRACTION_AUTHOR_NAME)
        embed.set_footer(text=f"Infraction ID: {infraction.id}")

        if not await self.notifier.direct_message(infraction.target_id, embed):
            return False

        await self.database.mark_infraction_dm_sent(infraction)
        logger.debug(f"Updated infraction #{infraction.id} sent_dm field to True.")
        return True

    async def notify_deactivated(self, infraction: Infraction, pardoned: bool) -> bool:
        """Tells the target an infraction is over.

        A DM is tried first. If the target doesn't accept DMs, they're mentioned in
        a short-lived message in the bot commands channel instead. Returns whether
        the DM was sent.
        """
        embed = discord.Embed(
            title=f"Infraction {'pardoned' if pardoned else 'expired'}",
            description=(
                f"You are no longer {infraction.type.action_text}.\n\n"
                f"**Infraction Reason:** {infraction.reason or 'No reason provided.'}"
            ),
            colour=Colors.green,
        )
        embed.set_footer(text=f"Infraction ID: {infraction.id}")

        if await self.notifier.direct_message(infraction.target_id, embed):
            return True

        logger.debug(f"Falling back to a channel notice for infraction #{infraction.id}")
        await self.notifier.channel_message(
            Channels.bot_commands,
            content=f"<@{infraction.target_id}>",
            embed=embed,
            delete_after=Infractions.notice_delete_after,
        )
        return False

    async def _report_directory_failure(self, action: str, infraction: Infraction, error: DirectoryError) -> None:
        """Logs a failed Discord call for an infraction and alerts the operators."""
        logger.warning(f"Failed to {action} {infraction.type.value} infraction #{infraction.id}: {error}")
        self.directory_failures[type(error).__name__] += 1

        await self.notifier.alert(
            f"Failed to {action} an infraction",
            f"**Type:** {infraction.type.display_name}\n"
            f"**Member:** {format_user_id(infraction.target_id)}\n"
            f"**Error:** {error}\n"
            f"The infraction record is unaffected.",
        )
