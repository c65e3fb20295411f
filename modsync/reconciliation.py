"""Keeps the stored roles, users, and role links in sync with the guild."""

import asyncio
import typing as t
from dataclasses import dataclass, fields

from loguru import logger

from modsync.directory import MemberSnapshot, RoleSnapshot, UserSnapshot
from modsync.errors import StaleExternalRecord
from modsync.models import Role, User
from modsync.services import Services


@dataclass
class SyncSummary:
    """Counts of what a sync pass changed."""

    roles_updated: int = 0
    roles_removed: int = 0
    users_updated: int = 0
    users_absent: int = 0

    # Records skipped because they vanished mid-diff, and records that failed outright.
    stale_records: int = 0
    failed_records: int = 0

    @property
    def changes(self) -> int:
        """The number of roles and users that were written."""
        return self.roles_updated + self.roles_removed + self.users_updated + self.users_absent

    @property
    def problems(self) -> int:
        """The number of records that couldn't be synced."""
        return self.stale_records + self.failed_records

    def as_dict(self) -> dict[str, int]:
        """Returns the counts keyed by field name."""
        return {field.name: getattr(self, field.name) for field in fields(self)}


class ReconciliationEngine:
    """Diffs the guild against the store and writes the difference.

    Full syncs and single-entity updates are serialized by one lock, so a
    diff is never computed against a store that is being written to.
    """

    def __init__(self, services: Services):
        self.database = services.database
        self.directory = services.directory

        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """Whether a sync pass or update is in progress."""
        return self._lock.locked()

    async def full_sync(self) -> SyncSummary:
        """Reconciles every role, user, and role link.

        Roles go first so that the role links written afterwards never point at
        a role that isn't stored.
        """
        async with self._lock:
            summary = SyncSummary()

            logger.debug("Starting full sync")
            await self._sync_roles(summary)
            await self._sync_users(summary)
            logger.debug(f"Full sync done: {summary}")

            return summary

    # Incremental updates

    async def role_updated(self, role: RoleSnapshot) -> bool:
        """Handles a role being created or updated. Returns whether anything was written."""
        logger.debug(f"Role updated: {role.name} ({role.id})")

        async with self._lock:
            return await self._apply_role(role, await self.database.get_role(role.id))

    async def role_deleted(self, role_id: int) -> int:
        """Handles a role being deleted. Returns the number of role links removed."""
        logger.debug(f"Role deleted: {role_id}")

        async with self._lock:
            return await self.database.delete_role(role_id)

    async def member_joined(self, member: MemberSnapshot) -> bool:
        """Handles a member joining the guild."""
        logger.debug(f"Member joined: {member.username} ({member.id})")
        return await self.member_updated(member)

    async def member_updated(self, member: MemberSnapshot) -> bool:
        """Handles a member's profile or roles changing. Returns whether anything was written."""
        logger.debug(f"Member updated: {member.username} ({member.id})")

        async with self._lock:
            stored_user = await self.database.get_user(member.id)
            stored_roles = await self.database.get_user_roles(member.id)

            changed, stale = await self._apply_member(member, stored_user, stored_roles)

        if stale:
            logger.info(f"Skipped {stale} role link(s) to unknown roles for member {member.id}")

        return changed

    async def member_left(self, user_id: int) -> bool:
        """Handles a member leaving the guild. The user is kept but marked absent."""
        logger.debug(f"Member left: {user_id}")

        async with self._lock:
            stored_user = await self.database.get_user(user_id)

            if stored_user is None or not stored_user.present:
                return False

            await self.database.set_user_absent(stored_user)
            return True

    async def user_updated(self, user: UserSnapshot) -> bool:
        """Handles a user's profile changing, whether or not they're a member."""
        logger.debug(f"User updated: {user.username} ({user.id})")

        present = await self.directory.get_member(user.id) is not None

        async with self._lock:
            stored_user = await self.database.get_user(user.id)

            if stored_user is not None and not self._user_differs(user, stored_user, present):
                return False

            await self.database.upsert_user(
                user.id,
                avatar_url=user.avatar_url,
                discriminator=user.discriminator,
                username=user.username,
                present=present,
            )
            return True

    # Single-entity logic shared by full syncs and incremental updates

    async def _apply_role(self, role: RoleSnapshot, stored_role: t.Optional[Role]) -> bool:
        """Stores a role if it's new or its colour or name changed."""
        if stored_role is not None and stored_role.colour == role.colour and stored_role.name == role.name:
            return False

        await self.database.upsert_role(role.id, role.colour, role.name)
        return True

    async def _apply_member(
        self, member: MemberSnapshot, stored_user: t.Optional[User], stored_roles: set[int]
    ) -> tuple[bool, int]:
        """Stores a member and makes their role links match their roles.

        Returns whether anything was written and how many role links were skipped
        because their role isn't stored.
        """
        changed = False
        stale = 0

        if stored_user is None or self._user_differs(member, stored_user, present=True):
            await self.database.upsert_user(
                member.id,
                avatar_url=member.avatar_url,
                discriminator=member.discriminator,
                username=member.username,
                present=True,
            )
            changed = True

        for role_id in member.role_ids - stored_roles:
            try:
                changed |= await self.database.add_user_role(member.id, role_id)
            except StaleExternalRecord as error:
                logger.debug(f"Skipping role link for member {member.id}: {error}")
                stale += 1

        for role_id in stored_roles - member.role_ids:
            changed |= await self.database.remove_user_role(member.id, role_id)

        return changed, stale

    @staticmethod
    def _user_differs(user: UserSnapshot, stored_user: User, present: bool) -> bool:
        """Whether any synced field of a stored user is out of date."""
        return (
            stored_user.avatar_url != user.avatar_url
            or stored_user.discriminator != user.discriminator
            or stored_user.username != user.username
            or stored_user.present != present
        )

    # Full sync stages

    async def _sync_roles(self, summary: SyncSummary) -> None:
        """Adds, updates, and removes stored roles to match the guild."""
        logger.debug("Updating roles: Getting roles from the database and from Discord")
        stored_roles = await self.database.all_roles()
        guild_roles = {role.id: role for role in await self.directory.list_roles()}

        logger.info(f"Syncing {len(guild_roles)} roles.")

        for role_id, role in guild_roles.items():
            try:
                if await self._apply_role(role, stored_roles.get(role_id)):
                    logger.debug(f"Updated role: {role.name} ({role_id})")
                    summary.roles_updated += 1
            except Exception:  # pylint: disable=broad-except
                logger.exception(f"Failed to sync role {role.name} ({role_id})")
                summary.failed_records += 1

        for role_id in stored_roles.keys() - guild_roles.keys():
            try:
                removed_links = await self.database.delete_role(role_id)
            except Exception:  # pylint: disable=broad-except
                logger.exception(f"Failed to remove role {role_id}")
                summary.failed_records += 1
            else:
                logger.debug(f"Removed role {role_id} and {removed_links} role link(s)")
                summary.roles_removed += 1

    async def _sync_users(self, summary: SyncSummary) -> None:
        """Updates stored users and their role links, and marks departed users absent."""
        logger.debug("Updating users: Getting users from the database and from Discord")
        stored_users = await self.database.all_users()
        stored_links = await self.database.all_user_roles()
        members = {member.id: member for member in await self.directory.list_members_with_roles()}

        logger.info(f"Syncing {len(members)} members.")

        for member_id, member in members.items():
            try:
                changed, stale = await self._apply_member(
                    member, stored_users.get(member_id), stored_links.get(member_id, set())
                )
            except Exception:  # pylint: disable=broad-except
                logger.exception(f"Failed to sync member {member.username} ({member_id})")
                summary.failed_records += 1
                continue

            summary.stale_records += stale
            if changed:
                logger.debug(f"Updated user: {member.username} ({member_id})")
                summary.users_updated += 1

        for user_id, stored_user in stored_users.items():
            if user_id in members or not stored_user.present:
                continue

            try:
                await self.database.set_user_absent(stored_user)
            except Exception:  # pylint: disable=broad-except
                logger.exception(f"Failed to mark user {user_id} as absent")
                summary.failed_records += 1
            else:
                logger.debug(f"Marked user {user_id} as absent")
                summary.users_absent += 1
