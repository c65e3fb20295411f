"""Access to the guild: membership snapshots and sanction actions."""

from __future__ import annotations

import typing as t
from contextlib import contextmanager
from dataclasses import dataclass, field

import discord
from discord.ext import commands
from loguru import logger

from modsync.constants import Roles
from modsync.errors import DirectoryForbidden, SanctionTargetUnavailable, TransientDirectoryError
from modsync.models import InfractionType


def _avatar_url(user: discord.abc.User) -> str:
    """Returns the account avatar of a user, ignoring any guild-specific avatar."""
    return user.avatar.url if user.avatar else user.default_avatar.url


@dataclass(frozen=True)
class RoleSnapshot:
    """The synced fields of a guild role."""

    id: int
    colour: int
    name: str

    @classmethod
    def from_role(cls, role: discord.Role) -> RoleSnapshot:
        """Takes a snapshot of a discord.py role."""
        return cls(id=role.id, colour=role.colour.value, name=role.name)


@dataclass(frozen=True)
class UserSnapshot:
    """The synced fields of a Discord user."""

    id: int
    avatar_url: t.Optional[str]
    discriminator: str
    username: str

    @classmethod
    def from_user(cls, user: discord.abc.User) -> UserSnapshot:
        """Takes a snapshot of a discord.py user or member."""
        return cls(
            id=user.id,
            avatar_url=_avatar_url(user),
            discriminator=user.discriminator,
            username=user.name,
        )


@dataclass(frozen=True)
class MemberSnapshot(UserSnapshot):
    """A user along with the roles they hold in the guild."""

    role_ids: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def from_member(cls, member: discord.Member) -> MemberSnapshot:
        """Takes a snapshot of a discord.py member, leaving out the @everyone role."""
        return cls(
            id=member.id,
            avatar_url=_avatar_url(member),
            discriminator=member.discriminator,
            username=member.name,
            role_ids=frozenset(role.id for role in member.roles if not role.is_default()),
        )


SanctionAction = t.Callable[[discord.Guild, int], t.Awaitable[None]]


@dataclass(frozen=True)
class Sanction:
    """How an infraction type is applied to and reverted from a target.

    A missing action means the type has no effect on Discord in that direction.
    """

    apply: t.Optional[SanctionAction] = None
    revert: t.Optional[SanctionAction] = None


async def _resolve_member(guild: discord.Guild, target_id: int) -> discord.Member:
    """Gets a member from the cache, falling back to the API."""
    member = guild.get_member(target_id)
    if member is not None:
        return member

    return await guild.fetch_member(target_id)


async def _ban(guild: discord.Guild, target_id: int) -> None:
    await guild.ban(discord.Object(target_id), reason="Infraction applied", delete_message_seconds=0)


async def _unban(guild: discord.Guild, target_id: int) -> None:
    await guild.unban(discord.Object(target_id), reason="Infraction pardoned or expired")


async def _kick(guild: discord.Guild, target_id: int) -> None:
    member = await _resolve_member(guild, target_id)
    await member.kick(reason="Infraction applied")


def _role_sanction(role_id: int) -> Sanction:
    """Builds a sanction that adds a role on apply and removes it on revert."""

    async def apply(guild: discord.Guild, target_id: int) -> None:
        member = await _resolve_member(guild, target_id)
        await member.add_roles(discord.Object(role_id), reason="Infraction applied")

    async def revert(guild: discord.Guild, target_id: int) -> None:
        member = await _resolve_member(guild, target_id)
        await member.remove_roles(discord.Object(role_id), reason="Infraction pardoned or expired")

    return Sanction(apply, revert)


SANCTIONS: dict[InfractionType, Sanction] = {
    InfractionType.BAN: Sanction(_ban, _unban),
    InfractionType.KICK: Sanction(_kick),
    InfractionType.MUTE: _role_sanction(Roles.muted),
    InfractionType.META_MUTE: _role_sanction(Roles.no_meta),
    InfractionType.REACTION_MUTE: _role_sanction(Roles.no_reactions),
    InfractionType.REQUESTS_MUTE: _role_sanction(Roles.no_requests),
    InfractionType.SUPPORT_MUTE: _role_sanction(Roles.no_support),
    InfractionType.WARN: Sanction(),
    InfractionType.NOTE: Sanction(),
}


@contextmanager
def directory_errors(target_id: int) -> t.Iterator[None]:
    """Translates discord.py HTTP errors into `DirectoryError`s."""
    try:
        yield
    except discord.NotFound as error:
        raise SanctionTargetUnavailable(target_id) from error
    except discord.Forbidden as error:
        raise DirectoryForbidden(target_id) from error
    except discord.HTTPException as error:
        raise TransientDirectoryError(target_id, error.status) from error


class Directory:
    """The guild, seen as the authoritative source of membership."""

    def __init__(self, bot: commands.Bot, guild_id: int):
        self.bot = bot
        self.guild_id = guild_id

    @property
    def guild(self) -> discord.Guild:
        """The guild being synced."""
        guild = self.bot.get_guild(self.guild_id)
        if guild is None:
            raise TransientDirectoryError(self.guild_id)
        return guild

    async def list_roles(self) -> list[RoleSnapshot]:
        """Returns every role in the guild."""
        return [RoleSnapshot.from_role(role) for role in self.guild.roles]

    async def list_members_with_roles(self) -> list[MemberSnapshot]:
        """Returns every member of the guild along with their roles."""
        return [MemberSnapshot.from_member(member) for member in self.guild.members]

    async def get_member(self, member_id: int) -> t.Optional[MemberSnapshot]:
        """Returns a member of the guild, or None if they aren't one."""
        try:
            with directory_errors(member_id):
                member = await _resolve_member(self.guild, member_id)
        except SanctionTargetUnavailable:
            return None

        return MemberSnapshot.from_member(member)

    async def get_user(self, user_id: int) -> t.Optional[UserSnapshot]:
        """Returns any Discord user, or None if they don't exist."""
        user = self.bot.get_user(user_id)
        if user is None:
            try:
                with directory_errors(user_id):
                    user = await self.bot.fetch_user(user_id)
            except SanctionTargetUnavailable:
                return None

        return UserSnapshot.from_user(user)

    async def apply_sanction(self, infraction_type: InfractionType, target_id: int) -> bool:
        """Applies an infraction type to a target.

        Applying a sanction the target already has is harmless. Returns False if
        the type has nothing to apply.
        """
        action = SANCTIONS[infraction_type].apply
        if action is None:
            return False

        logger.trace(f"Applying {infraction_type.value} sanction to {target_id}")
        with directory_errors(target_id):
            await action(self.guild, target_id)

        return True

    async def revert_sanction(self, infraction_type: InfractionType, target_id: int) -> bool:
        """Reverts an infraction type from a target.

        Returns False if the type has nothing to revert.
        """
        action = SANCTIONS[infraction_type].revert
        if action is None:
            return False

        logger.trace(f"Reverting {infraction_type.value} sanction from {target_id}")
        with directory_errors(target_id):
            await action(self.guild, target_id)

        return True
