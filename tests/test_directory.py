"""Tests for guild access and sanction actions."""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modsync.constants import Roles
from modsync.directory import SANCTIONS, Directory, MemberSnapshot, directory_errors
from modsync.errors import DirectoryForbidden, SanctionTargetUnavailable, TransientDirectoryError
from modsync.models import InfractionType


def _http_error(error_type, status):
    response = MagicMock(status=status, reason="error")
    return error_type(response, "error")


def _role(role_id, default=False):
    role = MagicMock(id=role_id)
    role.is_default.return_value = default
    return role


@pytest.fixture
def member():
    member = MagicMock(id=1, discriminator="0")
    member.name = "someone"
    member.avatar = None
    member.default_avatar.url = "https://cdn.example/default.png"
    member.roles = [_role(100, default=True), _role(10), _role(11)]
    member.add_roles = AsyncMock()
    member.remove_roles = AsyncMock()
    member.kick = AsyncMock()
    return member


@pytest.fixture
def guild(member):
    guild = MagicMock(id=100)
    guild.get_member.return_value = member
    guild.fetch_member = AsyncMock(return_value=member)
    guild.ban = AsyncMock()
    guild.unban = AsyncMock()
    return guild


@pytest.fixture
def directory(guild):
    bot = MagicMock()
    bot.get_guild.return_value = guild
    return Directory(bot, guild.id)


def test_every_type_has_a_sanction():
    assert set(SANCTIONS) == set(InfractionType)


def test_member_snapshot_leaves_out_default_role(member):
    snapshot = MemberSnapshot.from_member(member)

    assert snapshot.role_ids == frozenset({10, 11})
    assert snapshot.avatar_url == "https://cdn.example/default.png"
    assert snapshot.username == "someone"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (_http_error(discord.NotFound, 404), SanctionTargetUnavailable),
        (_http_error(discord.Forbidden, 403), DirectoryForbidden),
        (_http_error(discord.HTTPException, 500), TransientDirectoryError),
    ],
)
def test_directory_errors(error, expected):
    with pytest.raises(expected) as info:
        with directory_errors(1):
            raise error

    assert info.value.target_id == 1


class TestSanctions:
    """Tests for applying and reverting sanctions."""

    @pytest.mark.asyncio
    async def test_mute_adds_role(self, directory, member):
        assert await directory.apply_sanction(InfractionType.MUTE, 1) is True

        role = member.add_roles.await_args.args[0]
        assert role.id == Roles.muted

    @pytest.mark.asyncio
    async def test_unmute_removes_role(self, directory, member):
        assert await directory.revert_sanction(InfractionType.SUPPORT_MUTE, 1) is True

        role = member.remove_roles.await_args.args[0]
        assert role.id == Roles.no_support

    @pytest.mark.asyncio
    async def test_ban_and_unban(self, directory, guild):
        await directory.apply_sanction(InfractionType.BAN, 1)
        await directory.revert_sanction(InfractionType.BAN, 1)

        assert guild.ban.await_args.args[0].id == 1
        assert guild.unban.await_args.args[0].id == 1

    @pytest.mark.asyncio
    async def test_no_action(self, directory, guild):
        assert await directory.apply_sanction(InfractionType.WARN, 1) is False
        assert await directory.revert_sanction(InfractionType.KICK, 1) is False
        guild.ban.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uncached_member_is_fetched(self, directory, guild, member):
        guild.get_member.return_value = None

        await directory.apply_sanction(InfractionType.KICK, 1)

        guild.fetch_member.assert_awaited_once_with(1)
        member.kick.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_member(self, directory, guild):
        guild.get_member.return_value = None
        guild.fetch_member.side_effect = _http_error(discord.NotFound, 404)

        with pytest.raises(SanctionTargetUnavailable):
            await directory.apply_sanction(InfractionType.MUTE, 1)

        assert await directory.get_member(1) is None

    @pytest.mark.asyncio
    async def test_forbidden(self, directory, member):
        member.add_roles.side_effect = _http_error(discord.Forbidden, 403)

        with pytest.raises(DirectoryForbidden):
            await directory.apply_sanction(InfractionType.META_MUTE, 1)

    @pytest.mark.asyncio
    async def test_guild_unavailable(self, directory):
        directory.bot.get_guild.return_value = None

        with pytest.raises(TransientDirectoryError):
            await directory.list_roles()
