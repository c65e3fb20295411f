"""Tests for the sync cog's event wiring."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import arrow
import pytest
import pytest_asyncio

from modsync import constants
from modsync.exts.backend.sync import Sync, SyncStatistics
from modsync.lifecycle import RehydrationSummary
from modsync.models import Infraction, InfractionType
from modsync.reconciliation import SyncSummary


def _member(member_id, *role_ids, guild_id=constants.Server.id):
    member = MagicMock(id=member_id, discriminator="0")
    member.name = f"user-{member_id}"
    member.avatar = None
    member.default_avatar.url = "https://cdn.example/default.png"
    member.guild.id = guild_id
    member.roles = []
    for role_id in role_ids:
        role = MagicMock(id=role_id)
        role.is_default.return_value = False
        member.roles.append(role)
    return member


@pytest_asyncio.fixture
async def cog(engine, lifecycle, services):
    bot = MagicMock()
    bot.reconciliation = engine
    bot.lifecycle = lifecycle
    bot.services = services
    bot.wait_until_guild_available = AsyncMock(side_effect=asyncio.Event().wait)

    sync = Sync(bot)
    yield sync
    await sync.cog_unload()


@pytest.mark.asyncio
async def test_run_sync_reports_counts(cog, directory, database, notifier):
    directory.add_role(10)
    directory.add_member(1, 10)
    directory.add_member(2)

    statistics = await cog.run_sync()

    assert statistics.as_dict() == {
        "roles_updated": 1,
        "roles_removed": 0,
        "users_updated": 2,
        "users_absent": 0,
        "infractions_total": 0,
        "infractions_expired_now": 0,
    }
    assert len(statistics.to_embed().fields) == 3
    notifier.alert.assert_not_awaited()


@pytest.mark.asyncio
async def test_member_join_reapplies_infractions(cog, database, directory, lifecycle):
    await lifecycle.create_infraction(InfractionType.MUTE, 1, 99, expires_at=None)
    directory.apply_sanction.reset_mock()

    await cog.on_member_join(_member(1))

    assert (await database.get_user(1)).present is True
    directory.apply_sanction.assert_awaited_once_with(InfractionType.MUTE, 1)


@pytest.mark.asyncio
async def test_other_guilds_are_ignored(cog, database):
    await cog.on_member_join(_member(1, guild_id=1234))

    assert await database.get_user(1) is None


@pytest.mark.asyncio
async def test_member_remove_marks_absent(cog, database, directory):
    await cog.on_member_join(_member(1))

    payload = MagicMock(guild_id=constants.Server.id)
    payload.user.id = 1
    await cog.on_raw_member_remove(payload)

    assert (await database.get_user(1)).present is False


@pytest.mark.asyncio
async def test_concurrent_syncs_expire_once(cog, database, directory):
    infraction = await database.insert_infraction(
        Infraction(
            type=InfractionType.MUTE,
            target_id=1,
            actor_id=99,
            expires_at=arrow.utcnow().shift(minutes=-5).datetime,
        )
    )

    first, second = await asyncio.gather(cog.run_sync(), cog.run_sync())

    assert first.infractions.expired_now + second.infractions.expired_now == 1
    directory.revert_sanction.assert_awaited_once_with(InfractionType.MUTE, 1)
    assert (await database.get_infraction(infraction.id)).active is False


@pytest.mark.asyncio
async def test_sync_command_waits_for_running_pass(cog, directory):
    release = asyncio.Event()
    list_roles = directory.list_roles

    async def slow_list_roles():
        await release.wait()
        return await list_roles()

    directory.list_roles = slow_list_roles

    running = asyncio.create_task(cog.run_sync())
    await asyncio.sleep(0.01)
    assert cog.busy is True

    ctx = MagicMock()
    ctx.send = AsyncMock()
    queued = asyncio.create_task(Sync.sync_command.callback(cog, ctx))
    await asyncio.sleep(0.01)

    ctx.send.assert_awaited_once()
    assert ctx.send.await_args.args[0].startswith(":hourglass:")

    release.set()
    await asyncio.gather(running, queued)

    assert cog.busy is False
    assert "embed" in ctx.send.await_args.kwargs


def test_embed_lists_directory_failures():
    statistics = SyncStatistics(SyncSummary(), RehydrationSummary(total=1, directory_failures=2))

    problems = statistics.to_embed().fields[-1]
    assert problems.name == "Problems"
    assert "**Failed Discord calls:** 2" in problems.value
