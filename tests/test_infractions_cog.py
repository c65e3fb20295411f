"""Tests for the infraction commands."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import arrow
import pytest
from discord.ext.commands import MissingAnyRole

from modsync.constants import Roles
from modsync.errors import DirectoryForbidden
from modsync.exts.moderation import infractions
from modsync.exts.moderation.infractions import Infractions
from modsync.models import InfractionType


def _ctx(role_id=Roles.moderators):
    author = SimpleNamespace(id=99, roles=[SimpleNamespace(id=role_id)])
    return SimpleNamespace(author=author, send=AsyncMock())


@pytest.fixture
def cog(lifecycle):
    return Infractions(SimpleNamespace(lifecycle=lifecycle))


@pytest.fixture
def user():
    return SimpleNamespace(id=1, mention="<@1>")


@pytest.mark.asyncio
async def test_setup_registers_cog(lifecycle):
    bot = SimpleNamespace(lifecycle=lifecycle, add_cog=AsyncMock())

    await infractions.setup(bot)

    bot.add_cog.assert_awaited_once()
    assert isinstance(bot.add_cog.await_args.args[0], Infractions)


class TestTraineeGating:
    """Tests for the types trainees can't hand out."""

    @pytest.mark.asyncio
    async def test_trainee_cannot_ban(self, cog, user, database, directory):
        ctx = _ctx(Roles.trainee_moderators)

        with pytest.raises(MissingAnyRole):
            await Infractions.ban.callback(cog, ctx, user, None, reason="raiding")

        assert await database.infraction_count() == 0
        directory.apply_sanction.assert_not_awaited()
        ctx.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_trainee_cannot_unban(self, cog, user, lifecycle, directory):
        await lifecycle.create_infraction(InfractionType.BAN, 1, 42)
        ctx = _ctx(Roles.trainee_moderators)

        with pytest.raises(MissingAnyRole):
            await Infractions.unban.callback(cog, ctx, user)

        directory.revert_sanction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_trainee_can_mute(self, cog, user, database):
        ctx = _ctx(Roles.trainee_moderators)

        await Infractions.mute.callback(cog, ctx, user, arrow.utcnow().shift(hours=1), reason="spam")

        assert await database.infraction_count() == 1
        assert ":ok_hand: applied **Mute** to <@1>" in ctx.send.await_args.args[0]

    @pytest.mark.asyncio
    async def test_moderator_can_ban(self, cog, user, directory):
        ctx = _ctx()

        await Infractions.ban.callback(cog, ctx, user, None, reason="raiding")

        directory.apply_sanction.assert_awaited_once_with(InfractionType.BAN, 1)
        assert ":ok_hand: applied **Ban** to <@1> permanently" in ctx.send.await_args.args[0]


class TestApply:
    """Tests for applying infractions through commands."""

    @pytest.mark.asyncio
    async def test_second_active_mute_is_refused(self, cog, user, database, directory):
        ctx = _ctx()
        await Infractions.mute.callback(cog, ctx, user, arrow.utcnow().shift(hours=1), reason="spam")

        await Infractions.mute.callback(cog, ctx, user, arrow.utcnow().shift(hours=2), reason="more spam")

        assert await database.infraction_count() == 1
        directory.apply_sanction.assert_awaited_once()
        assert ctx.send.await_args.args[0] == ":x: <@1> already has an active **Mute** infraction."

    @pytest.mark.asyncio
    async def test_warnings_stack(self, cog, user, database):
        ctx = _ctx()

        await Infractions.warn.callback(cog, ctx, user, reason="rude")
        await Infractions.warn.callback(cog, ctx, user, reason="still rude")

        assert await database.infraction_count() == 2

    @pytest.mark.asyncio
    async def test_failed_apply_is_reported(self, cog, user, directory):
        directory.apply_sanction.side_effect = DirectoryForbidden(1)
        ctx = _ctx()

        await Infractions.kick.callback(cog, ctx, user, reason="spam")

        assert ":x: failed to apply **Kick** to <@1>" in ctx.send.await_args.args[0]


class TestPardon:
    """Tests for pardoning infractions through commands."""

    @pytest.mark.asyncio
    async def test_nothing_to_pardon(self, cog, user, directory):
        ctx = _ctx()

        await Infractions.unmute.callback(cog, ctx, user)

        ctx.send.assert_awaited_once_with(":x: There's no active **Mute** infraction for <@1>.")
        directory.revert_sanction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unmute(self, cog, user, lifecycle, database, directory):
        infraction, _ = await lifecycle.create_infraction(
            InfractionType.MUTE, 1, 42, expires_at=arrow.utcnow().shift(hours=1).datetime
        )
        ctx = _ctx()

        await Infractions.unmute.callback(cog, ctx, user)

        assert (await database.get_infraction(infraction.id)).active is False
        directory.revert_sanction.assert_awaited_once_with(InfractionType.MUTE, 1)
        ctx.send.assert_awaited_once_with(f":ok_hand: pardoned **Mute** for <@1> (`{infraction.id}`).")

    @pytest.mark.asyncio
    async def test_pardon_any_type(self, cog, user, lifecycle, database):
        warning, _ = await lifecycle.create_infraction(InfractionType.WARN, 1, 42, reason="rude")
        ctx = _ctx()

        await Infractions.pardon.callback(cog, ctx, InfractionType.WARN, user)

        assert (await database.get_infraction(warning.id)).active is False
        assert ctx.send.await_args.args[0].startswith(":ok_hand: pardoned **Warn** for <@1>")
