"""Custom converters for the bot."""

import arrow
from dateutil.relativedelta import relativedelta
from discord.ext.commands import BadArgument, Context, Converter

from modsync.models import InfractionType
from modsync.utils import time

# Names moderators can use for each infraction type, besides the stored value.
INFRACTION_TYPE_ALIASES = {
    "warning": InfractionType.WARN,
    "metamute": InfractionType.META_MUTE,
    "reactionmute": InfractionType.REACTION_MUTE,
    "requestsmute": InfractionType.REQUESTS_MUTE,
    "supportmute": InfractionType.SUPPORT_MUTE,
}


class DurationDelta(Converter):
    """Convert duration strings into dateutil.relativedelta.relativedelta objects."""

    async def convert(self, ctx: Context, duration: str) -> relativedelta:
        """
        Converts a `duration` string to a relativedelta object.
        The converter supports the following symbols for each unit of time:
        - years: `Y`, `y`, `year`, `years`
        - months: `m`, `month`, `months`
        - weeks: `w`, `W`, `week`, `weeks`
        - days: `d`, `D`, `day`, `days`
        - hours: `H`, `h`, `hour`, `hours`
        - minutes: `M`, `minute`, `minutes`
        - seconds: `S`, `s`, `second`, `seconds`
        The units need to be provided in descending order of magnitude.
        """
        if not (delta := time.parse_duration_string(duration)):
            raise BadArgument(f"`{duration}` is not a valid duration string.")

        return delta


class Duration(DurationDelta):
    """Convert duration strings into UTC arrow.Arrow objects."""

    async def convert(self, ctx: Context, duration: str) -> arrow.Arrow:
        """
        Converts a `duration` string to a time that's `duration` in the future.
        The converter supports the same symbols for each unit of time as its parent class.
        """
        delta = await super().convert(ctx, duration)
        now = arrow.utcnow()

        try:
            return now + delta
        except (ValueError, OverflowError) as error:
            raise BadArgument(f"`{duration}` results in a datetime outside the supported range.") from error


class InfractionTypeConverter(Converter):
    """Convert an infraction type name, like `mute` or `meta_mute`, into an InfractionType."""

    async def convert(self, ctx: Context, argument: str) -> InfractionType:
        """Looks up the infraction type, accepting spaces, dashes, and a few aliases."""
        name = argument.lower().replace("-", "_").replace(" ", "_")

        if name in INFRACTION_TYPE_ALIASES:
            return INFRACTION_TYPE_ALIASES[name]

        try:
            return InfractionType(name)
        except ValueError as error:
            names = ", ".join(f"`{type_.value}`" for type_ in InfractionType)
            raise BadArgument(f"`{argument}` is not an infraction type. Try one of {names}.") from error
