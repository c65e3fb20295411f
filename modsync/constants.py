"""Constant values for the bot."""

from os import environ

from discord import Color


def _get_int_env(name: str, default: int) -> int:
    """Gets an integer value from the environment."""
    return int(environ.get(name, default))


class Bot:
    """Bot-related settings."""

    prefix: str = environ.get("PREFIX", "!")
    token: str = environ.get("TOKEN", "")


class Server:
    """Server-related constants."""

    id: int = _get_int_env("SERVER_ID", 507304429255393322)


class Roles:
    """Role IDs."""

    admins: int = _get_int_env("ROLE_ADMINS", 507305071269117953)
    moderators: int = _get_int_env("ROLE_MODERATORS", 507305266417909763)
    trainee_moderators: int = _get_int_env("ROLE_TRAINEE_MODERATORS", 754048441349898279)

    muted: int = _get_int_env("ROLE_MUTED", 507580128063307776)
    no_meta: int = _get_int_env("ROLE_NO_META", 740658262281093200)
    no_reactions: int = _get_int_env("ROLE_NO_REACTIONS", 740658292144701440)
    no_requests: int = _get_int_env("ROLE_NO_REQUESTS", 740658321341874196)
    no_support: int = _get_int_env("ROLE_NO_SUPPORT", 740658348818759713)


MODERATION_ROLES = (Roles.admins, Roles.moderators)
TRAINEE_ROLES = (*MODERATION_ROLES, Roles.trainee_moderators)


class Channels:
    """Channel IDs."""

    bot_commands: int = _get_int_env("CHANNEL_BOT_COMMANDS", 507309018507984896)

    mod_log: int = _get_int_env("CHANNEL_MOD_LOG", 507309085512581120)
    action_log: int = _get_int_env("CHANNEL_ACTION_LOG", 754048584782577735)
    alerts: int = _get_int_env("CHANNEL_ALERTS", 754048611038281748)


def _get_color_env(name: str, default: tuple[int, int, int]) -> Color:
    """Gets an RGB color value from the environment."""
    color_str = environ.get(name, None)

    rgb = default if color_str is None else tuple(map(int, color_str.split(",")))

    return Color.from_rgb(*rgb)


class Colors:
    """Color objects."""

    red: Color = _get_color_env("COLOR_RED", (231, 76, 60))
    green: Color = _get_color_env("COLOR_GREEN", (46, 204, 113))
    blurple: Color = _get_color_env("COLOR_BLURPLE", (114, 137, 218))


class Database:
    """Database connection settings."""

    uri: str = environ.get("MONGO_URI", "mongodb://localhost:27017")
    name: str = environ.get("MONGO_DATABASE", "modsync")


class Sync:
    """Membership sync settings."""

    # Seconds to wait after the guild becomes available before the first sync.
    settle_delay: float = float(environ.get("SYNC_SETTLE_DELAY", 10))


class Infractions:
    """Infraction handling settings."""

    # Seconds before a fallback notice in a public channel deletes itself.
    notice_delete_after: float = float(environ.get("NOTICE_DELETE_AFTER", 30))
