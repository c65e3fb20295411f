"""Utilities for Discord messages."""

import random
import typing as t

from discord import Color, Embed, Message
from discord.ext.commands import Context

NEGATIVE_REPLIES = {
    "Noooooo!!",
    "Nope.",
    "I'm sorry Dave, I'm afraid I can't do that.",
    "I don't think so.",
    "Not gonna happen.",
    "Out of the question.",
    "Huh? No.",
    "Nah.",
    "Not likely.",
    "Certainly not.",
    "Nuh-uh.",
}


async def send_denial(ctx: Context, reason: str) -> Message:
    """Sends an embed denying the user with the given reason."""
    embed = Embed(description=reason, color=Color.red())
    embed.title = random.choice(tuple(NEGATIVE_REPLIES))

    return await ctx.send(embed=embed)


def format_user_id(user_id: int, username: t.Optional[str] = None) -> str:
    """Returns a string for a user ID with their mention, and their name when known."""
    if username:
        return f"<@{user_id}> (`{username}`, `{user_id}`)"
    return f"<@{user_id}> (`{user_id}`)"


def truncate(text: str, limit: int = 4096) -> str:
    """Shortens `text` to `limit` characters, ending it with an ellipsis if it was cut."""
    return text if len(text) <= limit else text[: limit - 3] + "..."
