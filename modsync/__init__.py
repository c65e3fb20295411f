"""A Discord bot that mirrors a guild's membership and expires infractions."""
