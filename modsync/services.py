"""The shared handles the bot's components are built from."""

from dataclasses import dataclass

from modsync.database import Database
from modsync.directory import Directory
from modsync.notifier import Notifier


@dataclass(frozen=True)
class Services:
    """Handles to the store, the guild, and the notification channels."""

    database: Database
    directory: Directory
    notifier: Notifier
