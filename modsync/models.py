"""Database models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

import arrow
from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel


@dataclass(frozen=True)
class InfractionTypeInfo:
    """Static properties of an infraction type."""

    expires: bool
    relay: bool
    not_for_trainees: bool
    action_text: str


class InfractionType(str, Enum):
    """The kinds of infraction that can be applied to a user."""

    BAN = "ban"
    KICK = "kick"
    MUTE = "mute"
    META_MUTE = "meta_mute"
    REACTION_MUTE = "reaction_mute"
    REQUESTS_MUTE = "requests_mute"
    SUPPORT_MUTE = "support_mute"
    WARN = "warn"
    NOTE = "note"

    @property
    def info(self) -> InfractionTypeInfo:
        """The static properties of this type."""
        return INFRACTION_TYPE_INFO[self]

    @property
    def expires(self) -> bool:
        """Whether infractions of this type are reversed automatically."""
        return self.info.expires

    @property
    def relay(self) -> bool:
        """Whether the target is notified about infractions of this type."""
        return self.info.relay

    @property
    def not_for_trainees(self) -> bool:
        """Whether trainee moderators are barred from using this type."""
        return self.info.not_for_trainees

    @property
    def action_text(self) -> str:
        """What happened to the target, e.g. "muted"."""
        return self.info.action_text

    @property
    def display_name(self) -> str:
        """A human-readable name for this type."""
        return self.value.replace("_", " ").title()


INFRACTION_TYPE_INFO: dict[InfractionType, InfractionTypeInfo] = {
    InfractionType.BAN: InfractionTypeInfo(True, True, True, "banned"),
    InfractionType.KICK: InfractionTypeInfo(False, True, False, "kicked"),
    InfractionType.MUTE: InfractionTypeInfo(True, True, False, "muted"),
    InfractionType.META_MUTE: InfractionTypeInfo(True, True, False, "muted in the meta channel"),
    InfractionType.REACTION_MUTE: InfractionTypeInfo(True, True, False, "prevented from adding reactions"),
    InfractionType.REQUESTS_MUTE: InfractionTypeInfo(True, True, False, "muted in the requests channel"),
    InfractionType.SUPPORT_MUTE: InfractionTypeInfo(True, True, False, "muted in the support channels"),
    InfractionType.WARN: InfractionTypeInfo(False, True, False, "warned"),
    InfractionType.NOTE: InfractionTypeInfo(False, False, False, "noted"),
}

EXPIRING_TYPES = tuple(type_ for type_, info in INFRACTION_TYPE_INFO.items() if info.expires)


class Role(Document):
    """A role in the guild."""

    id: int
    colour: int
    name: str

    class Settings:
        """Collection settings."""

        name = "roles"


class User(Document):
    """A Discord user who has been a member of the guild."""

    id: int
    avatar_url: Optional[str] = None
    discriminator: str = "0"
    username: str
    present: bool = True

    class Settings:
        """Collection settings."""

        name = "users"


class UserRole(Document):
    """A role currently held by a user."""

    user_id: int
    role_id: int

    class Settings:
        """Collection settings."""

        name = "user_roles"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("role_id", ASCENDING)], unique=True),
            IndexModel([("role_id", ASCENDING)]),
        ]


class Infraction(Document):
    """A user infraction."""

    type: InfractionType
    reason: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: arrow.utcnow().datetime)
    expires_at: Optional[datetime] = None

    target_id: int
    actor_id: int

    active: bool = True
    sent_dm: bool = False

    class Settings:
        """Collection settings."""

        name = "infractions"
        indexes = [
            IndexModel([("target_id", ASCENDING), ("active", ASCENDING)]),
            IndexModel([("active", ASCENDING), ("type", ASCENDING)]),
        ]


DOCUMENT_MODELS = [Role, User, UserRole, Infraction]
