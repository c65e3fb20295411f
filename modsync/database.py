"""Persistence for roles, users, role links, and infractions."""

from collections import defaultdict
from typing import Optional

from beanie import PydanticObjectId, init_beanie
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from modsync.errors import CorruptScheduleData, StaleExternalRecord
from modsync.models import DOCUMENT_MODELS, EXPIRING_TYPES, Infraction, InfractionType, Role, User, UserRole


class Database:
    """Keyed access to the bot's collections.

    Every write is a keyed upsert or delete, so replaying a write is harmless.
    """

    # pylint: disable=singleton-comparison

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database

    async def init(self) -> None:
        """Registers the document models with the database."""
        await init_beanie(database=self.database, document_models=DOCUMENT_MODELS)
        logger.info(f"Database {self.database.name} initialized")

    # Roles

    @staticmethod
    async def get_role(role_id: int) -> Optional[Role]:
        """Gets a stored role by ID."""
        return await Role.get(role_id)

    @staticmethod
    async def all_roles() -> dict[int, Role]:
        """Returns every stored role keyed by ID."""
        return {role.id: role async for role in Role.find_all()}

    @staticmethod
    async def upsert_role(role_id: int, colour: int, name: str) -> Role:
        """Inserts a role, or overwrites the stored one with the same ID."""
        role = Role(id=role_id, colour=colour, name=name)
        await role.save()

        logger.trace(f"Upserted role {name} ({role_id})")
        return role

    @staticmethod
    async def delete_role(role_id: int) -> int:
        """Deletes a role along with every link to it.

        Returns the number of role links removed.
        """
        result = await UserRole.find(UserRole.role_id == role_id).delete()
        await Role.find({"_id": role_id}).delete()

        removed = result.deleted_count if result else 0
        logger.trace(f"Deleted role {role_id} and {removed} role link(s)")
        return removed

    # Users

    @staticmethod
    async def get_user(user_id: int) -> Optional[User]:
        """Gets a stored user by ID."""
        return await User.get(user_id)

    @staticmethod
    async def all_users() -> dict[int, User]:
        """Returns every stored user keyed by ID."""
        return {user.id: user async for user in User.find_all()}

    @staticmethod
    async def upsert_user(
        user_id: int, *, avatar_url: Optional[str], discriminator: str, username: str, present: bool
    ) -> User:
        """Inserts a user, or overwrites the stored one with the same ID."""
        user = User(id=user_id, avatar_url=avatar_url, discriminator=discriminator, username=username, present=present)
        await user.save()

        logger.trace(f"Upserted user {username} ({user_id}), present={present}")
        return user

    @staticmethod
    async def set_user_absent(user: User) -> User:
        """Marks a stored user as no longer being a member."""
        user.present = False
        await user.save()

        logger.trace(f"Marked user {user.username} ({user.id}) as absent")
        return user

    # Role links

    @staticmethod
    async def get_user_roles(user_id: int) -> set[int]:
        """Returns the IDs of the roles linked to a user."""
        return {link.role_id async for link in UserRole.find(UserRole.user_id == user_id)}

    @staticmethod
    async def all_user_roles() -> dict[int, set[int]]:
        """Returns the role IDs of every user that has at least one link."""
        links: defaultdict[int, set[int]] = defaultdict(set)

        async for link in UserRole.find_all():
            links[link.user_id].add(link.role_id)

        return dict(links)

    @staticmethod
    async def add_user_role(user_id: int, role_id: int) -> bool:
        """Links a role to a user.

        Raises `StaleExternalRecord` if the role isn't stored, since the link
        would dangle. Returns False if the link already existed.
        """
        if await Role.get(role_id) is None:
            raise StaleExternalRecord("role", role_id, f"can't link it to user {user_id}")

        try:
            await UserRole(user_id=user_id, role_id=role_id).insert()
        except DuplicateKeyError:
            return False

        return True

    @staticmethod
    async def remove_user_role(user_id: int, role_id: int) -> bool:
        """Unlinks a role from a user. Returns whether a link was removed."""
        result = await UserRole.find(UserRole.user_id == user_id, UserRole.role_id == role_id).delete()
        return bool(result and result.deleted_count)

    # Infractions

    @staticmethod
    async def insert_infraction(infraction: Infraction) -> Infraction:
        """Stores a new infraction, assigning its ID."""
        await infraction.insert()
        logger.trace(f"Stored {infraction.type.value} infraction #{infraction.id} for {infraction.target_id}")
        return infraction

    @staticmethod
    async def get_infraction(infraction_id: PydanticObjectId) -> Optional[Infraction]:
        """Gets a stored infraction by ID.

        Raises `CorruptScheduleData` if the stored document no longer fits the model.
        """
        try:
            return await Infraction.get(infraction_id)
        except ValidationError as error:
            raise CorruptScheduleData(infraction_id, error.errors()) from error

    @staticmethod
    async def deactivate_infraction(infraction_id: PydanticObjectId) -> bool:
        """Marks an infraction inactive if it's still active.

        This is a single conditional update, so when several callers race to
        deactivate the same infraction, exactly one of them gets True.
        """
        result = await Infraction.get_motor_collection().update_one(
            {"_id": infraction_id, "active": True}, {"$set": {"active": False}}
        )
        return result.modified_count == 1

    @staticmethod
    async def mark_infraction_dm_sent(infraction: Infraction) -> None:
        """Records that the target of an infraction was notified by DM."""
        infraction.sent_dm = True
        await Infraction.get_motor_collection().update_one({"_id": infraction.id}, {"$set": {"sent_dm": True}})

    @staticmethod
    async def active_infractions_by_user(
        user_id: int, infraction_type: Optional[InfractionType] = None
    ) -> list[Infraction]:
        """Returns the active infractions of a user, optionally of one type only."""
        query = Infraction.find(Infraction.target_id == user_id, Infraction.active == True)

        if infraction_type is not None:
            query = query.find(Infraction.type == infraction_type)

        return await query.sort(+Infraction.created_at).to_list()

    @staticmethod
    async def active_infractions_by_type(infraction_type: InfractionType) -> list[Infraction]:
        """Returns every active infraction of a type, oldest first."""
        return (
            await Infraction.find(Infraction.type == infraction_type, Infraction.active == True)
            .sort(+Infraction.created_at)
            .to_list()
        )

    @staticmethod
    async def active_expiring_infraction_ids() -> list[PydanticObjectId]:
        """Returns the IDs of active infractions that have an expiry and an expiring type.

        Only IDs are returned so that each infraction can be loaded, and fail to
        load, on its own.
        """
        cursor = Infraction.get_motor_collection().find(
            {
                "active": True,
                "type": {"$in": [type_.value for type_ in EXPIRING_TYPES]},
                "expires_at": {"$ne": None},
            },
            projection={"_id": True},
        )
        return [document["_id"] async for document in cursor]

    @staticmethod
    async def infraction_count() -> int:
        """Returns the number of infractions ever stored."""
        return await Infraction.find_all().count()
