"""Deferred reversal of expiring infractions."""

import typing as t

from beanie import PydanticObjectId
from loguru import logger

from modsync.models import Infraction
from modsync.utils.scheduling import Scheduler
from modsync.utils.time import expiry_delay

UndoCallback = t.Callable[[int, Infraction], t.Awaitable[t.Any]]


class ExpiryScheduler:
    """One cancellable timer per infraction, each running the undo path once it's due.

    Nothing here is persisted; timers are rebuilt from the stored expiries when
    the bot starts.
    """

    def __init__(self, undo: UndoCallback):
        self._undo = undo
        self._scheduler = Scheduler("infraction_expiry")

    def __contains__(self, infraction_id: PydanticObjectId) -> bool:
        return infraction_id in self._scheduler

    def __len__(self) -> int:
        return len(self._scheduler)

    async def schedule_undo_infraction(
        self, target_id: int, infraction: Infraction, explicit_delay: t.Optional[float] = None
    ) -> bool:
        """Arranges for `infraction` to be undone once it expires.

        The delay is `explicit_delay` if given, else the time left until the
        stored expiry. If there's no time left, the undo path is awaited right
        away and True is returned. An infraction that already has a live timer
        keeps it.

        Raises `CorruptScheduleData` if the delay has to come from a stored
        expiry that is missing or unparseable.
        """
        delay = explicit_delay if explicit_delay is not None else expiry_delay(infraction.expires_at, infraction.id)

        if delay <= 0:
            logger.debug(f"Infraction #{infraction.id} has already expired; undoing it now")
            await self._undo(target_id, infraction)
            return True

        if self._scheduler.schedule_later(delay, infraction.id, self._undo(target_id, infraction)):
            logger.debug(f"Infraction #{infraction.id} for {target_id} will expire in {delay:.0f} seconds")

        return False

    def cancel_undo_infraction(self, infraction_id: PydanticObjectId) -> bool:
        """Cancels the timer of an infraction. Returns whether one was live."""
        return self._scheduler.cancel(infraction_id)

    def cancel_all(self) -> None:
        """Cancels every live timer."""
        self._scheduler.cancel_all()
