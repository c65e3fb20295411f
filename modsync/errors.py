"""Custom exceptions raised by the bot."""

from typing import Hashable, Optional


class StaleExternalRecord(Exception):
    """Raised when a record vanished from the directory or store while being diffed."""

    def __init__(self, kind: str, record_id: int, detail: Optional[str] = None):
        self.kind = kind
        self.record_id = record_id

        message = f"{kind} {record_id} is no longer available"
        if detail:
            message = f"{message}: {detail}"

        super().__init__(message)


class DirectoryError(Exception):
    """Base class for failed calls against the Discord guild."""

    def __init__(self, target_id: int, message: str):
        self.target_id = target_id
        super().__init__(message)


class SanctionTargetUnavailable(DirectoryError):
    """Raised when the target of a sanction can't be found in the guild."""

    def __init__(self, target_id: int):
        super().__init__(target_id, f"Target {target_id} could not be found in the guild")


class DirectoryForbidden(DirectoryError):
    """Raised when the bot lacks the permissions to act on a target."""

    def __init__(self, target_id: int):
        super().__init__(target_id, f"Missing permissions to act on {target_id}")


class TransientDirectoryError(DirectoryError):
    """Raised when Discord fails a request for any other reason, such as a rate limit."""

    def __init__(self, target_id: int, status: Optional[int] = None):
        self.status = status
        super().__init__(target_id, f"Discord request for {target_id} failed with status {status}")


class CorruptScheduleData(Exception):
    """Raised when the stored expiry of an infraction can't be used to schedule it."""

    def __init__(self, infraction_id: Hashable, value: object):
        self.infraction_id = infraction_id
        self.value = value
        super().__init__(f"Infraction {infraction_id} has an unusable expiry: {value!r}")
