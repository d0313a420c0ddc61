"""Rollback slot and rescue configuration addressing."""

import enum
import re
from dataclasses import dataclass

from junos_client.exceptions import InvalidArgument, NotFoundError
from junos_client.rpc import MAX_ROLLBACK, check_slot

# shorter replies mean "not configured", not "empty diff"
MIN_REPLY_LENGTH = 50

NOT_FOUND_PATTERN = re.compile(
    r"not set|not exist|no such|not found|cannot (?:read|open)|no rescue",
    re.IGNORECASE,
)


class RollbackTarget:
    """Either a numbered rollback slot or the rescue configuration."""


@dataclass(frozen=True)
class Numbered(RollbackTarget):
    slot: int

    def __post_init__(self):
        check_slot(self.slot)


@dataclass(frozen=True)
class Rescue(RollbackTarget):
    pass


RESCUE = Rescue()


def rollback_target(value) -> RollbackTarget:
    """Build a target from an int, a digit string or ``"rescue"``."""
    if isinstance(value, RollbackTarget):
        return value
    if isinstance(value, bool):
        raise InvalidArgument(f"invalid rollback target: {value!r}")
    if isinstance(value, int):
        return Numbered(value)
    if isinstance(value, str):
        if value.strip().lower() == "rescue":
            return RESCUE
        if value.strip().isdigit():
            return Numbered(int(value))
    raise InvalidArgument(
        f"rollback target must be 0-{MAX_ROLLBACK} or 'rescue': {value!r}"
    )


class RescueAction(enum.Enum):
    SAVE = "save"
    DELETE = "delete"

    @classmethod
    def parse(cls, action):
        if isinstance(action, cls):
            return action
        try:
            return cls(action)
        except ValueError:
            raise InvalidArgument(
                f"rescue action must be 'save' or 'delete': {action!r}"
            ) from None


def is_not_found(errors) -> bool:
    return any(NOT_FOUND_PATTERN.search(e.message) for e in errors)


def configuration_output(reply, what) -> str:
    """Text of ``configuration-output`` in ``reply``.

    :raises NotFoundError: the reply is missing or shorter than
        :data:`MIN_REPLY_LENGTH`.
    """
    if reply.data is None or len(reply.tostring()) < MIN_REPLY_LENGTH:
        raise NotFoundError(f"{what} is not available on the device")
    if reply.data.tag == "configuration-output":
        out = reply.data
    else:
        out = reply.data.find(".//configuration-output")
    if out is None:
        raise NotFoundError(f"{what} is not available on the device")
    return out.text or ""
