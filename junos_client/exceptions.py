"""Exceptions raised by junos-client.

Every error the library raises derives from :class:`JunosError`.  Errors
reported by the device itself carry the full list of ``rpc-error``
entries in ``errors``; ``str()`` of the exception is the first message.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RpcErrorDetail:
    """One ``<rpc-error>`` entry from a device reply."""

    message: str
    severity: str = "error"
    path: str = ""
    element: str = ""

    def __str__(self):
        if self.element:
            return f"{self.message} ({self.element})"
        return self.message


class JunosError(Exception):
    """Base class for all junos-client errors."""


class TransportError(JunosError):
    """Connection, authentication or transport failure. Fatal to the session."""


class DeviceRPCError(JunosError):
    """The device answered with one or more ``rpc-error`` entries."""

    def __init__(self, message=None, errors=None):
        self.errors = list(errors or [])
        if message is None:
            message = self.errors[0].message if self.errors else "rpc error"
        super().__init__(message)
        self.message = message


class LockConflict(DeviceRPCError):
    """The candidate configuration is locked by another session."""


class LoadError(DeviceRPCError):
    """The configuration payload was rejected or could not be read."""


class ValidationError(DeviceRPCError):
    """``commit check`` found errors in the candidate configuration."""


class CommitError(DeviceRPCError):
    """The commit was refused by the device."""


class NotFoundError(JunosError):
    """The requested section, rollback slot or object does not exist."""


class UnsupportedOnPlatform(JunosError):
    """The request is not available on the device's platform family."""


class InvalidArgument(JunosError, ValueError):
    """An argument was rejected before anything was sent."""


class SpaceAPIError(JunosError):
    """Junos Space answered with an HTTP error or an unreadable body."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
