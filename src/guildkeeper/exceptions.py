"""Exception hierarchy for guildkeeper.

All exceptions inherit from :class:`GuildkeeperError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`guildkeeper.exit_codes`.
The entry point in :func:`guildkeeper.app.main` catches ``GuildkeeperError``
raised during startup and exits with the appropriate code. Errors raised
inside scheduled jobs or event handlers are logged by the dispatching wrapper
and never reach the entry point.

Subclass hierarchy::

    GuildkeeperError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- AttributeValueError         (exit 2)
    |   +-- AttributeNotSetError    (exit 2)
    |   +-- AttributeMismatchError  (exit 2)
    |   +-- AttributeListError      (exit 2)
    +-- ValidationMissingError      (exit 2)
    +-- NotFoundError               (exit 4)
    +-- APIStatusError              (exit 5)
    +-- ResponseDecodeError         (exit 5)
    +-- RequestFailedError          (exit 5)
    +-- TransportError              (exit 6)
    +-- StoreCorruptError           (exit 8)
    +-- PluginError                 (exit 10)
        +-- DuplicateRegistrationError (exit 10)
"""

from __future__ import annotations

from typing import Optional

from guildkeeper.exit_codes import (
    EXIT_API_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_ATTRIBUTES,
    EXIT_NOT_FOUND,
    EXIT_PLUGIN_ERROR,
    EXIT_STORE_ERROR,
)


class GuildkeeperError(Exception):
    """Base exception for all guildkeeper errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`guildkeeper.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(GuildkeeperError):
    """Raised when the configuration file cannot be read, parsed or validated."""

    exit_code = EXIT_GENERIC_FAILURE


class AttributeValueError(GuildkeeperError):
    """Raised when a plugin attribute cannot be interpreted as the requested type.

    Used directly for values that have the right shape but fail to parse
    (``"maybe"`` read as a bool, ``"15 minutes"`` read as a duration).
    """

    exit_code = EXIT_INVALID_ATTRIBUTES


class AttributeNotSetError(AttributeValueError):
    """Raised when the requested attribute is not present in the store."""

    def __init__(self, name: str) -> None:
        super().__init__(f"attribute {name!r}: specified value not found")
        self.name = name


class AttributeMismatchError(AttributeValueError):
    """Raised when the attribute is present but has a type the getter cannot use."""

    def __init__(self, name: str, value: object) -> None:
        super().__init__(
            f"attribute {name!r}: specified value has different format "
            f"({type(value).__name__})"
        )
        self.name = name


class AttributeListError(AttributeValueError):
    """Raised when a string list contains an element that is not a string."""


class ValidationMissingError(GuildkeeperError):
    """Raised when required attributes are absent; lists every missing name."""

    exit_code = EXIT_INVALID_ATTRIBUTES

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"missing key(s) {', '.join(missing)}")
        self.missing = list(missing)


class NotFoundError(GuildkeeperError):
    """Raised when the chat platform reports a resource as missing (HTTP 404)."""

    exit_code = EXIT_NOT_FOUND


class APIStatusError(GuildkeeperError):
    """Raised when a remote API answers with an unexpected HTTP status.

    Args:
        status_code: The HTTP status code received.
        body: The (decoded) response body, kept for diagnostics.
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"unexpected status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class ResponseDecodeError(GuildkeeperError):
    """Raised when a response body cannot be decoded into the expected model."""

    exit_code = EXIT_API_ERROR


class RequestFailedError(GuildkeeperError):
    """Raised when an API operation still fails after all retry attempts.

    The message is prefixed with the operation (``"fetching schedule"``) and
    the final attempt's error is chained as ``__cause__``.
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, operation: str, attempts: int, cause: Exception) -> None:
        super().__init__(f"{operation}: {cause}")
        self.operation = operation
        self.attempts = attempts

    @property
    def status_code(self) -> Optional[int]:
        """Status code of the final attempt when it was an HTTP status error."""
        cause = self.__cause__
        if isinstance(cause, APIStatusError):
            return cause.status_code
        return None


class TransportError(GuildkeeperError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class StoreCorruptError(GuildkeeperError):
    """Raised when the metastore location is unusable or its content undecodable."""

    exit_code = EXIT_STORE_ERROR


class PluginError(GuildkeeperError):
    """Raised when a plugin cannot be created, initialized or set up."""

    exit_code = EXIT_PLUGIN_ERROR


class DuplicateRegistrationError(PluginError):
    """Raised when a plugin kind is registered twice."""
