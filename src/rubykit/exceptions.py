"""Exception hierarchy for rubykit.

All exceptions inherit from :class:`RubykitError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`rubykit.exit_codes`.
The top-level error handler in :func:`rubykit.app.main` catches
``RubykitError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    RubykitError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    |   +-- RateLimitError  (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- CommandError        (exit 8)
    +-- ProjectError        (exit 9)
    +-- ConfigError         (exit 1)
    +-- CacheKeyError       (exit 1)
"""

from rubykit.exit_codes import (
    EXIT_COMMAND_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PROJECT_ERROR,
    EXIT_SERVER_ERROR,
)


class RubykitError(Exception):
    """Base exception for all rubykit errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`rubykit.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(RubykitError):
    """Raised for invalid tool arguments (empty gem name, bad limit, ...)."""

    exit_code = EXIT_INVALID_USAGE


class NotFoundError(RubykitError):
    """Raised when RubyGems.org returns HTTP 404 for a gem or resource."""

    exit_code = EXIT_NOT_FOUND


class ServerError(RubykitError):
    """Raised when the upstream API returns an error status other than 404."""

    exit_code = EXIT_SERVER_ERROR


class RateLimitError(ServerError):
    """Raised when RubyGems.org answers HTTP 429."""


class ConnectionError_(RubykitError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class CommandError(RubykitError):
    """Raised when a ``rails`` or ``bundle`` subprocess exits non-zero, times out, or cannot start.

    Args:
        message: Human-readable error description.
        output: Captured stdout/stderr of the failed command, if any.
    """

    exit_code = EXIT_COMMAND_FAILURE

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class ProjectError(RubykitError):
    """Raised for unknown project names or directories that are not Rails projects."""

    exit_code = EXIT_PROJECT_ERROR


class ConfigError(RubykitError):
    """Raised for configuration problems (invalid JSON, bad values, bad env vars)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheKeyError(RubykitError):
    """Raised when cache key parameters cannot be serialised canonically."""

    exit_code = EXIT_GENERIC_FAILURE
