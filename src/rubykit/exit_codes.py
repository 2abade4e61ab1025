"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~rubykit.exceptions.RubykitError` subclass.
Shell wrappers can inspect the exit code to tell a missing gem from a
network outage without parsing stderr.

Example::

    $ rubykit gems details no-such-gem
    $ echo $?
    4   # EXIT_NOT_FOUND -- RubyGems.org has no such gem
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_NOT_FOUND = 4
"""The requested gem or resource does not exist (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The upstream API answered with an error status (5xx, 429, other 4xx)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_COMMAND_FAILURE = 8
"""A ``rails`` subprocess failed, timed out, or could not be started."""

EXIT_PROJECT_ERROR = 9
"""The target directory is not a Rails project or the project name is unknown."""
