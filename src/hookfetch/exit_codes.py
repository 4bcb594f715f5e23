"""Numeric process exit codes used by the ``hookfetch`` command line.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~hookfetch.exceptions.HookFetchError` subclass, or
derived from the classification of a
:class:`~hookfetch.exceptions.ResponseError`. Shell wrappers can inspect the
exit code to tell a timeout from a 5xx without parsing stderr.

Example::

    $ hookfetch request https://api.example.com/slow --timeout 1
    $ echo $?
    7   # EXIT_TIMEOUT -- the attempt timed out
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments, or an API call was made in an invalid state."""

EXIT_CLIENT_ERROR = 4
"""The remote API answered with an HTTP 4xx status."""

EXIT_SERVER_ERROR = 5
"""The remote API answered with an HTTP 5xx status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (DNS failure, connection refused, reset)."""

EXIT_TIMEOUT = 7
"""The request did not settle before its timeout fired."""

EXIT_ABORTED = 8
"""The request was aborted before it settled."""

EXIT_STREAM_ERROR = 9
"""A streamed response had no body or could not be decoded."""

EXIT_PLUGIN_ERROR = 10
"""A plugin failed to load, initialise, or execute."""
