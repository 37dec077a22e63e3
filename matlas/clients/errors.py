"""
Atlas API errors.

The underlying client library (now, ``aiohttp``) can be replaced in the future.
We cannot rely on embedding its exceptions all over the code in the provider.
Hence, we have our own hierarchy of exceptions for the Atlas API errors.

The original errors of the client library are chained as the causes of our own
specialised errors -- for better explainability of errors in the stack traces.

Some selected reasons of Atlas API errors are made into their own classes,
so that they could be intercepted and handled in other places of the provider.
All other reasons are raised as the base error class and are indistinguishable
from each other (except via the exception's fields).

Unlike the underlying client library's errors, the Atlas API errors contain more
information about the reasons -- as provided by Atlas in its response bodies
(``detail``, ``errorCode``, ``reason``), not guessed by HTTP statuses alone.

The network-level errors (no HTTP response at all) are wrapped as transport
errors. The connection resets are singled out: they happen regularly with
long-running polling and are usually transient.
"""
import asyncio
import collections.abc
import errno
import json
from typing import Any, List, Optional

import aiohttp

from matlas.structs import bodies


class APIError(Exception):

    def __init__(
            self,
            payload: Optional[bodies.RawError],
            *,
            status: int,
    ) -> None:
        message = payload.get('detail') if payload else None
        super().__init__(message or f"HTTP {status}", payload)
        self._status = status
        self._payload = payload

    def __str__(self) -> str:
        code = self.error_code
        message = self.message or f"HTTP {self._status}"
        return f"{message} (HTTP {self._status} {code})" if code else message

    @property
    def status(self) -> int:
        return self._status

    @property
    def error_code(self) -> Optional[str]:
        return self._payload.get('errorCode') if self._payload else None

    @property
    def message(self) -> Optional[str]:
        return self._payload.get('detail') if self._payload else None

    @property
    def reason(self) -> Optional[str]:
        return self._payload.get('reason') if self._payload else None

    @property
    def parameters(self) -> Optional[List[Any]]:
        return self._payload.get('parameters') if self._payload else None


class APIUnauthorizedError(APIError):
    pass


class APIForbiddenError(APIError):
    pass


class APINotFoundError(APIError):
    pass


class APIConflictError(APIError):
    pass


class APIServerError(APIError):
    pass


class APITooManyRequestsError(APIError):
    pass


class TransportError(Exception):
    """ A network-level failure: no HTTP response was received. """


class TransportResetError(TransportError):
    """ The connection was reset by the peer or dropped by the server. """


async def check_response(
        response: aiohttp.ClientResponse,
) -> None:
    """
    Check for specialised Atlas errors, and raise with extended information.
    """
    if response.status >= 400:

        # Read the response's body before it is closed by raise_for_status().
        payload: Optional[bodies.RawError]
        try:
            payload = await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError, aiohttp.ClientConnectionError):
            payload = None

        # Better be safe: who knows which information is there unless it looks like an error.
        if not isinstance(payload, collections.abc.Mapping) or 'errorCode' not in payload:
            payload = None

        cls = (
            APIUnauthorizedError if response.status == 401 else
            APIForbiddenError if response.status == 403 else
            APINotFoundError if response.status == 404 else
            APIConflictError if response.status == 409 else
            APITooManyRequestsError if response.status == 429 else
            APIServerError if 500 <= response.status <= 599 else
            APIError
        )

        # Raise the provider-specific error while keeping the original error in scope.
        # This call also closes the response's body, so it cannot be read afterwards.
        try:
            response.raise_for_status()
        except aiohttp.ClientResponseError as e:
            raise cls(payload, status=response.status) from e


def is_connection_reset(exc: BaseException) -> bool:
    """
    Check if the network error looks like a connection reset by the peer.
    """
    if isinstance(exc, (aiohttp.ServerDisconnectedError, ConnectionResetError)):
        return True
    if isinstance(exc, OSError) and exc.errno in (errno.ECONNRESET, errno.EPIPE):
        return True
    if 'reset by peer' in str(exc):
        return True
    return exc.__cause__ is not None and is_connection_reset(exc.__cause__)


def wrap_transport_error(exc: BaseException) -> TransportError:
    """
    Convert the client library's network errors into the provider's ones.
    """
    if is_connection_reset(exc):
        return TransportResetError(f"Connection reset: {exc!r}")
    elif isinstance(exc, asyncio.TimeoutError):
        return TransportError(f"Request timed out: {exc!r}")
    else:
        return TransportError(f"Connection failed: {exc!r}")
