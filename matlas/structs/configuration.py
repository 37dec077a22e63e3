"""
All configuration flags, options, settings to fine-tune the provider.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

In this provider, they are called *"settings"* (plural).
Combined, they form a *"configuration"* (singular).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).
"""
import dataclasses
from typing import Iterable, Optional


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: Optional[float] = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the whole HTTP request, in seconds.
    """

    connect_timeout: Optional[float] = None
    """
    A timeout for establishing a TCP connection, in seconds.
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13)
    """
    Backoff intervals in case of retryable errors of the read requests.

    The reads are retried on the connection errors, on the server errors (5xx),
    and on rate limiting (429). Once the backoffs are over, the error escalates.

    The mutating requests (create/update/delete) are never retried:
    their effect is unknown if the response is lost.

    To disable retries, set it to ``[]`` or ``()``.
    """


@dataclasses.dataclass
class PollingSettings:
    """
    Settings for waiting until a cluster reaches a target state.

    The defaults are tuned to the Atlas provisioning times: creating
    a dedicated cluster usually takes 7-10 minutes, and nothing is visible
    in the status for the first seconds after the request is accepted.
    """

    delay: float = 60
    """
    How long to wait before the first status read, in seconds.
    """

    interval: float = 30
    """
    How long to wait between the status reads, in seconds.
    """

    timeout: float = 20 * 60
    """
    How long to wait in total, in seconds, including the initial delay.
    Once exceeded, the operation fails with the last observed state reported.
    """


@dataclasses.dataclass
class AtlasSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    creation: PollingSettings = dataclasses.field(default_factory=PollingSettings)
    updating: PollingSettings = dataclasses.field(default_factory=PollingSettings)
    deletion: PollingSettings = dataclasses.field(
        default_factory=lambda: PollingSettings(timeout=60 * 60))
