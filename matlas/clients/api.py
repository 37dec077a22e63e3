import asyncio
import collections.abc
import itertools
import json
from typing import Any, Iterable, Mapping, Optional

import aiohttp

from matlas.clients import auth, errors
from matlas.helpers import typedefs
from matlas.structs import configuration

# Only the reads are retried; a lost response to a mutation leaves its effect unknown.
RETRYABLE_METHODS = frozenset({'get', 'head'})


async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:

    if '://' not in url:
        url = context.server.rstrip('/') + '/' + url.lstrip('/')

    if timeout is None:
        timeout = aiohttp.ClientTimeout(
            total=settings.networking.request_timeout,
            sock_connect=settings.networking.connect_timeout,
        )

    backoffs: Iterable[float]
    backoffs = settings.networking.error_backoffs if method.lower() in RETRYABLE_METHODS else []
    backoffs = backoffs if isinstance(backoffs, collections.abc.Iterable) else [backoffs]
    count = len(backoffs) + 1 if isinstance(backoffs, collections.abc.Sized) else None
    backoff: Optional[float]
    for retry, backoff in enumerate(itertools.chain(backoffs, [None]), start=1):
        idx = f"#{retry}/{count}" if count is not None else f"#{retry}"
        what = f"{method.upper()} {url}"
        try:
            if retry > 1:
                logger.debug(f"Request attempt {idx}: {what}")

            try:
                response = await context.session.request(
                    method=method,
                    url=url,
                    json=payload,
                    headers=headers,
                    timeout=timeout,
                )
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                raise errors.wrap_transport_error(e) from e
            await errors.check_response(response)  # but do not parse it!

        except (errors.TransportError, errors.APIServerError, errors.APITooManyRequestsError) as e:
            if backoff is None:  # i.e. the last or the only attempt.
                if count != 1:
                    logger.error(f"Request attempt {idx} failed; escalating: {what} -> {e!r}")
                raise
            else:
                logger.error(f"Request attempt {idx} failed; will retry: {what} -> {e!r}")
                await asyncio.sleep(backoff)  # non-awakable! but still cancellable.
        else:
            if retry > 1:
                logger.debug(f"Request attempt {idx} succeeded: {what}")
            return response

    raise RuntimeError("Broken retryable routine.")  # impossible, but needed for type-checking.


async def get(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='get',
        url=url,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await parse_json(response)


async def post(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='post',
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await parse_json(response)


async def patch(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='patch',
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await parse_json(response)


async def delete(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='delete',
        url=url,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await parse_json(response)


async def parse_json(response: aiohttp.ClientResponse) -> Any:
    """
    Parse the response's body, tolerating the empty bodies (``None``).

    Atlas responds with empty bodies and arbitrary content types to some
    of the accepted requests (e.g. 202 for deletion), which the strict
    ``response.json()`` of aiohttp would reject.
    """
    text = await response.text()
    return json.loads(text) if text.strip() else None
