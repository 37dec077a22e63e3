import ssl
from typing import Any, Dict, Optional

import aiohttp

from matlas.helpers import versions
from matlas.structs import credentials


class APIContext:
    """
    A container for an aiohttp session and the connection's environment info.

    The context is constructed once per provider's run, and is passed explicitly
    to every API call -- there is no global or ambient client in the provider.
    It is used read-only and is shared by all the calls of the run; it carries
    no client-side session state that would require locking.

    It must be constructed inside a running event loop (as aiohttp requires),
    and closed when no longer needed, preferably as an async context manager::

        async with APIContext(info) as context:
            await clusters.read_cluster(..., context=context)
    """

    # The main contained object used by the API methods.
    session: aiohttp.ClientSession

    # Contextual information for URL building.
    server: str

    def __init__(
            self,
            info: credentials.ConnectionInfo,
    ) -> None:
        super().__init__()
        info.verify()
        self.session = self.make_aiohttp_session(info)
        self.server = info.server

    async def __aenter__(self) -> "APIContext":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def make_aiohttp_session(self, info: credentials.ConnectionInfo) -> aiohttp.ClientSession:

        # The SSL part (CA verification only: Atlas does not use client certificates).
        context = ssl.create_default_context(cafile=info.ca_path)
        if info.insecure:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        # It is a good practice to self-identify a bit.
        headers: Dict[str, str] = {
            'Accept': 'application/json',
            'User-Agent': f'matlas/{versions.version or "unknown"}',
        }

        # The token auth part.
        if info.scheme and info.token:
            headers['Authorization'] = f'{info.scheme} {info.token}'
        elif info.token:
            headers['Authorization'] = f'Bearer {info.token}'

        # The programmatic API keys part: Atlas only accepts them via HTTP Digest auth.
        digest: Optional[aiohttp.DigestAuthMiddleware]
        if info.public_key and info.private_key and not info.token:
            digest = aiohttp.DigestAuthMiddleware(login=info.public_key, password=info.private_key)
        else:
            digest = None

        return aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(
                limit=0,
                ssl=context,
            ),
            headers=headers,
            middlewares=(digest,) if digest is not None else (),
        )

    async def close(self) -> None:
        await self.session.close()
