"""
Authentication-related structures.

A minimally sufficient data structure is introduced to bring all
the credentials together in a structured and type-annotated way.

The information is used for the HTTP protocol and TCP/SSL connection only,
i.e. everything usable in a generic HTTP client, and nothing more than that:

* The Atlas server's base URL (e.g. for Atlas for Government).
* SSL verification/ignorance flag.
* SSL certificate authority.
* The programmatic API key pair (public & private keys) for HTTP Digest auth.
* HTTP ``Authorization: Bearer token`` (e.g. for service accounts' tokens).
"""
import dataclasses
from typing import Optional

DEFAULT_SERVER = 'https://cloud.mongodb.com'


class LoginError(Exception):
    """ Raised when the provider cannot login to the API. """


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """
    A single endpoint with specific credentials and connection flags to use.
    """
    server: str = DEFAULT_SERVER
    ca_path: Optional[str] = None
    insecure: Optional[bool] = None
    public_key: Optional[str] = None
    private_key: Optional[str] = None
    scheme: Optional[str] = None  # RFC-7235/5.1: e.g. Bearer, Basic, etc.
    token: Optional[str] = None

    def __repr__(self) -> str:
        # Never expose the secrets in the logs or tracebacks.
        return (f'{self.__class__.__name__}(server={self.server!r}, '
                f'public_key={self.public_key!r}, '
                f'private_key={"***" if self.private_key else None}, '
                f'token={"***" if self.token else None})')

    def verify(self) -> None:
        if bool(self.public_key) != bool(self.private_key):
            raise LoginError("Both the public and the private API keys must be provided.")
        if not self.public_key and not self.token:
            raise LoginError("Neither the API keys nor the token are provided.")
