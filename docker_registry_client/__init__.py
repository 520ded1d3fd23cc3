"""Async Docker Registry API client with v1/v2 version negotiation.

Quick Start:
    import docker_registry_client as drc

    # Talk to whichever API version the registry supports
    async with await drc.create_client(name="alpine") as client:
        print(client.version, await client.list_tags())

    # Check credentials, like `docker login`
    result = await drc.login(index="quay.io", username="me", password="secret")
    print(result.status)

Version-specific access (no negotiation):
    create_client_v2, ping_v2, supports_v2, login_v2
    create_client_v1, ping_index_v1, login_v1
"""

__version__ = "0.1.0"

from .common import (
    DEFAULT_INDEX_NAME,
    DEFAULT_INDEX_URL,
    DEFAULT_TAG,
    DEFAULT_V2_REGISTRY,
    IndexInfo,
    RepoInfo,
    parse_index,
    parse_repo,
    parse_repo_and_ref,
    parse_repo_and_tag,
)
from .errors import (
    InvalidRepositoryError,
    InvalidVersionError,
    RegistryClientError,
    RegistryHTTPError,
    TransportError,
    UnauthorizedError,
)
from .negotiation import RegistryClient, create_client, login
from .registry_client_v1 import RegistryClientV1
from .registry_client_v1 import create_client as create_client_v1
from .registry_client_v1 import login as login_v1
from .registry_client_v1 import ping_index as ping_index_v1
from .registry_client_v2 import RegistryClientV2
from .registry_client_v2 import create_client as create_client_v2
from .registry_client_v2 import login as login_v2
from .registry_client_v2 import ping as ping_v2
from .registry_client_v2 import supports_v2
from .types import (
    ClientHandle,
    ClientOptions,
    Credentials,
    LoginContext,
    LoginOptions,
    LoginResult,
    PingResult,
)

__all__ = [
    "__version__",
    # Negotiating entry points
    "create_client",
    "login",
    "RegistryClient",
    # v2
    "create_client_v2",
    "ping_v2",
    "supports_v2",
    "login_v2",
    "RegistryClientV2",
    # v1
    "create_client_v1",
    "ping_index_v1",
    "login_v1",
    "RegistryClientV1",
    # Repository parsing
    "DEFAULT_INDEX_NAME",
    "DEFAULT_INDEX_URL",
    "DEFAULT_TAG",
    "DEFAULT_V2_REGISTRY",
    "IndexInfo",
    "RepoInfo",
    "parse_index",
    "parse_repo",
    "parse_repo_and_ref",
    "parse_repo_and_tag",
    # Types
    "ClientHandle",
    "ClientOptions",
    "Credentials",
    "LoginContext",
    "LoginOptions",
    "LoginResult",
    "PingResult",
    # Errors
    "RegistryClientError",
    "InvalidVersionError",
    "InvalidRepositoryError",
    "TransportError",
    "RegistryHTTPError",
    "UnauthorizedError",
]
