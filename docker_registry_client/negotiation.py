"""Pick the registry API version to talk to.

Registries speak either the legacy v1 API or the v2 API. ``create_client``
and ``login`` find out which one a registry implements so callers do not
have to.
"""

from typing import Optional, Union

import structlog

from . import registry_client_v1 as reg1
from . import registry_client_v2 as reg2
from .errors import InvalidVersionError, TransportError
from .http import options_index
from .types import (
    BaseOptions,
    ClientOptions,
    LoginContext,
    LoginResult,
    coerce_login_options,
    coerce_options,
)

logger = structlog.stdlib.get_logger(__name__)

RegistryClient = Union[reg1.RegistryClientV1, reg2.RegistryClientV2]


async def create_client(
    options: Optional[ClientOptions] = None, **kwargs
) -> RegistryClient:
    """Create a Docker Registry API client.

    If ``version`` is given, returns a client for that API version without
    talking to the registry. Otherwise pings the registry once and returns a
    v2 client if it supports the v2 API, or a v1 client if it does not.

    Args:
        options: ClientOptions with at least the repository ``name``
            (e.g., "busybox", "joshwilsdon/nodejs", "quay.io/quay/elasticsearch")
        **kwargs: Fields for a ClientOptions when no options are given

    Returns:
        RegistryClientV1 or RegistryClientV2; the caller owns it and should
        close it (it is an async context manager)

    Raises:
        InvalidVersionError: If ``version`` is set to anything but 1 or 2
            (2.0 counts as 2, 1.5 does not)
        TransportError: If auto-detecting and the registry could not be reached
    """
    options = coerce_options(ClientOptions, options, kwargs)

    if options.version == 1:
        return reg1.create_client(options)
    elif options.version == 2:
        return reg2.create_client(options)
    elif options.version is not None:
        raise InvalidVersionError(options.version)

    client = reg2.create_client(options)
    try:
        supports_v2 = await client.supports_v2()
    except Exception:
        await client.close()
        raise

    if supports_v2:
        logger.debug("Registry supports v2", name=options.name, url=client.base_url)
        return client

    await client.close()
    logger.info("Registry does not support v2, falling back to v1", name=options.name)
    return reg1.create_client(options)


async def login(options: Optional[BaseOptions] = None, **kwargs) -> LoginResult:
    """Log in to a Docker registry.

    Only tests the given credentials against the registry, the same way
    ``docker login`` does. The registry is pinged on the v2 API first; a
    404 means it only speaks v1, anything else is handed to the v2 login
    together with the ping response so it does not have to ping again.

    Args:
        options: LoginOptions with the registry (``index`` or ``name``) and
            the credentials. A ClientOptions works too, the registry is
            then taken from its repository name.
        **kwargs: Fields for a LoginOptions when no options are given

    Raises:
        TransportError: If the registry could not be reached. No v1 login is
            attempted in that case.
        UnauthorizedError: If the credentials are rejected
        RegistryHTTPError: For unexpected registry answers
    """
    options = coerce_login_options(options, kwargs)
    index = options_index(options)

    result = await reg2.ping(options)
    if result.response is None:
        error = result.error or TransportError("no error and no response from v2 ping")
        logger.warning(
            "Registry login failed, v2 ping got no response",
            index=index.name,
            error=str(error),
        )
        raise error

    if result.response.status_code == 404:
        logger.info(
            "Registry does not support v2, logging in with v1",
            index=index.name,
        )
        return await reg1.login(options)

    # Hand over the ping so the v2 login does not need to repeat it for
    # the WWW-Authenticate header.
    context = LoginContext(
        credentials=options.credentials,
        ping_response=result.response,
        ping_error=result.error,
    )
    return await reg2.login(options, context=context)
