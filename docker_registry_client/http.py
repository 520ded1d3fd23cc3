"""HTTP plumbing shared by the v1 and v2 registry clients.

Builds httpx clients from per-call options and settings, and turns
transport-level httpx failures into TransportError. No dependencies on
the protocol clients so both can use it.
"""

import base64
import re
from typing import Optional

import httpx
import structlog

from .common import (
    DEFAULT_INDEX_URL,
    DEFAULT_V2_REGISTRY,
    IndexInfo,
    parse_index,
    parse_repo_and_ref,
)
from .errors import TransportError
from .settings import settings
from .types import BaseOptions

logger = structlog.stdlib.get_logger(__name__)

API_VERSION_HEADER = "Docker-Distribution-API-Version"

_CHALLENGE_PARAM_RE = re.compile(r'(\w+)=(?:"([^"]*)"|([^\s,]+))')


def is_insecure(options: BaseOptions) -> bool:
    if options.insecure is None:
        return settings.REGISTRY_INSECURE
    return options.insecure


def options_index(options: BaseOptions) -> IndexInfo:
    """Find the index an options object points at.

    An explicit ``index`` wins over the index part of ``name``; with neither
    the official index is used.
    """
    index = getattr(options, "index", None)
    if index:
        return parse_index(index)
    name = getattr(options, "name", None)
    if name:
        return parse_repo_and_ref(name).index
    return parse_index(None)


def registry_url(index: IndexInfo, options: BaseOptions, v2: bool) -> str:
    """Get the base URL (no trailing slash) for an index.

    Docker Hub serves the two API versions from different hosts. For any
    other index the scheme is, in order of preference: the ``scheme``
    option, the scheme given in the index string, http for insecure
    registries, https.
    """
    if index.official and not options.scheme:
        return DEFAULT_V2_REGISTRY if v2 else DEFAULT_INDEX_URL

    if options.scheme:
        scheme = options.scheme
    elif index.scheme:
        scheme = index.scheme
    elif is_insecure(options):
        scheme = "http"
    else:
        scheme = "https"

    host = index.name
    if index.official:
        host = "registry-1.docker.io" if v2 else "index.docker.io"

    return f"{scheme}://{host}"


def create_http_client(
    options: BaseOptions,
    base_url: str = "",
    auth_header: Optional[str] = None,
) -> httpx.AsyncClient:
    """Create an async HTTP client configured from options and settings.

    Args:
        options: Per-call options (timeouts, TLS, transport overrides)
        base_url: Optional base URL for relative request paths
        auth_header: Optional Authorization header value sent on every request

    Returns:
        An httpx.AsyncClient; the caller is responsible for closing it
    """
    timeout = options.timeout or settings.REGISTRY_TIMEOUT
    headers = {
        "User-Agent": options.user_agent or settings.REGISTRY_USER_AGENT,
    }
    if auth_header:
        headers["Authorization"] = auth_header

    kwargs = {}
    if options.transport is not None:
        kwargs["transport"] = options.transport

    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=httpx.Timeout(
            timeout,
            connect=min(timeout, settings.REGISTRY_CONNECT_TIMEOUT),
        ),
        verify=not is_insecure(options),
        follow_redirects=True,
        **kwargs,
    )


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> httpx.Response:
    """Send a request, converting transport failures to TransportError.

    HTTP error statuses are returned as-is; deciding what they mean is up
    to the caller.

    Raises:
        TransportError: If no response could be obtained
    """
    target = str(client.base_url.join(url))
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        logger.warning(
            "Timeout talking to registry", method=method, url=target, error=str(e)
        )
        raise TransportError(f"timeout on {method} {target}: {e}", url=target) from e
    except httpx.TransportError as e:
        logger.warning(
            "Could not reach registry", method=method, url=target, error=str(e)
        )
        raise TransportError(f"could not reach {target}: {e}", url=target) from e

    logger.debug(
        "Registry response received",
        method=method,
        url=str(response.url),
        status_code=response.status_code,
    )
    return response


def basic_auth_header(username: Optional[str], password: Optional[str]) -> Optional[str]:
    """Get a Basic Authorization header value, or None without credentials."""
    if not username and not password:
        return None

    credentials = f"{username or ''}:{password or ''}"
    encoded = base64.b64encode(credentials.encode()).decode()
    return f"Basic {encoded}"


def parse_www_authenticate(header: Optional[str]) -> tuple[Optional[str], dict[str, str]]:
    """Parse a WWW-Authenticate challenge.

    Example:
        'Bearer realm="https://auth.docker.io/token",service="registry.docker.io"'
        -> ("bearer", {"realm": "https://auth.docker.io/token", "service": "registry.docker.io"})

    Returns:
        Lower-cased scheme and its parameters, or (None, {}) for an empty header
    """
    if not header or not header.strip():
        return None, {}

    scheme, _, params_str = header.strip().partition(" ")
    params = {
        key.lower(): quoted or bare
        for key, quoted, bare in _CHALLENGE_PARAM_RE.findall(params_str)
    }
    return scheme.lower(), params


def supports_api_v2(response: httpx.Response) -> bool:
    """Check the Docker-Distribution-API-Version header for "registry/2.0"."""
    header = response.headers.get(API_VERSION_HEADER, "")
    return "registry/2.0" in re.split(r"[\s,]+", header.strip())
