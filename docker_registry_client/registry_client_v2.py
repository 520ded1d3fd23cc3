"""Docker Registry HTTP API V2 client.

See: https://docs.docker.com/registry/spec/api/
and https://docs.docker.com/registry/spec/auth/token/ for the token flow
used by Docker Hub and most hosted registries.
"""

from typing import Any, Optional

import httpx
import structlog

from .common import DEFAULT_TAG, RepoInfo, parse_repo_and_ref
from .errors import RegistryHTTPError, TransportError, UnauthorizedError
from .http import (
    basic_auth_header,
    create_http_client,
    options_index,
    parse_www_authenticate,
    registry_url,
    send,
    supports_api_v2,
)
from .types import (
    BaseOptions,
    ClientOptions,
    Credentials,
    LoginContext,
    LoginResult,
    PingResult,
    coerce_login_options,
    coerce_options,
)

logger = structlog.stdlib.get_logger(__name__)

LOGIN_SUCCEEDED = "Login Succeeded"

MANIFEST_MEDIA_TYPES = ", ".join(
    [
        "application/vnd.docker.distribution.manifest.v2+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
        "application/vnd.oci.image.manifest.v1+json",
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.docker.distribution.manifest.v1+prettyjws",
    ]
)


async def _ping(client: httpx.AsyncClient) -> PingResult:
    try:
        response = await send(client, "GET", "/v2/")
    except TransportError as e:
        return PingResult(response=None, error=e)

    error = None
    if not response.is_success:
        error = RegistryHTTPError.from_response(response)

    logger.debug(
        "Registry v2 ping",
        url=str(response.url),
        status_code=response.status_code,
        api_version=response.headers.get("Docker-Distribution-API-Version"),
    )
    return PingResult(response=response, error=error)


async def ping(options: Optional[BaseOptions] = None, **kwargs) -> PingResult:
    """Ping the v2 API base endpoint of a registry.

    Never raises for network or HTTP failures. A registry that could not be
    reached gives a result with no response and a TransportError; a non-2xx
    answer gives both the response and a RegistryHTTPError.

    Args:
        options: LoginOptions or ClientOptions identifying the registry
        **kwargs: Fields for a LoginOptions when no options are given
    """
    options = coerce_login_options(options, kwargs)
    base_url = registry_url(options_index(options), options, v2=True)

    async with create_http_client(options, base_url=base_url) as client:
        return await _ping(client)


def _supports_v2(result: PingResult) -> bool:
    if result.response is None:
        raise result.error or TransportError("v2 ping returned no response")

    response = result.response
    if response.status_code not in (200, 401):
        return False
    return supports_api_v2(response)


async def supports_v2(options: Optional[BaseOptions] = None, **kwargs) -> bool:
    """Check whether a registry implements the v2 API.

    Raises:
        TransportError: If the registry could not be reached
    """
    return _supports_v2(await ping(options, **kwargs))


async def _fetch_token(
    client: httpx.AsyncClient,
    challenge: dict[str, str],
    credentials: Credentials,
    scope: Optional[str] = None,
) -> str:
    """Get a bearer token from the realm named in a WWW-Authenticate challenge.

    Raises:
        UnauthorizedError: If the token server rejects the credentials
        RegistryHTTPError: For any other failure answer from the token server
    """
    realm = challenge["realm"]
    params = {}
    if challenge.get("service"):
        params["service"] = challenge["service"]
    if scope:
        params["scope"] = scope
    if credentials.username:
        params["account"] = credentials.username

    headers = {}
    auth_header = basic_auth_header(credentials.username, credentials.password)
    if auth_header:
        headers["Authorization"] = auth_header

    logger.info("Requesting registry token", realm=realm, service=params.get("service"), scope=scope)

    response = await send(client, "GET", realm, params=params, headers=headers)

    if response.status_code in (401, 403):
        raise UnauthorizedError.from_response(
            response, "token server rejected the credentials"
        )
    if not response.is_success:
        raise RegistryHTTPError.from_response(response)

    try:
        body = response.json()
    except ValueError:
        body = {}
    token = None
    if isinstance(body, dict):
        token = body.get("token") or body.get("access_token")
    if not token:
        raise RegistryHTTPError(
            f"token server at {realm} returned no token", response=response
        )
    return token


async def _login(client: httpx.AsyncClient, context: LoginContext) -> LoginResult:
    response = context.ping_response
    if response is None:
        raise context.ping_error or TransportError("v2 ping returned no response")

    if response.is_success:
        logger.info("Registry requires no authentication", url=str(response.url))
        return LoginResult(status=LOGIN_SUCCEEDED, version=2)

    if response.status_code != 401:
        raise context.ping_error or RegistryHTTPError.from_response(response)

    scheme, challenge = parse_www_authenticate(response.headers.get("WWW-Authenticate"))
    credentials = context.credentials

    if scheme == "bearer" and challenge.get("realm"):
        await _fetch_token(client, challenge, credentials)
    elif scheme == "basic":
        headers = {}
        auth_header = basic_auth_header(credentials.username, credentials.password)
        if auth_header:
            headers["Authorization"] = auth_header
        check = await send(client, "GET", "/v2/", headers=headers)
        if check.status_code == 401:
            raise UnauthorizedError.from_response(
                check, "registry rejected the credentials"
            )
        if not check.is_success:
            raise RegistryHTTPError.from_response(check)
    else:
        raise RegistryHTTPError.from_response(
            response,
            f"unsupported authentication challenge from {response.url}: "
            f"{response.headers.get('WWW-Authenticate')!r}",
        )

    logger.info(
        "Registry v2 login succeeded",
        url=str(client.base_url),
        username=credentials.username,
    )
    return LoginResult(status=LOGIN_SUCCEEDED, version=2)


async def login(
    options: Optional[BaseOptions] = None,
    context: Optional[LoginContext] = None,
    **kwargs,
) -> LoginResult:
    """Verify credentials against a v2 registry.

    Args:
        options: LoginOptions identifying the registry and the credentials
        context: Result of an earlier ping of the same registry. When given,
            the registry is not pinged again and the credentials in the
            context are used.
        **kwargs: Fields for a LoginOptions when no options are given

    Raises:
        TransportError: If the registry could not be reached
        UnauthorizedError: If the credentials are rejected
        RegistryHTTPError: For unexpected registry answers
    """
    options = coerce_login_options(options, kwargs)
    base_url = registry_url(options_index(options), options, v2=True)

    async with create_http_client(options, base_url=base_url) as client:
        if context is None:
            result = await _ping(client)
            context = LoginContext(
                credentials=options.credentials,
                ping_response=result.response,
                ping_error=result.error,
            )
        return await _login(client, context)


class RegistryClientV2:
    """Client for one repository on a v2 registry.

    Example:
        async with create_client(name="alpine") as client:
            tags = await client.list_tags()
    """

    version = 2

    def __init__(self, options: ClientOptions):
        self.options = options
        self.repo: RepoInfo = parse_repo_and_ref(options.name)
        self.base_url = registry_url(self.repo.index, options, v2=True)
        self._client = create_http_client(options, base_url=self.base_url)
        self._auth_header: Optional[str] = None

    def __repr__(self) -> str:
        return f"<RegistryClientV2 {self.repo.canonical_name} at {self.base_url}>"

    async def __aenter__(self) -> "RegistryClientV2":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def ping(self) -> PingResult:
        return await _ping(self._client)

    async def supports_v2(self) -> bool:
        """Check whether the registry implements the v2 API.

        Raises:
            TransportError: If the registry could not be reached
        """
        return _supports_v2(await self.ping())

    async def login(self, context: Optional[LoginContext] = None) -> LoginResult:
        if context is None:
            result = await self.ping()
            context = LoginContext(
                credentials=self.options.credentials,
                ping_response=result.response,
                ping_error=result.error,
            )
        return await _login(self._client, context)

    async def _authorize(self, response: httpx.Response, scope: str) -> bool:
        """Pick up credentials for a 401 answer. Returns False if there is no way to."""
        scheme, challenge = parse_www_authenticate(response.headers.get("WWW-Authenticate"))
        credentials = self.options.credentials

        if scheme == "bearer" and challenge.get("realm"):
            token = await _fetch_token(
                self._client, challenge, credentials, scope=challenge.get("scope") or scope
            )
            self._auth_header = f"Bearer {token}"
            return True
        if scheme == "basic" and credentials:
            self._auth_header = basic_auth_header(credentials.username, credentials.password)
            return True
        return False

    async def _request(self, method: str, path: str, headers: Optional[dict] = None) -> httpx.Response:
        scope = f"repository:{self.repo.remote_name}:pull"
        headers = dict(headers or {})

        for attempt in range(2):
            if self._auth_header:
                headers["Authorization"] = self._auth_header
            response = await send(self._client, method, path, headers=headers)
            if response.status_code != 401 or attempt > 0:
                break
            if not await self._authorize(response, scope):
                break

        if response.status_code == 401:
            raise UnauthorizedError.from_response(response)
        if not response.is_success:
            raise RegistryHTTPError.from_response(response)
        return response

    async def list_tags(self) -> list[str]:
        """List the tags of the repository."""
        response = await self._request("GET", f"/v2/{self.repo.remote_name}/tags/list")
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise RegistryHTTPError.from_response(response, "malformed tag list")
        return body.get("tags") or []

    async def get_manifest(self, ref: Optional[str] = None) -> dict[str, Any]:
        """Get a manifest by tag or digest.

        Args:
            ref: Tag or digest. Defaults to the reference the client was
                created with, then "latest".
        """
        ref = ref or self.repo.reference or DEFAULT_TAG
        response = await self._request(
            "GET",
            f"/v2/{self.repo.remote_name}/manifests/{ref}",
            headers={"Accept": MANIFEST_MEDIA_TYPES},
        )
        return response.json()


def create_client(options: Optional[ClientOptions] = None, **kwargs) -> RegistryClientV2:
    """Create a v2 client without checking what the registry supports."""
    options = coerce_options(ClientOptions, options, kwargs)
    return RegistryClientV2(options)
