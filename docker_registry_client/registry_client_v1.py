"""Docker Registry (index) API V1 client.

Only the parts of the legacy API still useful against old registries:
index ping, the account login dance and listing repository tags.

See: https://docs.docker.com/v1.6/reference/api/registry_api/
"""

from typing import Any, Optional

import httpx
import structlog

from .common import RepoInfo, parse_repo_and_ref
from .errors import RegistryHTTPError, UnauthorizedError
from .http import (
    basic_auth_header,
    create_http_client,
    options_index,
    registry_url,
    send,
)
from .types import (
    BaseOptions,
    ClientOptions,
    Credentials,
    LoginResult,
    coerce_login_options,
    coerce_options,
)

logger = structlog.stdlib.get_logger(__name__)

LOGIN_SUCCEEDED = "Login Succeeded"
ACCOUNT_CREATED = (
    "Account created. Please use the confirmation link we sent to your "
    "e-mail to activate it."
)


async def _ping_index(client: httpx.AsyncClient) -> Any:
    response = await send(client, "GET", "/v1/_ping")
    if not response.is_success:
        raise RegistryHTTPError.from_response(response)

    logger.debug(
        "Registry v1 ping",
        url=str(response.url),
        status_code=response.status_code,
        standalone=response.headers.get("X-Docker-Registry-Standalone"),
    )
    try:
        return response.json()
    except ValueError:
        return None


async def ping_index(options: Optional[BaseOptions] = None, **kwargs) -> Any:
    """Ping the v1 index of a registry.

    Returns:
        Decoded JSON body of the ping (usually ``true``), or None if the
        body is not JSON

    Raises:
        TransportError: If the index could not be reached
        RegistryHTTPError: If the index answers with a non-2xx status
    """
    options = coerce_login_options(options, kwargs)
    base_url = registry_url(options_index(options), options, v2=False)

    async with create_http_client(options, base_url=base_url) as client:
        return await _ping_index(client)


async def _login(client: httpx.AsyncClient, credentials: Credentials) -> LoginResult:
    # Docker's v1 login first tries to register the account and only
    # checks the credentials once the index says the account exists.
    response = await send(
        client,
        "POST",
        "/v1/users/",
        json={
            "username": credentials.username,
            "password": credentials.password,
            "email": credentials.email,
        },
    )

    if response.status_code == 201:
        logger.info("Registry v1 account created", username=credentials.username)
        return LoginResult(status=ACCOUNT_CREATED, version=1)

    if response.status_code == 401:
        raise UnauthorizedError.from_response(response, "Wrong login/password, please try again")

    if response.status_code != 400 or "already exists" not in response.text:
        raise RegistryHTTPError.from_response(
            response, f"Registration: {response.text.strip() or response.status_code}"
        )

    headers = {}
    auth_header = basic_auth_header(credentials.username, credentials.password)
    if auth_header:
        headers["Authorization"] = auth_header
    check = await send(client, "GET", "/v1/users/", headers=headers)

    if check.status_code == 200:
        logger.info("Registry v1 login succeeded", username=credentials.username)
        return LoginResult(status=LOGIN_SUCCEEDED, version=1)
    if check.status_code == 401:
        raise UnauthorizedError.from_response(check, "Wrong login/password, please try again")
    if check.status_code == 403:
        raise UnauthorizedError.from_response(
            check,
            "Login: Account is not Active. Please check your e-mail for a "
            "confirmation link.",
        )
    raise RegistryHTTPError.from_response(
        check, f"Login: {check.text.strip() or check.status_code}"
    )


async def login(options: Optional[BaseOptions] = None, **kwargs) -> LoginResult:
    """Verify credentials against a v1 index.

    Raises:
        TransportError: If the index could not be reached
        UnauthorizedError: If the credentials are rejected or the account is inactive
        RegistryHTTPError: For unexpected index answers
    """
    options = coerce_login_options(options, kwargs)
    base_url = registry_url(options_index(options), options, v2=False)

    async with create_http_client(options, base_url=base_url) as client:
        return await _login(client, options.credentials)


class RegistryClientV1:
    """Client for one repository on a v1 index."""

    version = 1

    def __init__(self, options: ClientOptions):
        self.options = options
        self.repo: RepoInfo = parse_repo_and_ref(options.name)
        self.base_url = registry_url(self.repo.index, options, v2=False)
        credentials = options.credentials
        self._client = create_http_client(
            options,
            base_url=self.base_url,
            auth_header=basic_auth_header(credentials.username, credentials.password),
        )

    def __repr__(self) -> str:
        return f"<RegistryClientV1 {self.repo.canonical_name} at {self.base_url}>"

    async def __aenter__(self) -> "RegistryClientV1":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def ping(self) -> Any:
        return await _ping_index(self._client)

    async def login(self) -> LoginResult:
        return await _login(self._client, self.options.credentials)

    async def list_repo_tags(self) -> dict[str, str]:
        """List the tags of the repository.

        Returns:
            Mapping of tag name to image id
        """
        response = await send(
            self._client,
            "GET",
            f"/v1/repositories/{self.repo.remote_name}/tags",
            headers={"X-Docker-Token": "true"},
        )
        if response.status_code == 401:
            raise UnauthorizedError.from_response(response)
        if not response.is_success:
            raise RegistryHTTPError.from_response(response)

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            return body
        # Older indexes answer with a list of {"name": ..., "layer": ...}
        if isinstance(body, list) and all(
            isinstance(item, dict) and "name" in item and "layer" in item for item in body
        ):
            return {item["name"]: item["layer"] for item in body}
        raise RegistryHTTPError.from_response(response, "malformed tag list")


def create_client(options: Optional[ClientOptions] = None, **kwargs) -> RegistryClientV1:
    """Create a v1 client without checking what the registry supports."""
    options = coerce_options(ClientOptions, options, kwargs)
    return RegistryClientV1(options)
