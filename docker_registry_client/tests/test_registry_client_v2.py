import base64

import httpx
import pytest

from docker_registry_client import registry_client_v2 as reg2
from docker_registry_client.errors import (
    RegistryHTTPError,
    TransportError,
    UnauthorizedError,
)
from docker_registry_client.tests.fixtures_registry import (
    V2_HEADERS,
    FakeRegistry,
    connect_error,
    v2_challenge,
    v2_ok,
)
from docker_registry_client.types import Credentials, LoginContext, LoginOptions

BASE = "https://registry.example.com"
PING = f"{BASE}/v2/"
REALM = "https://auth.example.com/token"
CHALLENGE = f'Bearer realm="{REALM}",service="registry.example.com"'


def _options(registry: FakeRegistry, **kwargs) -> LoginOptions:
    return LoginOptions(
        index="registry.example.com",
        username="alice",
        password="s3cret",
        transport=registry.transport,
        **kwargs,
    )


def _basic(username: str, password: str) -> str:
    return "Basic " + base64.b64encode(f"{username}:{password}".encode()).decode()


class TestPing:
    async def test_ok(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_ok())

        result = await reg2.ping(_options(registry))

        assert result.response.status_code == 200
        assert result.error is None
        assert result.body == {}

    async def test_error_status_keeps_response(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge(CHALLENGE))

        result = await reg2.ping(_options(registry))

        assert result.response.status_code == 401
        assert isinstance(result.error, RegistryHTTPError)
        assert result.error.status_code == 401
        assert result.error.code == "UNAUTHORIZED"

    async def test_transport_failure_has_no_response(self, registry: FakeRegistry):
        registry.add("GET", PING, connect_error())

        result = await reg2.ping(_options(registry))

        assert result.response is None
        assert isinstance(result.error, TransportError)
        assert isinstance(result.error.__cause__, httpx.ConnectError)
        assert result.body is None

    async def test_accepts_keyword_arguments(self, registry: FakeRegistry):
        registry.add("GET", "http://localhost:5000/v2/", v2_ok())

        result = await reg2.ping(
            index="localhost:5000", insecure=True, transport=registry.transport
        )

        assert result.response.status_code == 200

    async def test_does_not_send_credentials(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_ok())

        await reg2.ping(_options(registry))

        assert "Authorization" not in registry.requests[0].headers


class TestSupportsV2:
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={}, headers=V2_HEADERS),
            httpx.Response(401, headers={**V2_HEADERS, "WWW-Authenticate": CHALLENGE}),
            httpx.Response(
                200, headers={"Docker-Distribution-API-Version": "registry/2.0, other/1"}
            ),
        ],
    )
    async def test_supported(self, registry: FakeRegistry, response: httpx.Response):
        registry.add("GET", PING, response)

        assert await reg2.supports_v2(_options(registry)) is True

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(404),
            httpx.Response(200, json={}),
            httpx.Response(500, headers=V2_HEADERS),
        ],
    )
    async def test_not_supported(self, registry: FakeRegistry, response: httpx.Response):
        registry.add("GET", PING, response)

        assert await reg2.supports_v2(_options(registry)) is False

    async def test_transport_failure_raises(self, registry: FakeRegistry):
        registry.add("GET", PING, connect_error())

        with pytest.raises(TransportError):
            await reg2.supports_v2(_options(registry))


class TestLogin:
    async def test_bearer_token_flow(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge(CHALLENGE))
        registry.add("GET", REALM, httpx.Response(200, json={"token": "tok"}))

        result = await reg2.login(_options(registry))

        assert result.status == "Login Succeeded"
        assert result.version == 2
        assert registry.count("GET", PING) == 1

        token_request = registry.requests[-1]
        assert token_request.headers["Authorization"] == _basic("alice", "s3cret")
        assert token_request.url.params["service"] == "registry.example.com"
        assert token_request.url.params["account"] == "alice"

    async def test_access_token_field(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge(CHALLENGE))
        registry.add("GET", REALM, httpx.Response(200, json={"access_token": "tok"}))

        result = await reg2.login(_options(registry))

        assert result.status == "Login Succeeded"

    async def test_bearer_rejected(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge(CHALLENGE))
        registry.add("GET", REALM, httpx.Response(401, json={"details": "incorrect username or password"}))

        with pytest.raises(UnauthorizedError) as exc_info:
            await reg2.login(_options(registry))

        assert exc_info.value.status_code == 401

    async def test_token_server_without_token(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge(CHALLENGE))
        registry.add("GET", REALM, httpx.Response(200, json={}))

        with pytest.raises(RegistryHTTPError, match="returned no token"):
            await reg2.login(_options(registry))

    async def test_basic_challenge(self, registry: FakeRegistry):
        def v2_endpoint(request: httpx.Request) -> httpx.Response:
            if request.headers.get("Authorization") == _basic("alice", "s3cret"):
                return httpx.Response(200, json={}, headers=V2_HEADERS)
            return v2_challenge('Basic realm="Registry Realm"')

        registry.add("GET", PING, v2_endpoint)

        result = await reg2.login(_options(registry))

        assert result.status == "Login Succeeded"
        assert registry.count("GET", PING) == 2

    async def test_basic_challenge_rejected(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge('Basic realm="Registry Realm"'))

        with pytest.raises(UnauthorizedError):
            await reg2.login(_options(registry))

    async def test_no_auth_required(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_ok())

        result = await reg2.login(_options(registry))

        assert result.status == "Login Succeeded"
        assert len(registry.requests) == 1

    async def test_unsupported_challenge(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge('Negotiate abc'))

        with pytest.raises(RegistryHTTPError, match="unsupported authentication challenge"):
            await reg2.login(_options(registry))

    async def test_server_error_raises_ping_error(self, registry: FakeRegistry):
        registry.add("GET", PING, httpx.Response(503, headers=V2_HEADERS))

        with pytest.raises(RegistryHTTPError) as exc_info:
            await reg2.login(_options(registry))

        assert exc_info.value.status_code == 503

    async def test_transport_failure(self, registry: FakeRegistry):
        registry.add("GET", PING, connect_error())

        with pytest.raises(TransportError):
            await reg2.login(_options(registry))

    async def test_reuses_ping_from_context(self, registry: FakeRegistry):
        registry.add("GET", REALM, httpx.Response(200, json={"token": "tok"}))
        ping_response = httpx.Response(
            401,
            headers={**V2_HEADERS, "WWW-Authenticate": CHALLENGE},
            request=httpx.Request("GET", PING),
        )
        context = LoginContext(
            credentials=Credentials(username="bob", password="hunter2"),
            ping_response=ping_response,
            ping_error=RegistryHTTPError.from_response(ping_response),
        )

        result = await reg2.login(_options(registry), context=context)

        assert result.status == "Login Succeeded"
        assert registry.count("GET", PING) == 0
        assert registry.requests[0].headers["Authorization"] == _basic("bob", "hunter2")

    async def test_context_without_response_raises_its_error(self, registry: FakeRegistry):
        error = TransportError("could not reach registry")
        context = LoginContext(credentials=Credentials(), ping_error=error)

        with pytest.raises(TransportError) as exc_info:
            await reg2.login(_options(registry), context=context)

        assert exc_info.value is error
        assert registry.requests == []


class TestRegistryClientV2:
    async def test_docker_hub_host(self):
        async with reg2.create_client(name="busybox") as client:
            assert client.version == 2
            assert client.base_url == "https://registry-1.docker.io"
            assert client.repo.remote_name == "library/busybox"

    async def test_list_tags_with_token(self, registry: FakeRegistry):
        tags_url = f"{BASE}/v2/foo/bar/tags/list"

        def tags(request: httpx.Request) -> httpx.Response:
            if request.headers.get("Authorization") == "Bearer tok":
                return httpx.Response(200, json={"name": "foo/bar", "tags": ["1.0", "latest"]})
            return v2_challenge(
                f'{CHALLENGE},scope="repository:foo/bar:pull"'
            )

        registry.add("GET", tags_url, tags)
        registry.add("GET", REALM, httpx.Response(200, json={"token": "tok"}))

        async with reg2.create_client(
            name="registry.example.com/foo/bar", transport=registry.transport
        ) as client:
            assert await client.list_tags() == ["1.0", "latest"]
            assert await client.list_tags() == ["1.0", "latest"]

        # The token is fetched once and reused
        assert registry.count("GET", REALM) == 1
        token_request = [r for r in registry.requests if str(r.url).startswith(REALM)][0]
        assert token_request.url.params["scope"] == "repository:foo/bar:pull"

    async def test_get_manifest_uses_parsed_tag(self, registry: FakeRegistry):
        manifest = {"schemaVersion": 2, "layers": []}
        registry.add(
            "GET", f"{BASE}/v2/foo/bar/manifests/1.0", httpx.Response(200, json=manifest)
        )

        async with reg2.create_client(
            name="registry.example.com/foo/bar:1.0", transport=registry.transport
        ) as client:
            assert await client.get_manifest() == manifest

        assert "application/vnd.docker.distribution.manifest.v2+json" in (
            registry.requests[0].headers["Accept"]
        )

    async def test_missing_manifest(self, registry: FakeRegistry):
        async with reg2.create_client(
            name="registry.example.com/foo/bar", transport=registry.transport
        ) as client:
            with pytest.raises(RegistryHTTPError) as exc_info:
                await client.get_manifest("nope")

        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "NOT_FOUND"

    async def test_unauthorized_without_challenge(self, registry: FakeRegistry):
        registry.add(
            "GET", f"{BASE}/v2/foo/bar/tags/list", httpx.Response(401, json={})
        )

        async with reg2.create_client(
            name="registry.example.com/foo/bar", transport=registry.transport
        ) as client:
            with pytest.raises(UnauthorizedError):
                await client.list_tags()

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json=["1.0", "latest"]),
            httpx.Response(200, text="<html>not json</html>"),
        ],
    )
    async def test_malformed_tag_list(self, registry: FakeRegistry, response: httpx.Response):
        registry.add("GET", f"{BASE}/v2/foo/bar/tags/list", response)

        async with reg2.create_client(
            name="registry.example.com/foo/bar", transport=registry.transport
        ) as client:
            with pytest.raises(RegistryHTTPError, match="malformed tag list") as exc_info:
                await client.list_tags()

        assert exc_info.value.status_code == 200

    async def test_handle_login_pings_once(self, registry: FakeRegistry):
        registry.add("GET", PING, v2_challenge(CHALLENGE))
        registry.add("GET", REALM, httpx.Response(200, json={"token": "tok"}))

        async with reg2.create_client(
            name="registry.example.com/foo/bar",
            username="alice",
            password="s3cret",
            transport=registry.transport,
        ) as client:
            result = await client.login()

        assert result.version == 2
        assert registry.count("GET", PING) == 1


def test_error_from_response_without_request():
    error = RegistryHTTPError.from_response(
        httpx.Response(500, json={"errors": [{"code": "UNKNOWN", "message": "boom"}]})
    )

    assert error.status_code == 500
    assert error.code == "UNKNOWN"
    assert "boom" in str(error)
