from unittest.mock import patch

import httpx
import pytest

from docker_registry_client.tests.fixtures_registry import *  # noqa


# Tests talk to FakeRegistry through httpx.MockTransport. Fail loudly if
# anything falls through to the real network transport instead.
@pytest.fixture(autouse=True)
def block_real_network():
    async def refuse(self, request: httpx.Request):
        raise AssertionError(f"unexpected real network request: {request.method} {request.url}")

    with patch.object(httpx.AsyncHTTPTransport, "handle_async_request", refuse):
        yield
