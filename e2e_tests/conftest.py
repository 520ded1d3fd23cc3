import os
from pathlib import Path

import pytest

from docker_registry_client.types import ClientOptions, LoginOptions

E2E_ENABLED = os.getenv("E2E_REGISTRY_TESTS", "").lower() in ("1", "true", "yes")
E2E_REPO = os.getenv("E2E_REGISTRY_REPO", "busybox")
E2E_USER = os.getenv("E2E_REGISTRY_USER")
E2E_PASSWORD = os.getenv("E2E_REGISTRY_PASSWORD")

E2E_DIR = Path(__file__).parent


def pytest_collection_modifyitems(config, items):
    if E2E_ENABLED:
        return

    skip = pytest.mark.skip(reason="set E2E_REGISTRY_TESTS=1 to run against live registries")
    for item in items:
        # This hook sees the whole session, not only this directory
        if E2E_DIR in item.path.parents:
            item.add_marker(skip)


@pytest.fixture
def client_options() -> ClientOptions:
    return ClientOptions(name=E2E_REPO)


@pytest.fixture
def login_options() -> LoginOptions:
    if not (E2E_USER and E2E_PASSWORD):
        pytest.skip("E2E_REGISTRY_USER and E2E_REGISTRY_PASSWORD are not set")
    return LoginOptions(name=E2E_REPO, username=E2E_USER, password=E2E_PASSWORD)
