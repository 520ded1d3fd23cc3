"""Option, context and result types shared by the registry clients.

No I/O happens here. Option models are pydantic models so callers get
validation at construction time; the values passed between the clients
during a single call are plain dataclasses.
"""

from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Optional,
    Protocol,
    Type,
    TypeVar,
    Union,
    runtime_checkable,
)

import httpx
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

if TYPE_CHECKING:
    from .common import RepoInfo

O = TypeVar("O", bound="BaseOptions")  # noqa: E741


class BaseOptions(BaseModel):
    """Connection options common to every registry call."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    insecure: Optional[bool] = None
    """Use plain http and skip TLS verification. Defaults to REGISTRY_INSECURE."""
    scheme: Optional[str] = None
    """Force "http" or "https" regardless of what the index string says."""
    timeout: Optional[float] = None
    user_agent: Optional[str] = None
    transport: Optional[httpx.AsyncBaseTransport] = None
    """Custom httpx transport, e.g. httpx.MockTransport in tests."""

    @property
    def credentials(self) -> "Credentials":
        return Credentials(
            username=self.username,
            password=self.password,
            email=getattr(self, "email", None),
        )


class ClientOptions(BaseOptions):
    """Options for creating a client bound to one repository.

    Attributes:
        name: Repository string (e.g., "busybox", "quay.io/quay/elasticsearch")
        version: Registry API version to use (1 or 2, 2.0 counts as 2). Any
            other number fails in create_client. None auto-detects.
    """

    name: str
    version: Optional[Union[StrictInt, StrictFloat]] = None


class LoginOptions(BaseOptions):
    """Options for verifying credentials against a registry.

    Exactly which registry is targeted comes from ``index`` when given,
    otherwise from the index part of ``name``. With neither, the official
    Docker Hub index is used.
    """

    index: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    """Only used by the v1 login, which registers accounts by e-mail."""


def coerce_options(cls: Type[O], options: Optional[O], kwargs: dict[str, Any]) -> O:
    """Accept either an options model or keyword arguments for one."""
    if options is None:
        return cls(**kwargs)
    if kwargs:
        # Re-validate, model_copy would let overrides skip validation
        return cls.model_validate({**options.model_dump(), **kwargs})
    return options


def coerce_login_options(options: Optional[BaseOptions], kwargs: dict[str, Any]) -> BaseOptions:
    """Like coerce_options, but keeps whichever options type was passed in.

    Login and ping accept ClientOptions as well, taking the index from the
    repository name.
    """
    if options is None:
        return LoginOptions(**kwargs)
    return coerce_options(type(options), options, kwargs)


@dataclass(frozen=True)
class Credentials:
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    email: Optional[str] = None

    def __bool__(self) -> bool:
        return bool(self.username or self.password)


@dataclass
class PingResult:
    """Outcome of a v2 ping.

    ``response`` is None only when the registry could not be reached at
    all, in which case ``error`` holds the TransportError. A response with a
    non-2xx status comes with a RegistryHTTPError in ``error`` as well.
    """

    response: Optional[httpx.Response] = None
    error: Optional[Exception] = None

    @property
    def body(self) -> Any:
        if self.response is None:
            return None
        try:
            return self.response.json()
        except ValueError:
            return None


@dataclass(frozen=True)
class LoginContext:
    """Everything a v2 login needs from an earlier ping.

    Passing this avoids pinging the registry a second time just to read the
    WWW-Authenticate challenge.
    """

    credentials: Credentials
    ping_response: Optional[httpx.Response] = None
    ping_error: Optional[Exception] = None


@dataclass(frozen=True)
class LoginResult:
    status: str
    version: int


@runtime_checkable
class ClientHandle(Protocol):
    """What callers can rely on from a client of either API version."""

    version: int
    repo: "RepoInfo"

    async def close(self) -> None: ...

    async def __aenter__(self) -> "ClientHandle": ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
