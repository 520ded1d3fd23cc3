"""Error types raised by the registry clients.

All errors derive from RegistryClientError so callers can catch everything
this package raises with a single except clause.
"""

from typing import Optional

import httpx


class RegistryClientError(Exception):
    """Base class for all registry client errors."""


class InvalidVersionError(RegistryClientError):
    """Raised when an API version selector other than 1 or 2 is requested."""

    def __init__(self, version: object):
        self.version = version
        super().__init__(f"invalid API version: {version}")


class InvalidRepositoryError(RegistryClientError, ValueError):
    """Raised for repository, index or reference strings that cannot be parsed."""


class TransportError(RegistryClientError):
    """No response could be obtained from the registry.

    Covers DNS resolution, connection, TLS and timeout failures. The
    underlying httpx exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class RegistryHTTPError(RegistryClientError):
    """The registry answered with an unexpected status code."""

    def __init__(
        self,
        message: str,
        response: Optional[httpx.Response] = None,
        code: Optional[str] = None,
    ):
        self.response = response
        self.status_code = response.status_code if response is not None else None
        self.code = code
        super().__init__(message)

    @classmethod
    def from_response(
        cls, response: httpx.Response, message: Optional[str] = None
    ) -> "RegistryHTTPError":
        """Build an error from a registry response.

        Uses the first entry of a Docker Registry error body
        (``{"errors": [{"code": ..., "message": ...}]}``) when one is present.

        See: https://docs.docker.com/registry/spec/api/#errors
        """
        code = None
        detail = None
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            errors = body.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                code = errors[0].get("code")
                detail = errors[0].get("message")
            elif isinstance(body.get("error"), str):
                detail = body["error"]

        if message is None:
            try:
                target = f"{response.request.method} {response.request.url}"
            except RuntimeError:
                # Responses built by hand carry no request
                target = "registry request"
            message = f"{target} returned {response.status_code}"
            if detail:
                message = f"{message}: {detail}"

        return cls(message, response=response, code=code)


class UnauthorizedError(RegistryHTTPError):
    """The registry rejected the supplied credentials."""
