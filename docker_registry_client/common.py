"""Repository, index and reference parsing.

Follows the naming rules of the Docker CLI: a repository string is an
optional index host followed by a slash-separated path, optionally
followed by ``:tag`` or ``@digest``.

Examples:
    busybox                     -> docker.io, library/busybox
    joshwilsdon/nodejs          -> docker.io, joshwilsdon/nodejs
    quay.io/quay/elasticsearch  -> quay.io, quay/elasticsearch
    localhost:5000/alpine:3.2   -> localhost:5000, alpine, tag 3.2
"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidRepositoryError

DEFAULT_INDEX_NAME = "docker.io"
DEFAULT_INDEX_URL = "https://index.docker.io"
DEFAULT_V2_REGISTRY = "https://registry-1.docker.io"
DEFAULT_LOGIN_SERVERNAME = "https://index.docker.io/v1/"
DEFAULT_TAG = "latest"

_INDEX_NAME_RE = re.compile(r"^[a-z0-9.:\-\[\]]+$", re.IGNORECASE)
_PATH_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]{32,}$")


@dataclass(frozen=True)
class IndexInfo:
    """A registry index (host) parsed from a repository or index string.

    Attributes:
        name: Host name, optionally with port (e.g., "docker.io", "localhost:5000")
        official: Whether this is the official Docker Hub index
        scheme: "http" or "https" when given explicitly, otherwise None
    """

    name: str
    official: bool
    scheme: Optional[str] = None


@dataclass(frozen=True)
class RepoInfo:
    """A parsed repository reference.

    Attributes:
        index: The index the repository lives on
        official: Whether this is an official ("library/") Docker Hub image
        remote_name: Repository path as the registry knows it (e.g., "library/busybox")
        local_name: Name as the Docker CLI shows it (e.g., "busybox", "quay.io/foo/bar")
        canonical_name: Fully qualified name including the index
        tag: Tag, when parsed with a reference
        digest: Digest, when parsed with a reference
    """

    index: IndexInfo
    official: bool
    remote_name: str
    local_name: str
    canonical_name: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    @property
    def reference(self) -> Optional[str]:
        return self.digest or self.tag


def parse_index(arg: Optional[str] = None) -> IndexInfo:
    """Parse an index name or URL.

    Accepts "docker.io", "quay.io", "localhost:5000", "https://myreg.example.com"
    and the Docker login server name "https://index.docker.io/v1/". An empty
    value means the official index.
    """
    if not arg or arg == DEFAULT_LOGIN_SERVERNAME:
        return IndexInfo(name=DEFAULT_INDEX_NAME, official=True)

    name = arg
    scheme = None
    match = re.match(r"^(https?)://(.*)$", name, re.IGNORECASE)
    if match:
        scheme = match.group(1).lower()
        name = match.group(2)
    elif "://" in name:
        raise InvalidRepositoryError(f'invalid index, unsupported scheme: "{arg}"')

    name = name.rstrip("/")
    if not name:
        raise InvalidRepositoryError(f'invalid index, empty host: "{arg}"')
    if "/" in name:
        raise InvalidRepositoryError(f'invalid index, must not contain a path: "{arg}"')
    if not _INDEX_NAME_RE.match(name):
        raise InvalidRepositoryError(f'invalid index name: "{arg}"')

    name = name.lower()
    if name == "index.docker.io":
        name = DEFAULT_INDEX_NAME

    return IndexInfo(name=name, official=name == DEFAULT_INDEX_NAME, scheme=scheme)


def _index_from(default_index) -> IndexInfo:
    if isinstance(default_index, IndexInfo):
        return default_index
    return parse_index(default_index)


def parse_repo(arg: str, default_index=None) -> RepoInfo:
    """Parse a repository string without tag or digest.

    Args:
        arg: Repository string (e.g., "busybox", "quay.io/foo/bar")
        default_index: Index name, URL or IndexInfo used when the string
            has no index part. Defaults to the official index.

    Raises:
        InvalidRepositoryError: If the string is not a valid repository name
    """
    if not arg:
        raise InvalidRepositoryError("empty repository name")

    parts = arg.split("/", 1)
    if len(parts) == 2 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        index = parse_index(parts[0])
        remote_name = parts[1]
    else:
        index = _index_from(default_index)
        remote_name = arg

    if not remote_name:
        raise InvalidRepositoryError(f'invalid repository name, empty path: "{arg}"')

    for component in remote_name.split("/"):
        if not _PATH_COMPONENT_RE.match(component):
            raise InvalidRepositoryError(
                f'invalid repository name, path components may only contain '
                f'[a-z0-9] separated by "." "_" "__" or "-": "{arg}"'
            )

    if index.official and "/" not in remote_name:
        remote_name = f"library/{remote_name}"

    official = index.official and remote_name.startswith("library/")
    if index.official:
        local_name = remote_name[len("library/"):] if official else remote_name
    else:
        local_name = f"{index.name}/{remote_name}"

    if index.official:
        canonical_name = f"{index.name}/{local_name}"
    else:
        canonical_name = local_name

    return RepoInfo(
        index=index,
        official=official,
        remote_name=remote_name,
        local_name=local_name,
        canonical_name=canonical_name,
    )


def _split_reference(arg: str) -> tuple[str, Optional[str], Optional[str]]:
    """Split "name[:tag][@digest]" into its parts."""
    name = arg
    tag = None
    digest = None

    if "@" in name:
        name, digest = name.rsplit("@", 1)
        if not _DIGEST_RE.match(digest):
            raise InvalidRepositoryError(f'invalid digest: "{digest}"')

    slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > slash:
        name, tag = name[:colon], name[colon + 1 :]
        if not _TAG_RE.match(tag):
            raise InvalidRepositoryError(f'invalid tag: "{tag}"')

    return name, tag, digest


def parse_repo_and_ref(arg: str, default_index=None) -> RepoInfo:
    """Parse a repository string with an optional ``:tag`` or ``@digest``.

    A string with neither gets the default tag ("latest"). When both are
    given the digest wins and the tag is dropped.
    """
    name, tag, digest = _split_reference(arg)
    info = parse_repo(name, default_index)

    if digest:
        tag = None
    elif not tag:
        tag = DEFAULT_TAG

    return RepoInfo(
        index=info.index,
        official=info.official,
        remote_name=info.remote_name,
        local_name=info.local_name,
        canonical_name=info.canonical_name,
        tag=tag,
        digest=digest,
    )


def parse_repo_and_tag(arg: str, default_index=None) -> RepoInfo:
    """Parse a repository string with an optional ``:tag``.

    Prefer parse_repo_and_ref, which also understands digests.
    """
    if "@" in arg:
        raise InvalidRepositoryError(f'digest references are not supported here: "{arg}"')
    return parse_repo_and_ref(arg, default_index)
