"""Check that the image carries a tag other than "latest"."""

from __future__ import annotations

import ipaddress
import json
import re
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable, Iterable, Sequence

from imagepolicy.check import (
    CERT_DOCUMENTATION_URL,
    Check,
    HelpText,
    ImageReference,
    Metadata,
)

DEFAULT_TIMEOUT = 30.0
_DEFAULT_REGISTRY = "index.docker.io"
_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')
_NEXT_LINK = re.compile(r'<([^>]+)>\s*;\s*rel="?next"?')

TagLister = Callable[[str], Iterable[str]]


def _split_repository(repository: str) -> tuple[str, str]:
    first, slash, rest = repository.partition("/")
    if slash and ("." in first or ":" in first or first == "localhost"):
        registry, path = first, rest
    else:
        registry, path = _DEFAULT_REGISTRY, repository
        if "/" not in path:
            path = f"library/{path}"
    if not path:
        raise ValueError(f"invalid repository {repository!r}")
    return registry, path


def _registry_scheme(registry: str) -> str:
    if registry == "localhost" or registry.startswith("localhost:"):
        return "http"
    host = registry
    if host.startswith("["):
        host = host[1 : host.find("]")]
    elif host.count(":") == 1:
        host = host.split(":", 1)[0]
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return "https"
    return "http" if address.is_loopback or address.is_private else "https"


def _get(url: str, authorization: str | None, timeout: float):
    request = urllib.request.Request(url, headers={"Accept": "application/json"})
    if authorization:
        request.add_header("Authorization", authorization)
    with urllib.request.urlopen(request, timeout=timeout) as response:
        return response.read(), response.headers


def _bearer_authorization(
    challenge: str, path: str, authorization: str | None, timeout: float
) -> str | None:
    if not challenge.lower().startswith("bearer"):
        return None
    params = dict(_CHALLENGE_PARAM.findall(challenge))
    realm = params.get("realm")
    if not realm:
        return None
    query = {"scope": f"repository:{path}:pull"}
    if "service" in params:
        query["service"] = params["service"]
    token_url = realm + ("&" if "?" in realm else "?") + urllib.parse.urlencode(query)
    body, _ = _get(token_url, authorization, timeout)
    document = json.loads(body)
    token = document.get("token") or document.get("access_token")
    if not token:
        raise ValueError("registry token response held no token")
    return f"Bearer {token}"


def _next_link(link_header: str | None, current: str) -> str | None:
    if not link_header:
        return None
    match = _NEXT_LINK.search(link_header)
    return urllib.parse.urljoin(current, match.group(1)) if match else None


def _list_tags(repository: str, timeout: float, authorization: str | None) -> list[str]:
    registry, path = _split_repository(repository)
    url: str | None = f"{_registry_scheme(registry)}://{registry}/v2/{path}/tags/list"
    header = authorization
    challenged = False
    tags: list[str] = []
    while url:
        try:
            body, headers = _get(url, header, timeout)
        except urllib.error.HTTPError as err:
            if err.code != 401 or challenged:
                raise
            challenged = True
            bearer = _bearer_authorization(
                err.headers.get("WWW-Authenticate", ""), path, authorization, timeout
            )
            if bearer is None:
                raise
            header = bearer
            continue
        document = json.loads(body)
        tags.extend(document.get("tags") or [])
        url = _next_link(headers.get("Link"), url)
    return tags


def list_registry_tags(repository: str, timeout: float = DEFAULT_TIMEOUT) -> list[str]:
    """Return every tag of a repository such as "registry.example.com/team/app"."""
    return _list_tags(repository, timeout, None)


def _auth_host(key: str) -> str:
    for scheme in ("https://", "http://"):
        key = key.removeprefix(scheme)
    return key.split("/", 1)[0]


def _docker_config_authorization(dockercfg: str, registry: str) -> str | None:
    if not dockercfg:
        return None
    try:
        with open(dockercfg, encoding="utf-8") as config:
            data = json.load(config)
    except (OSError, ValueError) as err:
        raise ValueError(f"could not read docker config {dockercfg}: {err}") from err
    for key, entry in (data.get("auths") or {}).items():
        if _auth_host(key) == registry and isinstance(entry, dict) and entry.get("auth"):
            return f"Basic {entry['auth']}"
    return None


class HasUniqueTagCheck(Check):
    """Ensures the image has a tag other than the floating "latest" tag."""

    def __init__(self, dockercfg: str = "", tag_lister: TagLister | None = None) -> None:
        self._dockercfg = dockercfg
        self._tag_lister = tag_lister

    def validate(self, image_ref: ImageReference) -> bool:
        repository = f"{image_ref.image_registry}/{image_ref.image_repository}"
        reference = image_ref.image_tag_or_sha
        is_digest = reference.startswith("sha256:")

        tags: list[str] = []
        # A digest or "latest" says nothing about other tags, so ask the registry.
        if is_digest or reference == "latest":
            try:
                tags = self.list_tags(repository)
            except (OSError, ValueError) as err:
                raise ValueError(f"failed to get tags list for {repository}: {err}") from err

        # Some registries return no tags; fall back to the reference given.
        if not tags:
            if is_digest:
                raise ValueError(
                    f"no tags found for {repository}: cannot assert tag from digest"
                )
            tags.append(reference)
        return self.evaluate(tags)

    def list_tags(self, repository: str) -> list[str]:
        """Return the repository's tags from the registry."""
        if self._tag_lister is not None:
            return list(self._tag_lister(repository))
        registry, _ = _split_repository(repository)
        authorization = _docker_config_authorization(self._dockercfg, registry)
        return _list_tags(repository, DEFAULT_TIMEOUT, authorization)

    def evaluate(self, tags: Sequence[str]) -> bool:
        return len(tags) > 1 or (len(tags) == 1 and tags[0].lower() != "latest")

    def name(self) -> str:
        return "HasUniqueTag"

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                "Checking if container has a tag other than 'latest', so that the image can be "
                "uniquely identified."
            ),
            level="best",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check HasUniqueTag encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion=(
                "Add a tag to your image. Consider using Semantic Versioning. https://semver.org/"
            ),
        )