"""Core types shared by all container image policy checks."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field

CERT_DOCUMENTATION_URL = (
    "https://docs.example.com/software-certification/policy-guide"
    "#requirements-for-container-images"
)


@dataclass(frozen=True)
class Metadata:
    """Descriptive information about a check."""

    description: str
    level: str
    knowledge_base_url: str
    check_url: str


@dataclass(frozen=True)
class HelpText:
    """Guidance shown when a check fails or errors."""

    message: str
    suggestion: str


@dataclass
class ConfigFile:
    """The parts of an image configuration that the checks look at."""

    labels: dict[str, str] = field(default_factory=dict)
    user: str = ""
    diff_ids: list[str] = field(default_factory=list)


@dataclass
class Layer:
    """A single image layer: its digests and its uncompressed tar content."""

    digest: str = ""
    diff_id: str = ""
    content: bytes = b""


@dataclass
class Image:
    """An image as seen by the checks: its configuration and its layers."""

    config_file: ConfigFile = field(default_factory=ConfigFile)
    layers: list[Layer] = field(default_factory=list)


@dataclass
class ImageReference:
    """Everything known about the image under test."""

    image_uri: str = ""
    image_fs_path: str = ""
    image_info: Image | None = None
    image_registry: str = ""
    image_repository: str = ""
    image_tag_or_sha: str = ""


class Check(abc.ABC):
    """A single policy check run against an image."""

    @abc.abstractmethod
    def name(self) -> str:
        """Return the check's name."""

    @abc.abstractmethod
    def metadata(self) -> Metadata:
        """Return the check's metadata."""

    @abc.abstractmethod
    def help(self) -> HelpText:
        """Return the check's help text."""

    @abc.abstractmethod
    def validate(self, image_ref: ImageReference) -> bool:
        """Run the check; return whether the image passes."""


def get_container_labels(image: Image | None) -> dict[str, str]:
    """Return the labels from the image's configuration."""
    if image is None:
        raise ValueError("image is not available")
    config = image.config_file
    if config is None:
        raise ValueError("image has no configuration")
    return dict(config.labels or {})