"""Check that the image is based on the Universal Base Image."""

from __future__ import annotations

import abc
from collections.abc import Sequence

from imagepolicy.check import (
    CERT_DOCUMENTATION_URL,
    Check,
    HelpText,
    ImageReference,
    Metadata,
)


class LayerHashChecker(abc.ABC):
    """Looks up certified images that contain given uncompressed layers."""

    @abc.abstractmethod
    def certified_images_containing_layers(
        self, uncompressed_layer_hashes: Sequence[str]
    ) -> list:
        """Return the certified images containing the given layer hashes."""


class BasedOnUBICheck(Check):
    """Ensures the image's base is a certified Universal Base Image."""

    def __init__(self, layer_hash_checker: LayerHashChecker) -> None:
        self.layer_hash_checker = layer_hash_checker

    def validate(self, image_ref: ImageReference) -> bool:
        image = image_ref.image_info
        if image is None or image.config_file is None:
            raise ValueError("could not get image layers: image is not available")
        return self.evaluate(list(image.config_file.diff_ids))

    def evaluate(self, layer_hashes: Sequence[str]) -> bool:
        try:
            images = self.layer_hash_checker.certified_images_containing_layers(layer_hashes)
        except Exception as err:  # the lookup service may fail in any way
            raise ValueError(
                "unable to verify layer hashes: pyxis query for uncompressed top layers ids "
                f"{list(layer_hashes)!r} failed: {err}"
            ) from err
        return len(images) >= 1

    def name(self) -> str:
        return "BasedOnUbi"

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                "Checking if the container's base image is based upon the Red Hat Universal "
                "Base Image (UBI)"
            ),
            level="best",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check BasedOnUbi encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion=(
                "Change the FROM directive in your Dockerfile or Containerfile, for the latest "
                "list of images and details refer to: "
                "https://catalog.redhat.com/software/base-images"
            ),
        )