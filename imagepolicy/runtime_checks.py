"""Checks on the image's layer count and runtime user."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from imagepolicy.check import (
    CERT_DOCUMENTATION_URL,
    Check,
    HelpText,
    ImageReference,
    Layer,
    Metadata,
)

logger = logging.getLogger(__name__)

ACCEPTABLE_LAYER_MAX = 40


class MaxLayersCheck(Check):
    """Ensures the image has no more than the maximum number of layers."""

    def validate(self, image_ref: ImageReference) -> bool:
        image = image_ref.image_info
        if image is None or image.layers is None:
            raise ValueError("could not get image layers: image is not available")
        return self.evaluate(image.layers)

    def evaluate(self, layers: Sequence[Layer]) -> bool:
        logger.debug("number of layers detected in image: %d", len(layers))
        return len(layers) <= ACCEPTABLE_LAYER_MAX

    def name(self) -> str:
        return "LayerCountAcceptable"

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                f"Checking if container has less than {ACCEPTABLE_LAYER_MAX} layers.  "
                "Too many layers within the container images can degrade container performance."
            ),
            level="better",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check LayerCountAcceptable encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion=(
                "Optimize your Dockerfile to consolidate and minimize the number of layers. "
                "Each RUN command will produce a new layer. Try combining RUN commands using "
                "&& where possible."
            ),
        )


class RunAsNonRootCheck(Check):
    """Ensures the image declares a runtime user other than root."""

    def validate(self, image_ref: ImageReference) -> bool:
        image = image_ref.image_info
        if image is None or image.config_file is None:
            raise ValueError(
                "could not get validation data: could not retrieve ConfigFile from Image"
            )
        return self.evaluate(image.config_file.user)

    def evaluate(self, user: str) -> bool:
        if not user:
            logger.info("detected empty USER. Presumed to be running as root")
            logger.info("USER value must be provided and be a non-root value for this check to pass")
            return False
        if user in ("0", "root"):
            logger.info("detected USER specified as root or UID 0")
            logger.info("USER other than root is required for this check to pass")
            return False
        logger.info("USER %s specified that is non-root", user)
        return True

    def name(self) -> str:
        return "RunAsNonRoot"

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                "Checking if container runs as the root user because a container that does not "
                "specify a non-root user will fail the automatic certification, and will be "
                "subject to a manual review before the container can be approved for publication"
            ),
            level="best",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check RunAsNonRoot encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion="Indicate a specific USER in the dockerfile or containerfile",
        )