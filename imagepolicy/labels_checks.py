"""Checks on image labels and the container name."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from imagepolicy.check import (
    CERT_DOCUMENTATION_URL,
    Check,
    HelpText,
    ImageReference,
    Metadata,
    get_container_labels,
)
from imagepolicy.trademark import violates_red_hat_trademark

logger = logging.getLogger(__name__)

REQUIRED_LABELS = ("name", "vendor", "version", "release", "summary", "description", "maintainer")
TRADEMARK_LABELS = ("name", "vendor", "maintainer")


def _labels_of(image_ref: ImageReference) -> dict[str, str]:
    try:
        return get_container_labels(image_ref.image_info)
    except ValueError as err:
        raise ValueError(f"could not retrieve image labels: {err}") from err


class HasRequiredLabelsCheck(Check):
    """Ensures the image carries all the required metadata labels."""

    def validate(self, image_ref: ImageReference) -> bool:
        return self.evaluate(_labels_of(image_ref))

    def evaluate(self, labels: Mapping[str, str]) -> bool:
        missing = [label for label in REQUIRED_LABELS if not labels.get(label)]
        if missing:
            logger.debug("expected labels are missing: %s", missing)
        return not missing

    def name(self) -> str:
        return "HasRequiredLabel"

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                "Checking if the required labels (name, vendor, version, release, summary, "
                "description, maintainer) are present in the container metadata"
            ),
            level="good",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check HasRequiredLabel encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion=(
                "Add the following labels to your Dockerfile or Containerfile: name, vendor, "
                "version, release, summary, description, maintainer."
            ),
        )


class HasNoProhibitedLabelsCheck(Check):
    """Ensures the name, vendor and maintainer labels respect the trademark."""

    def validate(self, image_ref: ImageReference) -> bool:
        return self.evaluate(_labels_of(image_ref))

    def evaluate(self, labels: Mapping[str, str]) -> bool:
        violations = [
            label for label in TRADEMARK_LABELS if violates_red_hat_trademark(labels.get(label, ""))
        ]
        if violations:
            logger.debug("labels violate Red Hat trademark: %s", violations)
        return not violations

    def name(self) -> str:
        return "HasNoProhibitedLabels"

    def metadata(self) -> Metadata:
        return Metadata(
            description="Checking if the labels (name, vendor, maintainer) violate Red Hat trademark.",
            level="good",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check HasNoProhibitedLabelsCheck encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion=(
                "Ensure the name, vendor, and maintainer label on your image do not violate "
                "the Red Hat trademark."
            ),
        )


class HasProhibitedContainerName(Check):
    """Ensures the container name respects the trademark."""

    def validate(self, image_ref: ImageReference) -> bool:
        return self.evaluate(self.container_name(image_ref.image_repository))

    def container_name(self, image_repository: str) -> str:
        """Return the last path element of the repository."""
        return image_repository.split("/")[-1]

    def evaluate(self, container_name: str) -> bool:
        if violates_red_hat_trademark(container_name):
            logger.debug("container name violates Red Hat trademark: %s", container_name)
            return False
        return True

    def name(self) -> str:
        return "HasProhibitedContainerName"

    def metadata(self) -> Metadata:
        return Metadata(
            description="Checking if the container-name violates Red Hat trademark.",
            level="good",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check HasProhibitedContainerName encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion=(
                "Update container-name ie (quay.io/repo-name/container-name) to not violate "
                "Red Hat trademark."
            ),
        )