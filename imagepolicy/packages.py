"""Check that the image does not contain packages that may not be redistributed."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from imagepolicy.check import (
    CERT_DOCUMENTATION_URL,
    Check,
    HelpText,
    ImageReference,
    Metadata,
)
from imagepolicy.modified_files import RpmPackage

logger = logging.getLogger(__name__)

PackageLister = Callable[[str], Iterable[RpmPackage]]

# Packages common in RHEL images that are not redistributable without proper licensing.
PROHIBITED_PACKAGES = frozenset(
    {
        "grub",
        "grub2",
        "kernel",
        "kernel-core",
        "kernel-debug",
        "kernel-debug-core",
        "kernel-debug-modules",
        "kernel-debug-modules-extra",
        "kernel-debug-devel",
        "kernel-devel",
        "kernel-doc",
        "kernel-modules",
        "kernel-modules-extra",
        "kernel-tools",
        "kernel-tools-libs",
        "kmod-kvdo",
        "linux-firmware",
    }
)

PROHIBITED_PACKAGE_PREFIXES = ("kpatch",)


class HasNoProhibitedPackagesCheck(Check):
    """Ensures the image contains no packages that are prohibited from redistribution."""

    def __init__(self, package_lister: PackageLister | None = None) -> None:
        self._package_lister = package_lister

    def validate(self, image_ref: ImageReference) -> bool:
        try:
            names = self.package_names(image_ref.image_fs_path)
        except ValueError as err:
            raise ValueError(f"unable to get a list of all packages in the image: {err}") from err
        return self.evaluate(names)

    def package_names(self, directory: str) -> list[str]:
        """Return the names of the packages installed in the image at directory."""
        if self._package_lister is None:
            raise ValueError("could not get rpm list: no rpm database reader configured")
        try:
            packages = list(self._package_lister(directory))
        except Exception as err:  # any reader failure means no package list
            raise ValueError(f"could not get rpm list: {err}") from err
        return [package.name for package in packages]

    def evaluate(self, package_names: Sequence[str]) -> bool:
        prohibited = [
            name
            for name in package_names
            if name in PROHIBITED_PACKAGES or name.startswith(PROHIBITED_PACKAGE_PREFIXES)
        ]
        if prohibited:
            logger.debug("prohibited packages found (%d): %s", len(prohibited), prohibited)
        return not prohibited

    def name(self) -> str:
        return "HasNoProhibitedPackages"

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                "Checks to ensure that the image in use does not include prohibited packages, "
                "such as Red Hat Enterprise Linux (RHEL) kernel packages."
            ),
            level="best",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check HasNoProhibitedPackages encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion="Remove any RHEL packages that are not distributable outside of UBI",
        )