"""Check that the image ships its licensing terms under /licenses."""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Sequence

from imagepolicy.check import (
    CERT_DOCUMENTATION_URL,
    Check,
    HelpText,
    ImageReference,
    Metadata,
)

logger = logging.getLogger(__name__)

LICENSE_PATH = "licenses"
MIN_LICENSE_FILE_COUNT = 1


class LicensesNotADirectoryError(Exception):
    """Raised when /licenses exists but is not a directory."""


class HasLicenseCheck(Check):
    """Ensures the image holds at least one non-empty license file in /licenses."""

    def validate(self, image_ref: ImageReference) -> bool:
        try:
            files = self.license_files(image_ref.image_fs_path)
        except (FileNotFoundError, LicensesNotADirectoryError):
            return False
        except OSError as err:
            raise ValueError(f"could not get license file list: {err}") from err
        return self.evaluate(files)

    def license_files(self, mounted_path: str) -> list[os.DirEntry]:
        """Return the entries of /licenses in the mounted image, sorted by name."""
        full_path = os.path.join(mounted_path, LICENSE_PATH)
        info = os.stat(full_path)
        if not stat.S_ISDIR(info.st_mode):
            raise LicensesNotADirectoryError(f"/{LICENSE_PATH} is not a directory")
        with os.scandir(full_path) as entries:
            return sorted(entries, key=lambda entry: entry.name)

    def evaluate(self, license_files: Sequence[os.PathLike | str]) -> bool:
        non_zero_length = False
        for entry in license_files:
            try:
                size = os.lstat(entry).st_size
            except OSError:
                continue
            if size > 0:
                non_zero_length = True
                break
        logger.debug("number of licenses found: %d", len(license_files))
        return len(license_files) >= MIN_LICENSE_FILE_COUNT and non_zero_length

    def name(self) -> str:
        return "HasLicense"

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                "Checking if terms and conditions applicable to the software including open "
                "source licensing information are present. The license must be at /licenses"
            ),
            level="best",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check HasLicense encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion=(
                "Create a directory named /licenses and include all relevant licensing and/or "
                "terms and conditions as text file(s) in that directory."
            ),
        )