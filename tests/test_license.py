from pathlib import Path

import pytest

from imagepolicy.check import ImageReference
from imagepolicy.license import HasLicenseCheck, LicensesNotADirectoryError

EMPTY_LICENSE = "emptylicense.txt"
VALID_LICENSE = "mylicense.txt"


@pytest.fixture
def image_root(tmp_path: Path) -> Path:
    licenses = tmp_path / "licenses"
    licenses.mkdir()
    (licenses / VALID_LICENSE).write_text("This is a license")
    (licenses / EMPTY_LICENSE).touch()
    return tmp_path


def test_passes_when_licenses_found(image_root):
    assert HasLicenseCheck().validate(ImageReference(image_fs_path=str(image_root))) is True


def test_fails_when_directory_missing():
    assert HasLicenseCheck().validate(ImageReference(image_fs_path="/invalid")) is False


def test_fails_when_directory_empty(image_root):
    (image_root / "licenses" / VALID_LICENSE).unlink()
    (image_root / "licenses" / EMPTY_LICENSE).unlink()
    assert HasLicenseCheck().validate(ImageReference(image_fs_path=str(image_root))) is False


def test_fails_with_only_empty_license(image_root):
    (image_root / "licenses" / VALID_LICENSE).unlink()
    assert HasLicenseCheck().validate(ImageReference(image_fs_path=str(image_root))) is False


def test_fails_when_licenses_is_a_file(tmp_path):
    (tmp_path / "licenses").write_text("not a directory")
    assert HasLicenseCheck().validate(ImageReference(image_fs_path=str(tmp_path))) is False


def test_license_files_raises_when_not_a_directory(tmp_path):
    (tmp_path / "licenses").write_text("not a directory")
    with pytest.raises(LicensesNotADirectoryError):
        HasLicenseCheck().license_files(str(tmp_path))


def test_license_files_sorted_by_name(image_root):
    names = [entry.name for entry in HasLicenseCheck().license_files(str(image_root))]
    assert names == [EMPTY_LICENSE, VALID_LICENSE]


def test_evaluate_with_paths(tmp_path):
    good = tmp_path / "a.txt"
    good.write_text("terms")
    assert HasLicenseCheck().evaluate([good]) is True
    assert HasLicenseCheck().evaluate([]) is False


def test_evaluate_skips_missing_entries(tmp_path):
    assert HasLicenseCheck().evaluate([tmp_path / "missing.txt"]) is False


def test_metadata_and_help_not_empty():
    check = HasLicenseCheck()
    assert check.name() == "HasLicense"
    meta = check.metadata()
    assert meta.check_url and meta.description and meta.knowledge_base_url
    assert meta.level == "best"
    help_text = check.help()
    assert help_text.message and help_text.suggestion