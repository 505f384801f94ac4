import pytest

from imagepolicy.check import ImageReference
from imagepolicy.modified_files import RpmPackage
from imagepolicy.packages import HasNoProhibitedPackagesCheck

PACKAGE_LIST = ["this", "is", "not", "prohibited"]


def test_passes_without_prohibited_packages():
    assert HasNoProhibitedPackagesCheck().evaluate(PACKAGE_LIST) is True


def test_fails_with_prohibited_package():
    assert HasNoProhibitedPackagesCheck().evaluate(PACKAGE_LIST + ["grub"]) is False


def test_fails_with_glob_prohibited_package():
    assert HasNoProhibitedPackagesCheck().evaluate(PACKAGE_LIST + ["kpatch2121"]) is False


def test_validate_uses_lister_with_image_path():
    seen = []

    def lister(directory):
        seen.append(directory)
        return [RpmPackage(name="bash"), RpmPackage(name="kernel-core")]

    check = HasNoProhibitedPackagesCheck(lister)
    assert check.validate(ImageReference(image_fs_path="/mnt/image")) is False
    assert seen == ["/mnt/image"]


def test_package_names():
    check = HasNoProhibitedPackagesCheck(lambda _: [RpmPackage(name="a"), RpmPackage(name="b")])
    assert check.package_names("/x") == ["a", "b"]


def test_validate_passes_with_clean_packages():
    check = HasNoProhibitedPackagesCheck(lambda _: [RpmPackage(name="bash")])
    assert check.validate(ImageReference(image_fs_path="/x")) is True


def test_validate_wraps_lister_failure():
    def lister(directory):
        raise OSError("no database")

    with pytest.raises(ValueError, match="unable to get a list of all packages"):
        HasNoProhibitedPackagesCheck(lister).validate(ImageReference(image_fs_path="/x"))


def test_validate_without_lister_raises():
    with pytest.raises(ValueError, match="could not get rpm list"):
        HasNoProhibitedPackagesCheck().validate(ImageReference(image_fs_path="/x"))


def test_metadata_and_help_not_empty():
    check = HasNoProhibitedPackagesCheck()
    assert check.name() == "HasNoProhibitedPackages"
    meta = check.metadata()
    assert meta.check_url and meta.description and meta.knowledge_base_url
    help_text = check.help()
    assert help_text.message and help_text.suggestion