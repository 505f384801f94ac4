import pytest

from imagepolicy.check import ConfigFile, Image, ImageReference
from imagepolicy.labels_checks import (
    HasNoProhibitedLabelsCheck,
    HasProhibitedContainerName,
    HasRequiredLabelsCheck,
)


def _required_labels(bad=False):
    labels = {
        "name": "name",
        "maintainer": "maintainer",
        "vendor": "vendor",
        "version": "version",
        "release": "release",
        "summary": "summary",
        "description": "description",
    }
    if bad:
        del labels["description"]
    return labels


def _trademark_labels(bad=False):
    labels = {"name": "name", "vendor": "vendor", "maintainer": "maintainer"}
    if bad:
        labels["maintainer"] = "Red Hat"
    return labels


def _ref_with_labels(labels):
    return ImageReference(image_info=Image(config_file=ConfigFile(labels=labels)))


def test_required_labels_present():
    assert HasRequiredLabelsCheck().validate(_ref_with_labels(_required_labels())) is True


def test_required_labels_missing():
    assert HasRequiredLabelsCheck().validate(_ref_with_labels(_required_labels(bad=True))) is False


def test_required_label_empty_value_counts_as_missing():
    labels = _required_labels()
    labels["vendor"] = ""
    assert HasRequiredLabelsCheck().evaluate(labels) is False


def test_required_labels_without_image_raises():
    with pytest.raises(ValueError, match="could not retrieve image labels"):
        HasRequiredLabelsCheck().validate(ImageReference())


def test_no_prohibited_labels():
    assert HasNoProhibitedLabelsCheck().validate(_ref_with_labels(_trademark_labels())) is True


def test_prohibited_labels():
    assert HasNoProhibitedLabelsCheck().validate(_ref_with_labels(_trademark_labels(bad=True))) is False


def test_prohibited_labels_missing_labels_pass():
    assert HasNoProhibitedLabelsCheck().evaluate({}) is True


@pytest.mark.parametrize(
    "repository, expected",
    [
        ("opdev/simple-demo-operator", True),
        ("simple-demo-operator", True),
        ("registry.example.com/redhat-isv-containers/12345678900987654321123", True),
        ("opdev/red-hat-container", False),
    ],
)
def test_container_name(repository, expected):
    check = HasProhibitedContainerName()
    assert check.validate(ImageReference(image_repository=repository)) is expected


def test_container_name_is_last_element():
    assert HasProhibitedContainerName().container_name("a/b/c-d") == "c-d"


@pytest.mark.parametrize(
    "check",
    [HasRequiredLabelsCheck(), HasNoProhibitedLabelsCheck(), HasProhibitedContainerName()],
)
def test_metadata_and_help_not_empty(check):
    assert check.name()
    meta = check.metadata()
    assert meta.check_url and meta.description and meta.knowledge_base_url
    help_text = check.help()
    assert help_text.message and help_text.suggestion


def test_names():
    assert HasRequiredLabelsCheck().name() == "HasRequiredLabel"
    assert HasNoProhibitedLabelsCheck().name() == "HasNoProhibitedLabels"
    assert HasProhibitedContainerName().name() == "HasProhibitedContainerName"