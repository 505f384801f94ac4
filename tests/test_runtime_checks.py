import pytest

from imagepolicy.check import ConfigFile, Image, ImageReference, Layer
from imagepolicy.runtime_checks import MaxLayersCheck, RunAsNonRootCheck


def _ref_with_layers(count):
    return ImageReference(image_info=Image(layers=[Layer() for _ in range(count)]))


def _ref_with_user(user):
    return ImageReference(image_info=Image(config_file=ConfigFile(user=user)))


def test_fewer_layers_than_max():
    assert MaxLayersCheck().validate(_ref_with_layers(5)) is True


def test_more_layers_than_max():
    assert MaxLayersCheck().validate(_ref_with_layers(41)) is False


def test_exactly_max_layers():
    assert MaxLayersCheck().validate(_ref_with_layers(40)) is True


def test_max_layers_without_image_raises():
    with pytest.raises(ValueError, match="could not get image layers"):
        MaxLayersCheck().validate(ImageReference())


def test_max_layers_description_mentions_limit():
    assert "40 layers" in MaxLayersCheck().metadata().description


def test_non_root_user_passes():
    assert RunAsNonRootCheck().validate(_ref_with_user("1000")) is True


@pytest.mark.parametrize("user", ["", "root", "0"])
def test_root_users_fail(user):
    assert RunAsNonRootCheck().validate(_ref_with_user(user)) is False


def test_run_as_non_root_without_image_raises():
    with pytest.raises(ValueError, match="could not get validation data"):
        RunAsNonRootCheck().validate(ImageReference())


@pytest.mark.parametrize("check", [MaxLayersCheck(), RunAsNonRootCheck()])
def test_metadata_and_help_not_empty(check):
    assert check.name()
    meta = check.metadata()
    assert meta.check_url and meta.description and meta.knowledge_base_url
    help_text = check.help()
    assert help_text.message and help_text.suggestion


def test_names_and_levels():
    assert MaxLayersCheck().name() == "LayerCountAcceptable"
    assert MaxLayersCheck().metadata().level == "better"
    assert RunAsNonRootCheck().name() == "RunAsNonRoot"
    assert RunAsNonRootCheck().metadata().level == "best"