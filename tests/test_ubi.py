import pytest

from imagepolicy.check import ConfigFile, Image, ImageReference
from imagepolicy.ubi import BasedOnUBICheck, LayerHashChecker


class MatchingChecker(LayerHashChecker):
    def __init__(self):
        self.received = None

    def certified_images_containing_layers(self, uncompressed_layer_hashes):
        self.received = list(uncompressed_layer_hashes)
        return [{"image": "certified"}]


class NoMatchChecker(LayerHashChecker):
    def certified_images_containing_layers(self, uncompressed_layer_hashes):
        return []


class TimeoutChecker(LayerHashChecker):
    def certified_images_containing_layers(self, uncompressed_layer_hashes):
        raise TimeoutError("http: Handler timeout")


@pytest.fixture
def image_ref():
    return ImageReference(image_info=Image(config_file=ConfigFile()))


def test_passes_when_match_found(image_ref):
    assert BasedOnUBICheck(MatchingChecker()).validate(image_ref) is True


def test_fails_when_no_match(image_ref):
    assert BasedOnUBICheck(NoMatchChecker()).validate(image_ref) is False


def test_raises_on_timeout(image_ref):
    with pytest.raises(ValueError, match="unable to verify layer hashes"):
        BasedOnUBICheck(TimeoutChecker()).validate(image_ref)


def test_diff_ids_are_forwarded():
    checker = MatchingChecker()
    ref = ImageReference(
        image_info=Image(config_file=ConfigFile(diff_ids=["sha256:aaa", "sha256:bbb"]))
    )
    assert BasedOnUBICheck(checker).validate(ref) is True
    assert checker.received == ["sha256:aaa", "sha256:bbb"]


def test_raises_without_image():
    with pytest.raises(ValueError, match="could not get image layers"):
        BasedOnUBICheck(MatchingChecker()).validate(ImageReference())


def test_metadata_and_help_not_empty():
    check = BasedOnUBICheck(NoMatchChecker())
    assert check.name() == "BasedOnUbi"
    meta = check.metadata()
    assert meta.check_url and meta.description and meta.knowledge_base_url
    help_text = check.help()
    assert help_text.message and help_text.suggestion