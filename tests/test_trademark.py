import pytest

from imagepolicy.trademark import violates_red_hat_trademark


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Red Hat", True),
        ("Something for Red Hat OpenShift", False),
        ("Red-Hat", True),
        ("Red_Hat", True),
        ("For-Red-Hat", False),
        ("For_Red_Hat", False),
        ("RED\t\tHAT\t\t\t", True),
        ("redhat", True),
        ("something by red hat for red hat", True),
        ("red hat product for red hat", True),
    ],
)
def test_presentations_of_red_hat(text, expected):
    assert violates_red_hat_trademark(text) is expected


def test_unrelated_text_passes():
    assert violates_red_hat_trademark("simple-demo-operator") is False


def test_empty_text_passes():
    assert violates_red_hat_trademark("") is False