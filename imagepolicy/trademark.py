"""Detection of disallowed uses of the Red Hat trademark."""

from __future__ import annotations

import re

_STARTS_WITH = re.compile(r"^[^a-z0-9]*red[^a-z0-9]*hat")
_CONTAINS = re.compile(r"red[^a-z0-9]*hat")
_CONTAINS_FOR = re.compile(r"for[^a-z0-9]*red[^a-z0-9]*hat")


def violates_red_hat_trademark(text: str) -> bool:
    """Return True if the text uses a "Red Hat" variant in a disallowed way."""
    lowered = text.lower()
    starts_with = _STARTS_WITH.search(lowered) is not None
    count = len(_CONTAINS.findall(lowered))

    # A leading reference fails outright, so it is not counted again.
    if starts_with:
        count -= 1
    # "for Red Hat" is acceptable and is not held against the text.
    if _CONTAINS_FOR.search(lowered) is not None:
        count -= 1

    return starts_with or count > 0