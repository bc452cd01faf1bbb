"""Matching of stream tag values against an item's name."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from .mapping import get_case_insensitive

_REMOVED_CHARACTERS = re.compile(r"[()?:<>'\"]")
_SEPARATOR_CHARACTERS = re.compile(r"[-_.|]")
_AMPERSAND = re.compile("&", re.IGNORECASE)


def clean_tag_value(value: str) -> str:
    """Normalize a tag value so titles like ``My.Movie-2020`` compare as words."""
    value = _REMOVED_CHARACTERS.sub("", value)
    value = _SEPARATOR_CHARACTERS.sub(" ", value)
    return _AMPERSAND.sub("and", value)


def tag_matches_value(
    tags: Mapping[str, str],
    value: str,
    field_name: str,
    *,
    clean: bool = True,
) -> bool:
    """Whether the stream's ``field_name`` tag contains ``value``, ignoring case."""
    if not tags:
        return False

    expected = clean_tag_value(value) if clean else value
    actual = get_case_insensitive(tags, field_name)
    if actual is not None and clean:
        actual = clean_tag_value(actual)

    return bool(expected) and bool(actual) and expected.casefold() in actual.casefold()


def match_tags_to_value(
    tags: Mapping[str, str],
    value: str,
    field_names: Iterable[str],
    *,
    clean: bool = True,
) -> list[str]:
    return [name for name in field_names if tag_matches_value(tags, value, name, clean=clean)]


def blank_tags(field_names: Iterable[str]) -> dict[str, str]:
    return {name: "" for name in field_names}
