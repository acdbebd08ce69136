# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Identifier case conversions shared by the emitters."""

from __future__ import annotations

import re
from typing import Final

_NUMBER_SEQUENCE: Final[re.Pattern[str]] = re.compile(r"([a-zA-Z])(\d+)([a-zA-Z]?)")
_WORD_BOUNDARY: Final[re.Pattern[str]] = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS: Final[frozenset[str]] = frozenset({"_", " ", "-"})


def _camel(text: str, init_upper: bool) -> str:
    text = _NUMBER_SEQUENCE.sub(r"\1 \2 \3", text).strip(" ")
    out: list[str] = []
    cap_next = init_upper
    for char in text:
        if char.isascii() and (char.isupper() or char.isdigit()):
            out.append(char)
        elif char.isascii() and char.islower():
            out.append(char.upper() if cap_next else char)
        cap_next = char in _SEPARATORS
    return "".join(out)


def to_camel(text: str) -> str:
    """Return ``text`` in UpperCamelCase (``get_user`` becomes ``GetUser``)."""

    return _camel(text, True)


def to_lower_camel(text: str) -> str:
    """Return ``text`` in lowerCamelCase; all-uppercase input is kept as is."""

    if not text or not any(char.islower() for char in text):
        return text
    if text[0].isupper():
        text = text[0].lower() + text[1:]
    return _camel(text, False)


def to_snake(text: str) -> str:
    """Return ``text`` in snake_case (``UserService`` becomes ``user_service``)."""

    spaced = _WORD_BOUNDARY.sub("_", text.strip())
    return re.sub(r"[\s\-_]+", "_", spaced).lower().strip("_")


__all__ = ["to_camel", "to_lower_camel", "to_snake"]
