"""Header block parsing."""

from __future__ import annotations

from typing import Iterable


def parse_request_headers(lines: Iterable[str]) -> dict[str, str]:
    """Turn header lines into an ordered header mapping.

    Each line is split on its first colon. A line without a colon becomes
    a header with an empty value. Repeated names (case-insensitive) are
    folded into the first occurrence: ``Cookie`` values are joined with
    ``;``, everything else with ``,``.

    Args:
        lines: Header lines, without line endings.

    Returns:
        The headers keyed by the name as first written.
    """
    headers: dict[str, str] = {}
    first_names: dict[str, str] = {}

    for line in lines:
        name, sep, value = line.partition(":")
        name = name.strip()
        value = value.strip() if sep else ""

        normalized = name.lower()
        if normalized not in first_names:
            first_names[normalized] = name
            headers[name] = value
        else:
            splitter = ";" if normalized == "cookie" else ","
            headers[first_names[normalized]] += f"{splitter}{value}"

    return headers
