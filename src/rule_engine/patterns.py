"""
Metadata Pattern Substitution

Replaces ``${key}`` placeholders in node configuration patterns with values
from a message's metadata. Placeholders without a matching metadata key are
left untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")


def process_pattern(pattern: str, metadata: Mapping[str, str]) -> str:
    """
    Substitute message metadata into a pattern.

    Args:
        pattern: Pattern such as ``"${deviceName}-gateway"``
        metadata: Message metadata

    Returns:
        The pattern with every known placeholder replaced

    Example:
        >>> process_pattern("${name}", {"name": "sensor-1"})
        'sensor-1'
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in metadata:
            return metadata[key]
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, pattern)


def pattern_keys(pattern: str) -> list[str]:
    """List the metadata keys a pattern refers to, in order of appearance."""
    return PLACEHOLDER_PATTERN.findall(pattern)
