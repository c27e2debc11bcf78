"""
Identifier extraction from filenames.

This module is responsible for:
- Cleaning a filename down to word characters, whitespace and hyphens
- Collapsing the "-0-" zero segment that some filenames carry
- Finding the structured identifier pattern anywhere in the cleaned name
- Producing the canonical identifier used as the destination folder name

Two rules are available. The strict rule is the default: it requires
DD-DDD-DDDD-DD-DDD (all digits) and returns the 14 digits with hyphens
removed. The legacy rule accepts an alphanumeric third segment of any
length and reassembles the parts with a literal "0" before it. Callers
pick a rule by name so the dispatcher never depends on either pattern.
"""

import logging
import re
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Everything outside [A-Za-z0-9_\s-] is dropped before matching
_DISALLOWED_CHARS = re.compile(r"[^\w\s-]", re.ASCII)

ZERO_SEGMENT = "-0-"

DEFAULT_RULE = "strict"


def clean_file_name(file_name: str) -> str:
    """
    Normalize a filename before pattern matching.

    Removes every character except ASCII letters, digits, underscores,
    whitespace and hyphens, trims surrounding whitespace, and replaces
    every "-0-" with "-".

    Args:
        file_name: The raw filename (e.g., "09-014-0-AA01-10-001 (2).pdf")

    Returns:
        The cleaned string (e.g., "09-014-AA01-10-001 2pdf")
    """
    cleaned = _DISALLOWED_CHARS.sub("", file_name).strip()
    return cleaned.replace(ZERO_SEGMENT, "-")


class IdentifierMatcher:
    """
    Base class for identifier extraction rules.

    Subclasses set ``name`` and ``pattern`` and implement ``assemble``.
    """

    name: str = ""
    pattern: "re.Pattern[str]"

    def extract(self, file_name: str) -> str:
        """
        Extract the canonical identifier from a filename.

        Args:
            file_name: The raw filename

        Returns:
            The canonical identifier, or "" if the name carries none
        """
        match = self.pattern.search(clean_file_name(file_name))
        if not match:
            return ""
        return self.assemble(match.group(0))

    def assemble(self, matched: str) -> str:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class StrictMatcher(IdentifierMatcher):
    """Fixed-width all-digit rule: 09-014-1234-56-789 -> 09014123456789."""

    name = "strict"
    pattern = re.compile(r"\d{2}-\d{3}-\d{4}-\d{2}-\d{3}", re.ASCII)

    def assemble(self, matched: str) -> str:
        return matched.replace("-", "")


class LegacyMatcher(IdentifierMatcher):
    """Alphanumeric third segment rule: 09-014-AA01-10-001 -> 090140AA0110001."""

    name = "legacy"
    pattern = re.compile(
        r"\d{2}-\d{3}-[A-Z0-9]+-\d{2}-\d{3}",
        re.ASCII | re.IGNORECASE
    )

    def assemble(self, matched: str) -> str:
        parts = matched.split("-")
        if len(parts) != 5:
            return ""
        p1, p2, p3, p4, p5 = parts
        return f"{p1}{p2}0{p3}{p4}{p5}"


MATCHERS: Dict[str, IdentifierMatcher] = {
    StrictMatcher.name: StrictMatcher(),
    LegacyMatcher.name: LegacyMatcher(),
}


def get_matcher(name: Optional[str] = None) -> IdentifierMatcher:
    """
    Look up an identifier rule by name.

    Args:
        name: Rule name ("strict" or "legacy"); None selects the default

    Returns:
        The registered IdentifierMatcher

    Raises:
        ValueError: If no rule is registered under that name
    """
    key = (name or DEFAULT_RULE).strip().lower()
    try:
        return MATCHERS[key]
    except KeyError:
        available = ", ".join(sorted(MATCHERS))
        raise ValueError(
            f"Unknown identifier rule '{name}'. Available: {available}"
        ) from None


def extract_identifier(
    file_name: str,
    matcher: Optional[IdentifierMatcher] = None
) -> str:
    """
    Extract the canonical identifier from a filename.

    Args:
        file_name: The raw filename
        matcher: Rule to apply (defaults to the strict rule)

    Returns:
        The canonical identifier, or "" if the filename is not sortable
    """
    matcher = matcher or MATCHERS[DEFAULT_RULE]
    identifier = matcher.extract(file_name)
    if identifier:
        logger.debug(f"{file_name!r} -> {identifier} ({matcher.name})")
    return identifier
