"""Literal matcher for reviews that report nothing actionable."""

from __future__ import annotations

from typing import Final

DECORATION_CHARS: Final[str] = "`#*- \t\r\n"

NO_ISSUES_PHRASES: Final[frozenset[str]] = frozenset(
    {
        "lgtm",
        "ok",
        "okay",
        "looks good",
        "looks good to me",
        "no issues",
        "no issues found",
        "no issues found.",
        "nothing to report",
        "none",
    }
)
NO_ISSUES_PREFIXES: Final[tuple[str, ...]] = ("lgtm", "no issues", "looks good to me")
NO_ISSUES_SUBSTRINGS: Final[tuple[str, ...]] = (
    "no issues found",
    "no actionable issues",
    "nothing to review",
    "no problems found",
    "no changes requested",
)


def is_no_issues_review(text: str) -> bool:
    """Return whether the review text signals there is nothing to fix.

    Deliberately permissive: any occurrence of a known substring counts, even
    inside an otherwise substantive review.
    """
    if not text or not text.strip():
        return True
    normalized = text.strip(DECORATION_CHARS).lower()
    if normalized in NO_ISSUES_PHRASES:
        return True
    if normalized.startswith(NO_ISSUES_PREFIXES):
        return True
    return any(substring in normalized for substring in NO_ISSUES_SUBSTRINGS)
