"""Tests for the no-issues review classifier."""

from __future__ import annotations

import pytest
from pr_reviewer.classifier import is_no_issues_review


@pytest.mark.unit
@pytest.mark.parametrize(
    "text",
    [
        "LGTM",
        "  lgtm \n",
        "```OK```",
        "**Looks good to me**",
        "No issues found.",
        "- none",
        "LGTM, nice cleanup!",
        "After reading the diff: no actionable issues.",
        "",
        "   ",
    ],
)
def test_no_issue_reviews_are_recognized(text: str) -> None:
    assert is_no_issues_review(text) is True


@pytest.mark.unit
@pytest.mark.parametrize(
    "text",
    [
        "Potential null reference in Foo.Bar when input is empty.",
        "## Findings\n- `parse()` swallows exceptions.",
        "Okay, but the loop is quadratic.",
    ],
)
def test_substantive_reviews_are_not_suppressed(text: str) -> None:
    assert is_no_issues_review(text) is False


@pytest.mark.unit
def test_known_loose_match_inside_substantive_review() -> None:
    # Substring matching also fires on negated or partial mentions.
    text = "There is nothing to review in tests, but `save()` leaks the file handle."
    assert is_no_issues_review(text) is True
