"""Prompt construction for the review request."""

from __future__ import annotations

from pr_reviewer.bitbucket_client import PullRequestSnapshot
from pr_reviewer.schema import ChatMessage, MessageRole

DIFF_TRUNCATION_MARKER = "\n... [diff truncated]"
SYSTEM_PERSONA = "You are a code review assistant."
NO_ISSUES_REPLY = "LGTM"

MISSING_TITLE = "(no title)"
MISSING_DESCRIPTION = "(no description)"
MISSING_AUTHOR = "(unknown)"

REVIEW_INSTRUCTIONS = f"""You are a senior software engineer performing a code review for a Bitbucket Pull Request.
Be concise, actionable, and respectful. Focus on correctness, security, performance, tests, and readability.
Consider: 1. Code quality and adherence to best practices, 2. Potential bugs or edge cases, \
3. Performance optimizations, 4. Readability and maintainability, 5. Any security concerns. \
Suggest improvements and explain your reasoning for each suggestion.

Always include concrete suggestions and code snippets where appropriate.
Do not repeat the same finding twice.
If you find nothing actionable, reply with exactly: {NO_ISSUES_REPLY}

### Formatting rules:
- Use compact Markdown supported by Bitbucket (headings, bullet lists, code fences).
- Use language-specific code fences for snippets (e.g., ```python, ```diff, ```json).
- Keep the whole review under ~800-1000 words."""


def truncate(text: str, max_chars: int) -> str:
    """Cut text at ``max_chars`` and append the truncation marker when it is longer."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + DIFF_TRUNCATION_MARKER


def build_system_prompt(system_context: str | None = None) -> str:
    """Return the reviewer persona, extended with configured guidelines."""
    if system_context:
        return f"{SYSTEM_PERSONA}\n\n{system_context}"
    return SYSTEM_PERSONA


def build_user_prompt(snapshot: PullRequestSnapshot, diff: str) -> str:
    """Return the instructions followed by PR metadata and the diff."""
    title = snapshot.title or MISSING_TITLE
    description = snapshot.description or MISSING_DESCRIPTION
    author = snapshot.author_name or MISSING_AUTHOR
    return f"""{REVIEW_INSTRUCTIONS}

## Pull Request Context
- Title: {title}
- Author: {author}

### Description
{description}

### Unified Diff (may be truncated)
```diff
{diff}
```
"""


def assemble_messages(
    snapshot: PullRequestSnapshot,
    diff: str,
    *,
    system_context: str | None = None,
    extra_context: str | None = None,
) -> list[ChatMessage]:
    """Return the system message, the review request, and optional extra context."""
    messages = [
        ChatMessage(role=MessageRole.SYSTEM, content=build_system_prompt(system_context)),
        ChatMessage(role=MessageRole.USER, content=build_user_prompt(snapshot, diff)),
    ]
    if extra_context and extra_context.strip():
        messages.append(ChatMessage(role=MessageRole.USER, content=extra_context))
    return messages
