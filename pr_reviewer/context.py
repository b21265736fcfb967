"""Aggregation of auxiliary text files into extra prompt context."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from pr_reviewer.logger import get_logger

logger = get_logger()

PACKAGE_DIR = Path(__file__).resolve().parent
USER_CONTEXT_HEADER = "## Additional Context"
SYSTEM_CONTEXT_HEADER = "## Reviewer Guidelines"
FILE_TRUNCATION_MARKER = "\n... [file truncated]"
TOTAL_TRUNCATION_MARKER = "\n... [additional context truncated]"

SKIPPED_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {
        # images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg", ".webp", ".tiff",
        # archives
        ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar",
        # executables and compiled artifacts
        ".exe", ".dll", ".so", ".dylib", ".bin", ".pdb", ".class", ".jar", ".pyc", ".o", ".a",
        # office documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        # audio and video
        ".mp3", ".wav", ".flac", ".ogg", ".mp4", ".avi", ".mov", ".mkv", ".webm",
    }
)  # fmt: skip

FENCE_LANGUAGES: Final[dict[str, str]] = {
    ".py": "python",
    ".cs": "csharp",
    ".js": "javascript",
    ".ts": "typescript",
    ".json": "json",
    ".md": "markdown",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".xml": "xml",
    ".sh": "bash",
    ".sql": "sql",
    ".java": "java",
    ".go": "go",
    ".rb": "ruby",
    ".html": "html",
    ".css": "css",
    ".toml": "toml",
}


@dataclass(frozen=True, slots=True)
class ContextFolderOptions:
    """Where to read context files from and how much of them to keep."""

    folder: str | None
    recursive: bool
    max_file_chars: int
    max_total_chars: int


def default_base_dirs() -> tuple[Path, ...]:
    """Candidate roots for relative folders: cwd, package dir, its parent."""
    return (Path.cwd(), PACKAGE_DIR, PACKAGE_DIR.parent)


def resolve_context_folder(
    folder: str | None,
    base_dirs: Sequence[Path] | None = None,
) -> Path | None:
    """Return the first existing directory for ``folder``, or None."""
    if not folder or not folder.strip():
        return None
    candidate = Path(folder.strip()).expanduser()
    if candidate.is_absolute():
        return candidate if candidate.is_dir() else None
    for base_dir in base_dirs if base_dirs is not None else default_base_dirs():
        resolved = base_dir / candidate
        if resolved.is_dir():
            return resolved
    return None


def read_context_file(path: Path) -> str | None:
    """Return the file's text, or None when it is unreadable or empty."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        logger.debug("Skipping unreadable context file {}: {}", path, error)
        return None
    if not text.strip():
        return None
    return text


def _list_context_files(folder: Path, *, recursive: bool) -> list[Path] | None:
    pattern = "**/*" if recursive else "*"
    try:
        files = [path for path in folder.glob(pattern) if path.is_file()]
    except OSError as error:
        logger.warning("Could not list context folder {}: {}", folder, error)
        return None
    return sorted(files)


def _format_file_block(relative_path: str, suffix: str, text: str, max_file_chars: int) -> str:
    if len(text) > max_file_chars:
        text = text[:max_file_chars] + FILE_TRUNCATION_MARKER
    language = FENCE_LANGUAGES.get(suffix, "")
    return f"### File: {relative_path}\n```{language}\n{text.rstrip()}\n```\n"


def aggregate_folder_context(
    options: ContextFolderOptions,
    *,
    header: str,
    base_dirs: Sequence[Path] | None = None,
) -> str | None:
    """Concatenate the folder's text files into one fenced, capped block.

    Returns None when the folder is missing or contributes no readable text.
    """
    folder = resolve_context_folder(options.folder, base_dirs)
    if folder is None:
        if options.folder:
            logger.warning("Context folder '{}' not found; continuing without it", options.folder)
        return None

    files = _list_context_files(folder, recursive=options.recursive)
    if not files:
        return None

    parts = [f"{header}\n"]
    total = len(parts[0])
    included = 0
    cut = False
    for path in files:
        suffix = path.suffix.lower()
        if suffix in SKIPPED_EXTENSIONS:
            continue
        text = read_context_file(path)
        if text is None:
            continue
        block = _format_file_block(
            path.relative_to(folder).as_posix(), suffix, text, options.max_file_chars
        )
        parts.append(block)
        included += 1
        total += len(block)
        if total > options.max_total_chars:
            cut = True
            break

    if included == 0:
        return None

    aggregated = "\n".join(parts)
    if len(aggregated) > options.max_total_chars:
        aggregated = aggregated[: options.max_total_chars]
        cut = True
    if cut:
        aggregated += TOTAL_TRUNCATION_MARKER
    logger.debug("Aggregated {} context file(s) from {} ({} chars)", included, folder, len(aggregated))
    return aggregated
