"""Run configuration: file defaults, then environment, then CLI overrides."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pr_reviewer.schema import PublishMode

CONFIG_PATH_ENV_VAR = "PR_REVIEWER_CONFIG"
DEFAULT_CONFIG_PATH = "pr-reviewer.json"
DEFAULT_TEMP_ROOT = Path(tempfile.gettempdir()) / "pr-reviewer"


class ConfigError(RuntimeError):
    """Raised when configuration is invalid or incomplete."""


class BitbucketSettings(BaseModel):
    """Hosting API and clone settings."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    base_url: str = "https://api.bitbucket.org/2.0"
    repo_base_clone_url: str = "https://bitbucket.org"
    workspace: str | None = None
    repo_slug: str | None = None
    username: str | None = None
    api_token: str | None = None
    timeout_seconds: int = Field(default=60, ge=0)

    @property
    def normalized_base_url(self) -> str:
        """Return the API base URL without a trailing slash."""
        return self.base_url.rstrip("/")

    def clone_url(self, workspace: str, repo_slug: str) -> str:
        """Return the HTTPS clone URL for a repository."""
        return f"{self.repo_base_clone_url.rstrip('/')}/{workspace}/{repo_slug}.git"


class ModelSettings(BaseModel):
    """OpenAI-compatible chat-completions endpoint settings."""

    model_config = ConfigDict(extra="ignore", frozen=True, protected_namespaces=())

    endpoint: str = "http://localhost:8080/v1/chat/completions"
    api_key: str | None = None
    model: str = "tabby"
    timeout_seconds: int = Field(default=600, ge=0)
    max_tokens: int = Field(default=800, ge=1)
    stream: bool = False


class ToolSettings(BaseModel):
    """Local behaviour of the review run."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    temp_root: str | None = None
    max_diff_chars: int = Field(default=45_000, ge=1)
    dry_run: bool = False
    publish_mode: PublishMode = PublishMode.PUBLISH
    extra_context_folder: str | None = None
    extra_context_recursive: bool = True
    extra_context_max_file_chars: int = Field(default=8_000, ge=1)
    extra_context_max_total_chars: int = Field(default=40_000, ge=1)
    system_context_folder: str | None = None
    system_context_recursive: bool = True
    system_context_max_file_chars: int = Field(default=8_000, ge=1)
    system_context_max_total_chars: int = Field(default=20_000, ge=1)

    @property
    def resolved_temp_root(self) -> Path:
        """Return the checkout root, falling back to the system temp dir."""
        if self.temp_root and self.temp_root.strip():
            return Path(self.temp_root).expanduser()
        return DEFAULT_TEMP_ROOT


class RunConfig(BaseModel):
    """Merged, read-only configuration for one run."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    bitbucket: BitbucketSettings = Field(default_factory=BitbucketSettings)
    model: ModelSettings = Field(default_factory=ModelSettings)
    tool: ToolSettings = Field(default_factory=ToolSettings)


# (environment variable, section, field, kind)
ENV_BINDINGS: Final[tuple[tuple[str, str, str, str], ...]] = (
    ("BITBUCKET_WORKSPACE", "bitbucket", "workspace", "str"),
    ("BITBUCKET_REPO_SLUG", "bitbucket", "repo_slug", "str"),
    ("BITBUCKET_USERNAME", "bitbucket", "username", "str"),
    ("BITBUCKET_API_TOKEN", "bitbucket", "api_token", "str"),
    ("TABBY_ENDPOINT", "model", "endpoint", "str"),
    ("TABBY_API_KEY", "model", "api_key", "str"),
    ("TABBY_TIMEOUT_SECONDS", "model", "timeout_seconds", "int"),
    ("TOOL_TEMP_ROOT", "tool", "temp_root", "str"),
    ("TOOL_MAX_DIFF_CHARS", "tool", "max_diff_chars", "int"),
    ("TOOL_DRY_RUN", "tool", "dry_run", "bool"),
    ("TOOL_PUBLISH_MODE", "tool", "publish_mode", "mode"),
    ("TOOL_EXTRA_CONTEXT_FOLDER", "tool", "extra_context_folder", "str"),
    ("TOOL_EXTRA_CONTEXT_RECURSIVE", "tool", "extra_context_recursive", "bool"),
    ("TOOL_EXTRA_CONTEXT_MAX_FILE_CHARS", "tool", "extra_context_max_file_chars", "int"),
    ("TOOL_EXTRA_CONTEXT_MAX_TOTAL_CHARS", "tool", "extra_context_max_total_chars", "int"),
    ("TOOL_SYSTEM_CONTEXT_FOLDER", "tool", "system_context_folder", "str"),
    ("TOOL_SYSTEM_CONTEXT_RECURSIVE", "tool", "system_context_recursive", "bool"),
    ("TOOL_SYSTEM_CONTEXT_MAX_FILE_CHARS", "tool", "system_context_max_file_chars", "int"),
    ("TOOL_SYSTEM_CONTEXT_MAX_TOTAL_CHARS", "tool", "system_context_max_total_chars", "int"),
)

_TRUE_VALUES: Final[set[str]] = {"1", "true", "yes", "on"}
_FALSE_VALUES: Final[set[str]] = {"0", "false", "no", "off"}


def _parse_bool_env(raw_value: str) -> bool | None:
    """Convert an environment string to a boolean, or None when unrecognised."""
    lowered = raw_value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def _parse_int_env(raw_value: str) -> int | None:
    try:
        return int(raw_value.strip())
    except ValueError:
        return None


def _parse_mode_env(raw_value: str) -> PublishMode | None:
    lowered = raw_value.strip().lower()
    for mode in PublishMode:
        if mode.value.lower() == lowered:
            return mode
    return None


def _env_layer(environ: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    """Translate bound environment variables into a nested override layer.

    Malformed numeric, boolean, and mode values are ignored.
    """
    parsers = {
        "str": lambda raw: raw,
        "int": _parse_int_env,
        "bool": _parse_bool_env,
        "mode": _parse_mode_env,
    }
    layer: dict[str, dict[str, Any]] = {}
    for env_name, section, field_name, kind in ENV_BINDINGS:
        raw_value = environ.get(env_name)
        if raw_value is None:
            continue
        parsed = parsers[kind](raw_value)
        if parsed is None:
            continue
        layer.setdefault(section, {})[field_name] = parsed
    return layer


def merge_config(
    file_layer: Mapping[str, Any],
    environ: Mapping[str, str],
    cli_overrides: Mapping[str, Any] | None = None,
) -> RunConfig:
    """Merge file values, environment overrides, and CLI overrides into one config.

    ``cli_overrides`` is keyed by ``section.field``; None values are ignored.
    """
    merged: dict[str, dict[str, Any]] = {}
    for section in ("bitbucket", "model", "tool"):
        section_values = file_layer.get(section) or {}
        if not isinstance(section_values, Mapping):
            raise ConfigError(f"Config section '{section}' must be a JSON object.")
        merged[section] = dict(section_values)

    for section, values in _env_layer(environ).items():
        merged[section].update(values)

    for dotted_key, value in (cli_overrides or {}).items():
        if value is None:
            continue
        section, _, field_name = dotted_key.partition(".")
        if section not in merged or not field_name:
            raise ConfigError(f"Unknown CLI override '{dotted_key}'.")
        merged[section][field_name] = value

    try:
        return RunConfig.model_validate(merged)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error


def read_config_file(path: Path) -> dict[str, Any]:
    """Read the JSON config file; a missing file yields an empty layer."""
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise ConfigError(f"Could not read config file '{path}': {error}") from error
    if not isinstance(payload, dict):
        raise ConfigError(f"Config file '{path}' must contain a JSON object.")
    return payload


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunConfig:
    """Load the run configuration once at startup."""
    if environ is None:
        load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
        environ = os.environ
    path = Path(config_path or environ.get(CONFIG_PATH_ENV_VAR) or DEFAULT_CONFIG_PATH)
    return merge_config(read_config_file(path), environ, cli_overrides)
