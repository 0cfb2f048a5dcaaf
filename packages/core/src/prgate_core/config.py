from __future__ import annotations

import os
import re
import subprocess
from pathlib import Path
from typing import Annotated, Any, Optional

import yaml
from pydantic import (
    AfterValidator,
    AnyHttpUrl,
    BaseModel,
    BeforeValidator,
    Field,
    SecretStr,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from prgate_core.errors import ConfigurationError
from prgate_core.utils.code import FORBIDDEN_APPROVAL_EXTENSIONS

DEFAULT_CONFIG: dict = {
    "repo": None,  # "owner/name"
    "commit": None,
    "local_git_repo": None,
    "branches_ignore": [],
    "skip_folders": [],  # not applied to auto-approval
    "lint": True,
    "lint_command": ["php", "-l"],
    "phpcs": True,
    "phpcs_path": "phpcs",
    "phpcs_standard": "WordPress-VIP-Go",
    "phpcs_severity": 1,
    "phpcs_sniffs_exclude": [],
    "svg_checks": False,
    "review_comments_max": 10,
    "review_comments_total_max": 200,  # 0 = unlimited
    "review_comments_ignore": [],
    "dismiss_stale_reviews": False,
    "informational_url": None,
    "autoapprove": False,
    "autoapprove_filetypes": [],
    "autoapprove_label": None,
    "hashes_api": False,
    "hashes_api_url": None,
    "irc_api_url": None,
    "irc_api_bot": None,
    "irc_api_room": None,
    "pixel_api_url": None,
    "pixel_api_groupprefix": None,
    "dry_run": False,
}

_LIST_KEYS = ("branches_ignore", "skip_folders", "phpcs_sniffs_exclude", "review_comments_ignore", "autoapprove_filetypes")
_REPO_RE = re.compile(r"^[\w.-]+/[\w.-]+$")
_NAME_PATTERN = r"^[\w.-]+$"
_SHA_PATTERN = r"^[0-9a-fA-F]{7,40}$"


def load_config(config_path: str = ".prgate.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prgate.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG}
    for key in _LIST_KEYS:
        config[key] = list(DEFAULT_CONFIG[key])

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Could not parse {config_path}: {e}")
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping of options.")
        bad_keys = [k for k in file_config if not isinstance(k, str)]
        if bad_keys:
            raise ConfigurationError(f"{config_path} has option names that are not strings: {bad_keys}")
        config.update({k.replace("-", "_"): v for k, v in file_config.items()})

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config.setdefault("github_token", None)
    config["github_token"] = config["github_token"] or os.environ.get("GITHUB_TOKEN")
    config["hashes_api_token"] = os.environ.get("PRGATE_HASHES_API_TOKEN")
    config["irc_api_token"] = os.environ.get("PRGATE_IRC_API_TOKEN")

    return config


# --------------------------------------------------------------------------- #
# Validated settings                                                           #
# --------------------------------------------------------------------------- #


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
    return value if value not in ("", None) else None


def _split(value: Any, separator: str | None = ",", lower: bool = False) -> Any:
    """Accept a YAML list or a separated string; drop blanks."""
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(separator)
    if isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value if str(v).strip()]
        return tuple(v.lower() for v in items) if lower else tuple(items)
    return value


HttpUrlOption = Annotated[
    Optional[Annotated[AnyHttpUrl, AfterValidator(lambda url: str(url).rstrip("/"))]],
    BeforeValidator(_blank_to_none),
]
TextOption = Annotated[Optional[str], BeforeValidator(_blank_to_none)]


class RepoSettings(BaseModel):
    owner: str = Field(pattern=_NAME_PATTERN)
    name: str = Field(pattern=_NAME_PATTERN)
    commit: str = Field(pattern=_SHA_PATTERN, description="Commit SHA to scan, full or abbreviated")
    token: SecretStr = Field(alias="github_token")
    local_git_repo: str
    branches_ignore: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def split_repo(cls, data: Any) -> Any:
        if isinstance(data, dict) and "repo" in data:
            repo = str(data.get("repo") or "").strip()
            if not _REPO_RE.match(repo):
                raise ValueError(f"Option repo must be in owner/name format, got {repo!r}.")
            owner, name = repo.split("/", 1)
            data = {**data, "owner": owner, "name": name}
        return data

    @field_validator("commit", mode="before")
    @classmethod
    def strip_commit(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("token", mode="before")
    @classmethod
    def require_token(cls, value: Any) -> Any:
        if not value:
            raise ValueError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")
        return value

    @field_validator("local_git_repo", mode="before")
    @classmethod
    def existing_directory(cls, value: Any) -> str:
        path = str(value or "").strip()
        if not path:
            raise ValueError("Option local_git_repo is required.")
        path = path.rstrip("/") or "/"
        if not Path(path).is_dir():
            raise ValueError(f"Option local_git_repo has to be a valid directory: {path}")
        return path

    @field_validator("branches_ignore", mode="before")
    @classmethod
    def split_branches(cls, value: Any) -> Any:
        return _split(value)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    model_config = {"frozen": True, "populate_by_name": True}


class ScanSettings(BaseModel):
    lint: bool = True
    lint_command: tuple[str, ...] = ("php", "-l")
    phpcs: bool = True
    phpcs_path: str = "phpcs"
    phpcs_standard: str = "WordPress-VIP-Go"
    phpcs_severity: int = Field(default=1, ge=1, le=10)
    phpcs_sniffs_exclude: tuple[str, ...] = ()
    svg_checks: bool = False
    skip_folders: tuple[str, ...] = ()

    @field_validator("lint_command", mode="before")
    @classmethod
    def split_command(cls, value: Any) -> Any:
        return _split(value, separator=None)

    @field_validator("lint_command")
    @classmethod
    def command_not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("Option lint_command can not be empty.")
        return value

    @field_validator("phpcs_path", "phpcs_standard", mode="before")
    @classmethod
    def default_when_blank(cls, value: Any, info: ValidationInfo) -> Any:
        value = _blank_to_none(value)
        return cls.model_fields[info.field_name].default if value is None else value

    @field_validator("phpcs_sniffs_exclude", "skip_folders", mode="before")
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return _split(value)

    @model_validator(mode="after")
    def some_scanner_enabled(self) -> ScanSettings:
        if not (self.lint or self.phpcs or self.svg_checks):
            raise ValueError("All scanners are disabled (lint, phpcs, svg_checks); nothing to do.")
        return self

    model_config = {"frozen": True, "populate_by_name": True}


class ApprovalSettings(BaseModel):
    enabled: bool = Field(default=False, alias="autoapprove")
    filetypes: tuple[str, ...] = Field(default=(), alias="autoapprove_filetypes")
    label: TextOption = Field(default=None, alias="autoapprove_label")
    hashes_api: bool = False
    hashes_api_url: HttpUrlOption = None
    hashes_api_token: Optional[SecretStr] = None
    svg_checks: bool = False

    @field_validator("filetypes", mode="before")
    @classmethod
    def normalise_filetypes(cls, value: Any) -> Any:
        value = _split(value, lower=True)
        return tuple(ft.lstrip(".") for ft in value) if isinstance(value, tuple) else value

    @field_validator("filetypes")
    @classmethod
    def no_executable_filetypes(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        forbidden = sorted(set(value) & FORBIDDEN_APPROVAL_EXTENSIONS)
        if forbidden:
            raise ValueError(
                f"Files of type {', '.join(forbidden)} cannot be auto-approved on file-type basis, "
                "as they can cause serious problems for execution."
            )
        return value

    @model_validator(mode="after")
    def check_dependencies(self) -> ApprovalSettings:
        if self.enabled and not self.label:
            raise ValueError("Option autoapprove requires autoapprove_label to be set.")
        if self.hashes_api:
            if not self.enabled:
                raise ValueError("Option hashes_api is only useful with autoapprove enabled.")
            if not self.hashes_api_url or not self.hashes_api_token:
                raise ValueError("Option hashes_api requires hashes_api_url and PRGATE_HASHES_API_TOKEN.")
        return self

    model_config = {"frozen": True, "populate_by_name": True}


class FilterSettings(BaseModel):
    ignore: tuple[str, ...] = Field(default=(), alias="review_comments_ignore")

    @field_validator("ignore", mode="before")
    @classmethod
    def split_ignore(cls, value: Any) -> Any:
        return _split(value, separator="|||", lower=True)

    model_config = {"frozen": True, "populate_by_name": True}


class LimitSettings(BaseModel):
    per_review_max: int = Field(default=10, ge=5, le=100, alias="review_comments_max")
    total_max: int = Field(default=200, ge=0, le=500, alias="review_comments_total_max")  # 0 = unlimited
    informational_url: HttpUrlOption = None
    dismiss_stale_reviews: bool = False

    model_config = {"frozen": True, "populate_by_name": True}


class NotifySettings(BaseModel):
    irc_api_url: HttpUrlOption = None
    irc_api_token: Optional[SecretStr] = None
    irc_api_bot: TextOption = None
    irc_api_room: TextOption = None
    pixel_api_url: HttpUrlOption = None
    pixel_api_groupprefix: TextOption = None

    @field_validator("irc_api_token", mode="before")
    @classmethod
    def blank_token(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @model_validator(mode="after")
    def irc_all_or_nothing(self) -> NotifySettings:
        defined = [self.irc_api_url, self.irc_api_token, self.irc_api_bot, self.irc_api_room]
        if any(defined) and not all(defined):
            raise ValueError("Some IRC API options are defined but not all; all must be defined to be useful.")
        return self

    @property
    def irc_enabled(self) -> bool:
        return bool(self.irc_api_url)

    @property
    def pixel_enabled(self) -> bool:
        return bool(self.pixel_api_url and self.pixel_api_groupprefix)

    model_config = {"frozen": True, "populate_by_name": True}


class Settings(BaseModel):
    repo: RepoSettings
    scan: ScanSettings
    approval: ApprovalSettings
    filter: FilterSettings
    limits: LimitSettings
    notify: NotifySettings
    dry_run: bool = False

    def to_loggable(self) -> dict:
        # SecretStr fields dump as asterisks in JSON mode.
        return self.model_dump(mode="json")

    model_config = {"frozen": True, "populate_by_name": True}


def build_settings(config: dict, check_git_head: bool = True) -> Settings:
    """Validate a merged config dict into an immutable Settings record.

    Every section reads its options straight from the flat config dict.
    Raises ConfigurationError listing each invalid option. Nothing here talks
    to GitHub, so a bad option never leaves a half-applied run behind.
    """
    sections = ("repo", "scan", "approval", "filter", "limits", "notify")
    try:
        settings = Settings.model_validate(
            {**{section: config for section in sections}, "dry_run": config.get("dry_run", False)}
        )
    except ValidationError as e:
        raise ConfigurationError(_describe(e)) from e
    if check_git_head:
        _check_git_head(settings.repo.local_git_repo, settings.repo.commit)
    return settings


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        message = item["msg"].removeprefix("Value error, ")
        if message.startswith("Option "):
            problems.append(message)
        else:
            option = ".".join(str(part) for part in item["loc"][1:]) or item["loc"][0]
            problems.append(f"Option {option}: {message}")
    return " ".join(problems)


def _check_git_head(repo_path: str, commit: str) -> None:
    try:
        result = subprocess.run(
            ["git", "-C", repo_path, "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise ConfigurationError(f"Could not inspect local git repository {repo_path}: {e}")
    head = result.stdout.strip()
    if result.returncode != 0 or not head.lower().startswith(commit.lower()):
        raise ConfigurationError(
            f"Local git repository {repo_path} is not checked out at {commit} (HEAD is {head or 'unknown'})."
        )
