"""Configuration module for spec-sync.

Contains SyncConfig dataclass, file-based locking, config loading
from YAML, and config building from CLI arguments.
"""

import argparse
import contextlib
import fcntl
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TextIO

import yaml

from .errors import ConfigError
from .logging import get_logger
from .parser import DEFAULT_VOCABULARY, LabelRule

logger = get_logger("config")

# === File Lock ===


class SyncLock:
    """File lock to prevent parallel sync runs in one project."""

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self.lock_file: TextIO | None = None

    def acquire(self) -> bool:
        """Try to acquire lock. Returns True if successful."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self.lock_file = open(self.lock_path, "w")  # noqa: SIM115
        try:
            fcntl.flock(self.lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
            self.lock_file.write(f"PID: {os.getpid()}\nStarted: {datetime.now().isoformat()}\n")
            self.lock_file.flush()
            return True
        except BlockingIOError:
            self.lock_file.close()
            self.lock_file = None
            return False

    def release(self):
        """Release the lock."""
        if self.lock_file:
            fcntl.flock(self.lock_file, fcntl.LOCK_UN)
            self.lock_file.close()
            self.lock_file = None
            with contextlib.suppress(FileNotFoundError):
                self.lock_path.unlink()


# === Constants ===

CONFIG_FILE = Path("spec-sync.config.yaml")

PROVIDERS = ("gemini", "groq", "cli")

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "groq": "llama-3.1-8b-instant",
    "cli": "",
}

# Output patterns of local LLM CLIs that signal a rate limit
ERROR_PATTERNS = [
    "you've hit your limit",
    "rate limit exceeded",
    "quota exceeded",
    "too many requests",
    "resource_exhausted",
]


# === SyncConfig ===


@dataclass
class SyncConfig:
    """spec-sync configuration"""

    # Generation backend
    provider: str = field(default_factory=lambda: os.environ.get("LLM_PROVIDER", "gemini"))
    api_key: str = field(default_factory=lambda: os.environ.get("LLM_API_KEY", ""), repr=False)
    model: str = ""  # Empty = provider default
    request_timeout_seconds: int = 60
    max_retries: int = 3  # Attempts per generation call
    retry_delay_seconds: int = 5  # Base delay for linear backoff

    # Local CLI backend (provider "cli")
    llm_command: str = "claude"
    # Placeholders: {cmd}, {model}, {prompt}. Empty = auto-detect from command name
    command_template: str = ""

    # Change discovery
    base_ref: str = "HEAD~1"
    head_ref: str = "HEAD"
    feature_prefix: str = "src/features/"
    source_suffix: str = ".ts"

    # Generation behavior
    generate_test_cases: bool = True  # Ask for test cases before the script
    require_confident_match: bool = False  # Use whole-file mode for weak matches
    include_project_tree: bool = True
    tree_depth: int = 3

    # Label vocabulary for block titles
    labels: tuple[LabelRule, ...] = DEFAULT_VOCABULARY

    # Paths
    project_root: Path = Path(".")
    codebase_path: Path = field(
        default_factory=lambda: Path(os.environ.get("CODEBASE_PATH", "./app-codebase"))
    )
    tests_dir: Path = Path("src/tests/specs")
    prompts_dir: Path = Path(".spec-sync/prompts")
    logs_dir: Path = Path(".spec-sync/logs")

    log_level: str = "info"

    def __post_init__(self):
        """Resolve relative paths against project_root."""
        self.project_root = self.project_root.resolve()
        for name in ("codebase_path", "tests_dir", "prompts_dir", "logs_dir"):
            value = Path(getattr(self, name))
            if not value.is_absolute():
                value = self.project_root / value
            setattr(self, name, value)

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.provider, "")

    @property
    def lock_file(self) -> Path:
        return self.project_root / ".spec-sync" / "sync.lock"

    @property
    def progress_file(self) -> Path:
        return self.project_root / ".spec-sync" / "progress.txt"


# === Config Loading ===


def parse_labels(raw: list) -> tuple[LabelRule, ...]:
    """Build a label vocabulary from the YAML ``labels:`` list.

    Each entry is ``{label: auth, keywords: [auth, login]}``; a bare string
    is shorthand for a label that is its own keyword.
    """
    rules: list[LabelRule] = []
    for entry in raw:
        if isinstance(entry, str):
            rules.append(LabelRule(entry.lower(), (entry.lower(),)))
            continue
        label = str(entry["label"]).lower()
        keywords = entry.get("keywords") or [label]
        rules.append(LabelRule(label, tuple(str(k).lower() for k in keywords)))
    return tuple(rules)


def load_config_from_yaml(config_path: Path = CONFIG_FILE) -> dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Dictionary with configuration values (None for unset keys).
    """
    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        sync_config = data.get("sync", {})
        llm = sync_config.get("llm", {})
        paths = sync_config.get("paths", {})
        labels = sync_config.get("labels")

        return {
            "provider": llm.get("provider"),
            "model": llm.get("model"),
            "request_timeout_seconds": llm.get("timeout_seconds"),
            "max_retries": llm.get("max_retries"),
            "retry_delay_seconds": llm.get("retry_delay_seconds"),
            "llm_command": llm.get("command"),
            "command_template": llm.get("command_template"),
            "base_ref": sync_config.get("base_ref"),
            "head_ref": sync_config.get("head_ref"),
            "feature_prefix": sync_config.get("feature_prefix"),
            "source_suffix": sync_config.get("source_suffix"),
            "generate_test_cases": sync_config.get("generate_test_cases"),
            "require_confident_match": sync_config.get("require_confident_match"),
            "include_project_tree": sync_config.get("include_project_tree"),
            "tree_depth": sync_config.get("tree_depth"),
            "labels": parse_labels(labels) if labels else None,
            "project_root": Path(paths["root"]) if paths.get("root") else None,
            "codebase_path": Path(paths["codebase"]) if paths.get("codebase") else None,
            "tests_dir": Path(paths["tests"]) if paths.get("tests") else None,
            "prompts_dir": Path(paths["prompts"]) if paths.get("prompts") else None,
            "logs_dir": Path(paths["logs"]) if paths.get("logs") else None,
            "log_level": sync_config.get("log_level"),
        }
    except (OSError, yaml.YAMLError, AttributeError, KeyError, TypeError) as e:
        logger.warning("Failed to load config", path=str(config_path), error=str(e))
        return {}


def build_config(yaml_config: dict, args: argparse.Namespace) -> SyncConfig:
    """Build SyncConfig from YAML and CLI arguments.

    CLI arguments override YAML config.

    Args:
        yaml_config: Configuration loaded from YAML file.
        args: Parsed CLI arguments.

    Returns:
        SyncConfig instance.
    """
    config_kwargs = {}

    for key, value in yaml_config.items():
        if value is not None:
            config_kwargs[key] = value

    if getattr(args, "provider", None):
        config_kwargs["provider"] = args.provider
    if getattr(args, "model", None):
        config_kwargs["model"] = args.model
    if getattr(args, "max_retries", None) is not None:
        config_kwargs["max_retries"] = args.max_retries
    if getattr(args, "timeout", None) is not None:
        config_kwargs["request_timeout_seconds"] = args.timeout
    if getattr(args, "codebase", None):
        config_kwargs["codebase_path"] = Path(args.codebase)
    if getattr(args, "project_root", None):
        config_kwargs["project_root"] = Path(args.project_root)
    if getattr(args, "base", None):
        config_kwargs["base_ref"] = args.base
    if getattr(args, "no_cases", False):
        config_kwargs["generate_test_cases"] = False
    if getattr(args, "log_level", None):
        config_kwargs["log_level"] = args.log_level

    provider = str(config_kwargs.get("provider", "")).lower()
    if provider and provider not in PROVIDERS:
        raise ConfigError(f"Unsupported provider '{provider}' (expected one of {list(PROVIDERS)})")

    try:
        return SyncConfig(**config_kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
