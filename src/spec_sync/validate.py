"""Validation for spec-sync config files and generated spec files."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from spec_sync.config import PROVIDERS
from spec_sync.logging import get_logger
from spec_sync.manual_zone import MANUAL_ZONE_END, MANUAL_ZONE_START
from spec_sync.parser import parse_file
from spec_sync.scanner import GROUP_TOKEN, blank_literals

log = get_logger("validate")

KNOWN_SYNC_KEYS: set[str] = {
    "llm",
    "paths",
    "labels",
    "base_ref",
    "head_ref",
    "feature_prefix",
    "source_suffix",
    "generate_test_cases",
    "require_confident_match",
    "include_project_tree",
    "tree_depth",
    "log_level",
}
KNOWN_LLM_KEYS: set[str] = {
    "provider",
    "model",
    "timeout_seconds",
    "max_retries",
    "retry_delay_seconds",
    "command",
    "command_template",
}
KNOWN_PATH_KEYS: set[str] = {"root", "codebase", "tests", "prompts", "logs"}


@dataclass
class ValidationResult:
    """Collects errors and warnings from validation checks."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no errors were found."""
        return len(self.errors) == 0

    def merge(self, other: "ValidationResult") -> None:
        """Merge another result into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


def _levenshtein(s1: str, s2: str) -> int:
    """Compute the Levenshtein (edit) distance between two strings."""
    if len(s1) < len(s2):
        return _levenshtein(s2, s1)

    if not s2:
        return len(s1)

    prev_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        curr_row = [i + 1]
        for j, c2 in enumerate(s2):
            cost = 0 if c1 == c2 else 1
            curr_row.append(min(curr_row[j] + 1, prev_row[j + 1] + 1, prev_row[j] + cost))
        prev_row = curr_row

    return prev_row[-1]


def _suggest_key(unknown: str, known: set[str]) -> str | None:
    """Suggest the closest known key if Levenshtein distance <= 2."""
    best: str | None = None
    best_dist = 3
    for k in sorted(known):  # sorted for deterministic results
        d = _levenshtein(unknown, k)
        if d < best_dist:
            best = k
            best_dist = d
    return best


def _check_keys(section: dict, known: set[str], prefix: str, result: ValidationResult) -> None:
    for key in section:
        if key not in known:
            suggestion = _suggest_key(key, known)
            msg = f"Unknown config key '{prefix}.{key}'"
            if suggestion:
                msg += f", did you mean '{suggestion}'?"
            result.errors.append(msg)


def validate_config(config_path: Path) -> ValidationResult:
    """Validate a spec-sync config YAML file.

    Checks:
    - File exists (missing = ok, use defaults)
    - YAML is parseable
    - Keys under ``sync:``, ``sync.llm:`` and ``sync.paths:`` are recognised
    - The provider is supported
    """
    result = ValidationResult()

    if not config_path.exists():
        return result

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        result.errors.append(f"Failed to parse YAML in {config_path}: {exc}")
        return result

    if not isinstance(data, dict):
        return result

    sync_section = data.get("sync")
    if not isinstance(sync_section, dict):
        return result

    _check_keys(sync_section, KNOWN_SYNC_KEYS, "sync", result)

    llm = sync_section.get("llm")
    if isinstance(llm, dict):
        _check_keys(llm, KNOWN_LLM_KEYS, "sync.llm", result)
        provider = llm.get("provider")
        if provider and str(provider).lower() not in PROVIDERS:
            result.errors.append(
                f"Unsupported provider '{provider}' (expected one of {list(PROVIDERS)})"
            )

    paths = sync_section.get("paths")
    if isinstance(paths, dict):
        _check_keys(paths, KNOWN_PATH_KEYS, "sync.paths", result)

    return result


def validate_spec_file(spec_file: Path) -> ValidationResult:
    """Check that a generated spec file can be updated incrementally.

    Warnings cover files without parseable blocks, group tokens that could
    not be closed, and manual-zone markers that are unpaired or repeated.
    """
    result = ValidationResult()
    text = spec_file.read_text(encoding="utf-8")
    name = str(spec_file)

    parsed = parse_file(text)
    code = blank_literals(text)
    tokens = code.count(GROUP_TOKEN)
    nested = sum(b.content.count(GROUP_TOKEN) - 1 for b in parsed.blocks)
    if not parsed.blocks:
        result.warnings.append(f"{name}: no test.describe blocks (whole-file mode only)")
    elif tokens > len(parsed.blocks) + nested:
        result.warnings.append(f"{name}: some test.describe groups could not be parsed")

    starts = text.count(MANUAL_ZONE_START)
    ends = text.count(MANUAL_ZONE_END)
    if starts != ends:
        result.errors.append(f"{name}: unpaired manual zone markers ({starts} start, {ends} end)")
    elif starts > 1:
        result.warnings.append(f"{name}: {starts} manual zones, only the first is preserved")
    elif starts == 1 and text.find(MANUAL_ZONE_END) < text.find(MANUAL_ZONE_START):
        result.errors.append(f"{name}: manual zone end marker precedes start marker")

    return result


def validate_tests_dir(tests_dir: Path) -> ValidationResult:
    """Validate every ``*.spec.ts`` file below ``tests_dir``."""
    result = ValidationResult()
    if not tests_dir.exists():
        return result

    files = sorted(tests_dir.rglob("*.spec.ts"))
    for spec_file in files:
        result.merge(validate_spec_file(spec_file))

    log.info(
        "validation_complete",
        dir=str(tests_dir),
        files=len(files),
        errors=len(result.errors),
        warnings=len(result.warnings),
    )
    return result


def validate_all(
    config_file: Path | None = None,
    tests_dir: Path | None = None,
) -> ValidationResult:
    """Run all validation checks."""
    result = ValidationResult()
    if config_file:
        result.merge(validate_config(config_file))
    if tests_dir:
        result.merge(validate_tests_dir(tests_dir))
    return result


def format_results(result: ValidationResult) -> str:
    """Format validation results for terminal output."""
    lines: list[str] = []
    if result.errors:
        for e in result.errors:
            lines.append(f"  x {e}")
    if result.warnings:
        if lines:
            lines.append("")
        for w in result.warnings:
            lines.append(f"  ! {w}")
    n_err = len(result.errors)
    n_warn = len(result.warnings)
    err_word = "error" if n_err == 1 else "errors"
    warn_word = "warning" if n_warn == 1 else "warnings"
    lines.append(f"\n{n_err} {err_word}, {n_warn} {warn_word}")
    return "\n".join(lines)
