"""Batch synchronization of test files with the application codebase."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .config import SyncConfig
from .errors import SpecSyncError
from .generator import GenerationResult, generate_test_cases, generate_test_script
from .git import get_changed_files
from .llm import LLMClient
from .logging import get_logger
from .mapper import map_code_to_test, spec_path_for
from .prompt import CaseContext

logger = get_logger("sync")


def log_progress(message: str, tag: str | None = None, progress_file: Path | None = None):
    """Print a progress line with timestamp, optionally appending it to a file."""
    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"[{tag}] " if tag else ""
    line = f"[{timestamp}] {prefix}{message}\n"

    if progress_file is not None:
        progress_file.parent.mkdir(parents=True, exist_ok=True)
        with open(progress_file, "a") as f:
            f.write(line)

    print(line.rstrip())


@dataclass
class SyncReport:
    """Outcome of a sync run."""

    written: list[Path] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def sync_file(
    rel_path: str,
    config: SyncConfig,
    client: LLMClient,
    dry_run: bool = False,
) -> tuple[Path, GenerationResult]:
    """Generate or update the test file for one source file.

    Args:
        rel_path: Source path relative to the codebase root.
        config: Sync configuration.
        client: Generation backend.
        dry_run: If True, do not write the result.

    Returns:
        The spec file path and the generation result.
    """
    target = map_code_to_test(rel_path)
    code = (config.codebase_path / rel_path).read_text(encoding="utf-8")
    spec_path = spec_path_for(target, config.tests_dir)

    existing = spec_path.read_text(encoding="utf-8") if spec_path.exists() else None

    test_cases = None
    if config.generate_test_cases:
        test_cases = generate_test_cases(
            client, code, CaseContext(feature_name=target.feature)
        )

    result = generate_test_script(client, config, target, code, test_cases, existing)

    if not dry_run:
        spec_path.parent.mkdir(parents=True, exist_ok=True)
        spec_path.write_text(result.script.lstrip("\n").rstrip() + "\n", encoding="utf-8")

    return spec_path, result


def sync_changed_files(
    config: SyncConfig,
    client: LLMClient | None = None,
    files: list[str] | None = None,
    dry_run: bool = False,
) -> SyncReport:
    """Sync test files for every changed feature source file.

    Files are processed one at a time; a failure is recorded and the
    batch continues with the next file.

    Args:
        config: Sync configuration.
        client: Generation backend (default: built from config).
        files: Explicit source paths; default is the git diff of the codebase.
        dry_run: If True, generate but do not write.
    """
    client = client or LLMClient(config)
    report = SyncReport()

    if files is None:
        files = get_changed_files(
            config.codebase_path,
            base_ref=config.base_ref,
            head_ref=config.head_ref,
            prefix=config.feature_prefix,
            suffix=config.source_suffix,
        )

    if not files:
        log_progress("No new feature files detected", progress_file=config.progress_file)
        return report

    log_progress(f"Found {len(files)} changed file(s)", progress_file=config.progress_file)

    for rel_path in files:
        try:
            spec_path, result = sync_file(rel_path, config, client, dry_run=dry_run)
        except (SpecSyncError, OSError, UnicodeDecodeError) as e:
            logger.error("Sync failed", path=rel_path, error=str(e))
            log_progress(f"Failed: {e}", rel_path, config.progress_file)
            report.failed[rel_path] = str(e)
            continue

        report.written.append(spec_path)
        verb = "Would write" if dry_run else "Wrote"
        log_progress(
            f"{verb} {spec_path} ({result.mode.value})", rel_path, config.progress_file
        )

    logger.info("Sync complete", written=len(report.written), failed=len(report.failed))
    return report
