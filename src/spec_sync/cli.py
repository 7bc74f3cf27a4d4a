"""CLI commands and argument parsing for spec-sync."""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from .config import (
    CONFIG_FILE,
    SyncConfig,
    SyncLock,
    build_config,
    load_config_from_yaml,
)
from .errors import SpecSyncError
from .generator import generate_test_cases, generate_test_script
from .llm import LLMClient
from .logging import get_logger
from .manual_zone import extract_manual_zone
from .mapper import map_code_to_test, spec_path_for
from .matcher import match_block
from .parser import parse_file
from .prompt import CaseContext
from .sync import log_progress, sync_changed_files
from .validate import format_results, validate_all

logger = get_logger("cli")


# === CLI Commands ===


def cmd_sync(args: argparse.Namespace, config: SyncConfig) -> int:
    """Update tests for source files changed in the codebase."""
    lock = SyncLock(config.lock_file)
    if not lock.acquire():
        logger.error("Another sync is already running", lock_file=str(config.lock_file))
        return 1

    try:
        log_progress(f"Codebase path: {config.codebase_path}", progress_file=config.progress_file)
        report = sync_changed_files(config, dry_run=args.dry_run)
    finally:
        lock.release()

    return 0 if report.ok else 1


def _read_source(path_arg: str, config: SyncConfig) -> tuple[str, str]:
    """Return (codebase-relative path, code) for a CLI path argument."""
    path = Path(path_arg)
    if not path.is_absolute() and not path.exists():
        path = config.codebase_path / path
    path = path.resolve()
    try:
        rel_path = path.relative_to(config.codebase_path).as_posix()
    except ValueError:
        rel_path = path_arg
    return rel_path, path.read_text(encoding="utf-8")


def cmd_generate(args: argparse.Namespace, config: SyncConfig) -> int:
    """Generate or update the test file for one source file."""
    rel_path, code = _read_source(args.file, config)
    target = map_code_to_test(rel_path)
    spec_path = spec_path_for(target, config.tests_dir)
    existing = spec_path.read_text(encoding="utf-8") if spec_path.exists() else None

    client = LLMClient(config)
    test_cases = None
    if config.generate_test_cases:
        test_cases = generate_test_cases(client, code, CaseContext(feature_name=target.feature))

    result = generate_test_script(client, config, target, code, test_cases, existing)

    if args.stdout:
        print(result.script)
        return 0

    spec_path.parent.mkdir(parents=True, exist_ok=True)
    spec_path.write_text(result.script.lstrip("\n").rstrip() + "\n", encoding="utf-8")
    log_progress(f"Test generated: {spec_path} ({result.mode.value})")
    return 0


def cmd_cases(args: argparse.Namespace, config: SyncConfig) -> int:
    """Print generated test cases for one source file."""
    rel_path, code = _read_source(args.file, config)
    target = map_code_to_test(rel_path)
    client = LLMClient(config)
    print(generate_test_cases(client, code, CaseContext(feature_name=target.feature)))
    return 0


def cmd_inspect(args: argparse.Namespace, config: SyncConfig) -> int:
    """Show the blocks of a spec file and which one a target would match."""
    text = Path(args.spec_file).read_text(encoding="utf-8")
    parsed = parse_file(text, config.labels)

    print(f"Blocks: {len(parsed.blocks)}")
    for i, block in enumerate(parsed.blocks, 1):
        print(
            f"  {i}. [{block.start}:{block.end}] {block.title!r} "
            f"feature={block.feature_label} test={block.test_label}"
        )

    zone = extract_manual_zone(text)
    zone_desc = f"present, {len(zone)} chars" if zone is not None else "none"
    print(f"Manual zone: {zone_desc}")

    if args.feature or args.test:
        match = match_block(parsed, args.feature or "", args.test or "")
        if match:
            index = parsed.blocks.index(match.block) + 1
            confidence = "confident" if match.confident else "weak"
            print(f"Match: block {index} via {match.rule.value} ({confidence})")
        else:
            print("Match: none (whole-file mode)")
    return 0


def cmd_validate(args: argparse.Namespace, config: SyncConfig) -> int:
    """Validate config and existing spec files."""
    result = validate_all(
        config_file=config.project_root / CONFIG_FILE,
        tests_dir=config.tests_dir,
    )
    print(format_results(result))
    return 0 if result.ok else 1


# === Main ===


def build_parser() -> argparse.ArgumentParser:
    # Shared options available to every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--codebase", type=str, default="", help="Application codebase path")
    common.add_argument(
        "--project-root",
        type=str,
        default="",
        help="Project root directory (default: current directory)",
    )
    common.add_argument(
        "--provider", choices=["gemini", "groq", "cli"], default=None, help="LLM provider"
    )
    common.add_argument("--model", type=str, default="", help="Model (default: per provider)")
    common.add_argument(
        "--max-retries", type=int, default=None, help="Attempts per generation call (default: 3)"
    )
    common.add_argument(
        "--timeout", type=int, default=None, help="Request timeout in seconds (default: 60)"
    )
    common.add_argument(
        "--no-cases", action="store_true", help="Skip test-case generation before scripts"
    )
    common.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    common.add_argument("--log-json", action="store_true", help="Output logs as JSON lines")

    parser = argparse.ArgumentParser(
        description="spec-sync: generate and update Playwright tests from a codebase",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[common],
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # sync
    sync_parser = subparsers.add_parser(
        "sync", parents=[common], help="Update tests for changed source files"
    )
    sync_parser.add_argument("--base", type=str, default="", help="Base ref (default: HEAD~1)")
    sync_parser.add_argument(
        "--dry-run", action="store_true", help="Generate but do not write files"
    )

    # generate
    generate_parser = subparsers.add_parser(
        "generate", parents=[common], help="Generate or update the test for one file"
    )
    generate_parser.add_argument("file", help="Source file (relative to the codebase)")
    generate_parser.add_argument(
        "--stdout", action="store_true", help="Print the result instead of writing it"
    )

    # cases
    cases_parser = subparsers.add_parser(
        "cases", parents=[common], help="Print test cases for one file"
    )
    cases_parser.add_argument("file", help="Source file (relative to the codebase)")

    # inspect
    inspect_parser = subparsers.add_parser(
        "inspect", parents=[common], help="Show blocks and match of a spec file"
    )
    inspect_parser.add_argument("spec_file", help="Spec file to inspect")
    inspect_parser.add_argument("--feature", "-f", default="", help="Target feature")
    inspect_parser.add_argument("--test", "-t", default="", help="Target test name")

    # validate
    subparsers.add_parser("validate", parents=[common], help="Validate config and spec files")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    project_root = Path(args.project_root) if args.project_root else Path(".")
    yaml_config = load_config_from_yaml(project_root / CONFIG_FILE)
    try:
        config = build_config(yaml_config, args)
    except SpecSyncError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    from .logging import setup_logging

    # Batch runs keep a log file next to the progress file
    log_file = None
    if args.command == "sync":
        log_file = config.logs_dir / f"sync-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    setup_logging(level=config.log_level, json_output=args.log_json, log_file=log_file)

    import structlog

    structlog.contextvars.bind_contextvars(run_id=uuid4().hex[:8])

    commands = {
        "sync": cmd_sync,
        "generate": cmd_generate,
        "cases": cmd_cases,
        "inspect": cmd_inspect,
        "validate": cmd_validate,
    }

    try:
        return commands[args.command](args, config)
    except SpecSyncError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        return 1
    except FileNotFoundError as e:
        logger.error("File not found", command=args.command, path=e.filename)
        return 1


if __name__ == "__main__":
    sys.exit(main())
