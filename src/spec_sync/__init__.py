"""
spec-sync: generate and incrementally update Playwright tests via an LLM.

Usage as library:
    from spec_sync import parse_file, find_match, replace_block
    from spec_sync import extract_manual_zone, ensure_manual_zone

Usage as CLI:
    spec-sync sync                 # Update tests for files changed in HEAD~1..HEAD
    spec-sync generate FILE        # Generate or update one test file
    spec-sync inspect SPEC_FILE    # Show blocks and match for a spec file
    spec-sync validate             # Check config and spec files
"""

from importlib.metadata import PackageNotFoundError, version

from .config import SyncConfig, SyncLock, build_config, load_config_from_yaml
from .errors import ConfigError, ErrorCode, GenerationError, SpecSyncError
from .generator import (
    GenerationResult,
    UpdateMode,
    generate_test_cases,
    generate_test_script,
)
from .git import get_changed_files
from .llm import LLMClient, build_cli_command, classify_retry_strategy, compute_retry_delay
from .logging import get_logger, setup_logging
from .manual_zone import (
    MANUAL_ZONE_END,
    MANUAL_ZONE_START,
    ensure_manual_zone,
    extract_manual_zone,
)
from .mapper import map_code_to_test, spec_path_for
from .matcher import BlockMatch, MatchRule, MatchTarget, find_match, match_block
from .parser import (
    DEFAULT_VOCABULARY,
    Block,
    LabelRule,
    ParsedFile,
    extract_feature_label,
    extract_test_label,
    parse_file,
)
from .prompt import CaseContext, build_block_prompt, build_cases_prompt, build_script_prompt
from .scanner import GROUP_TOKEN, NOT_FOUND, blank_literals, find_block_end
from .splicer import replace_block, trim_to_group
from .sync import SyncReport, sync_changed_files, sync_file
from .validate import ValidationResult, format_results, validate_all

try:
    __version__ = version("spec-sync")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"  # Fallback for development without install
__all__ = [
    # Parsing core
    "GROUP_TOKEN",
    "NOT_FOUND",
    "blank_literals",
    "find_block_end",
    "Block",
    "ParsedFile",
    "LabelRule",
    "DEFAULT_VOCABULARY",
    "parse_file",
    "extract_feature_label",
    "extract_test_label",
    "MatchTarget",
    "MatchRule",
    "BlockMatch",
    "match_block",
    "find_match",
    "replace_block",
    "trim_to_group",
    "MANUAL_ZONE_START",
    "MANUAL_ZONE_END",
    "extract_manual_zone",
    "ensure_manual_zone",
    # Generation
    "LLMClient",
    "build_cli_command",
    "classify_retry_strategy",
    "compute_retry_delay",
    "CaseContext",
    "build_cases_prompt",
    "build_script_prompt",
    "build_block_prompt",
    "GenerationResult",
    "UpdateMode",
    "generate_test_cases",
    "generate_test_script",
    # Sync
    "get_changed_files",
    "map_code_to_test",
    "spec_path_for",
    "SyncReport",
    "sync_file",
    "sync_changed_files",
    # Config
    "SyncConfig",
    "SyncLock",
    "build_config",
    "load_config_from_yaml",
    # Errors
    "ErrorCode",
    "SpecSyncError",
    "ConfigError",
    "GenerationError",
    # Validation
    "ValidationResult",
    "format_results",
    "validate_all",
    # Logging
    "get_logger",
    "setup_logging",
]
