"""Test generation and incremental update.

``generate_test_script`` is the update routine: it extracts the manual
zone, locates the block for the target, asks the backend for a
replacement of just that block, splices it back and re-checks the manual
zone. When no block can be located it regenerates the whole file with the
existing file as context instead of guessing.
"""

from dataclasses import dataclass
from enum import Enum

from .config import SyncConfig
from .errors import ErrorCode, GenerationError
from .llm import LLMClient
from .logging import get_logger
from .manual_zone import ensure_manual_zone, extract_manual_zone
from .matcher import BlockMatch, MatchTarget, match_block
from .parser import parse_file
from .prompt import (
    CaseContext,
    build_block_prompt,
    build_cases_prompt,
    build_script_prompt,
    render_directory_tree,
    strip_code_fences,
)
from .scanner import GROUP_TOKEN, NOT_FOUND, find_block_end
from .splicer import replace_block, trim_to_group

logger = get_logger("generator")


class UpdateMode(str, Enum):
    """How a test file was produced."""

    CREATED = "created"
    BLOCK = "block"
    FULL = "full"


@dataclass
class GenerationResult:
    script: str
    mode: UpdateMode
    match: BlockMatch | None = None
    zone_restored: bool = False


def generate_test_cases(
    client: LLMClient, code: str, context: CaseContext | None = None
) -> str:
    """Ask the backend for structured test cases for ``code``."""
    system_prompt, user_prompt = build_cases_prompt(code, context)
    return client.generate(system_prompt, user_prompt).strip()


def _project_tree(config: SyncConfig) -> str | None:
    if not config.include_project_tree:
        return None
    return render_directory_tree(config.codebase_path, max_depth=config.tree_depth) or None


def _generate_block(
    client: LLMClient,
    config: SyncConfig,
    target: MatchTarget,
    code: str,
    match: BlockMatch,
    test_cases: str | None,
) -> str | None:
    """Regenerate one block. Returns None if the output is not a single group.

    Anything the backend writes after the group's closing ``)`` is dropped.
    """
    system_prompt, user_prompt = build_block_prompt(
        target, code, match.block.content, test_cases, prompts_dir=config.prompts_dir
    )
    generated = trim_to_group(strip_code_fences(client.generate(system_prompt, user_prompt)))
    if not generated.startswith(GROUP_TOKEN):
        return None
    end = find_block_end(generated, 0)
    if end == NOT_FOUND:
        return None
    return generated[:end]


def _generate_full(
    client: LLMClient,
    config: SyncConfig,
    target: MatchTarget,
    code: str,
    test_cases: str | None,
    existing_script: str | None,
) -> str:
    system_prompt, user_prompt = build_script_prompt(
        target,
        code,
        test_cases=test_cases,
        existing_script=existing_script,
        project_tree=_project_tree(config),
        prompts_dir=config.prompts_dir,
    )
    return strip_code_fences(client.generate(system_prompt, user_prompt))


def generate_test_script(
    client: LLMClient,
    config: SyncConfig,
    target: MatchTarget,
    code: str,
    test_cases: str | None = None,
    existing_script: str | None = None,
) -> GenerationResult:
    """Generate a new test file or update an existing one.

    Args:
        client: Generation backend.
        config: Sync configuration (label vocabulary, match policy, prompts).
        target: Feature and test name the update is for.
        code: Source code under test.
        test_cases: Optional test cases to guide generation.
        existing_script: Current content of the test file, if any.

    Returns:
        GenerationResult with the final file text and how it was produced.

    Raises:
        GenerationError: If whole-file regeneration of an existing file
            returns text without any test group.
    """
    log = logger.bind(feature=target.feature, test_name=target.test_name)

    if not existing_script or not existing_script.strip():
        log.info("Generating new test file")
        script = _generate_full(client, config, target, code, test_cases, None)
        return GenerationResult(script=script, mode=UpdateMode.CREATED)

    zone = extract_manual_zone(existing_script)
    parsed = parse_file(existing_script, config.labels)
    match = match_block(parsed, target.feature, target.test_name) if parsed.blocks else None

    if match and config.require_confident_match and not match.confident:
        log.info("Ignoring weak block match", rule=match.rule.value)
        match = None

    script: str | None = None
    mode = UpdateMode.FULL
    if match:
        log.info(
            "Updating matched block",
            rule=match.rule.value,
            title=match.block.title,
            blocks=len(parsed.blocks),
        )
        new_block = _generate_block(client, config, target, code, match, test_cases)
        if new_block is None:
            log.warning("Generated block has no test group, regenerating whole file")
        else:
            script = replace_block(existing_script, match.block, new_block)
            mode = UpdateMode.BLOCK
    else:
        log.info("No block matched, regenerating whole file", blocks=len(parsed.blocks))

    if script is None:
        match = None
        script = _generate_full(client, config, target, code, test_cases, existing_script)
        if not parse_file(script, config.labels).blocks:
            log.error("Regenerated file has no test group, keeping existing file")
            raise GenerationError(
                "regenerated test file contains no test.describe group",
                ErrorCode.BAD_RESPONSE,
            )

    final = ensure_manual_zone(script, zone)
    zone_restored = final != script
    if zone_restored:
        log.warning("Manual zone dropped by regeneration, re-inserted", chars=len(zone or ""))

    return GenerationResult(script=final, mode=mode, match=match, zone_restored=zone_restored)
