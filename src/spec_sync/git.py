"""Git helpers for discovering changed application source files."""

import subprocess
from pathlib import Path

from .logging import get_logger

logger = get_logger("git")


def get_changed_files(
    codebase: Path,
    base_ref: str = "HEAD~1",
    head_ref: str = "HEAD",
    prefix: str = "src/features/",
    suffix: str = ".ts",
) -> list[str]:
    """List feature source files changed between two refs.

    Runs ``git diff --name-only`` in ``codebase`` and keeps paths under
    ``prefix`` ending in ``suffix``. Missing git, a failed diff, or a
    repository without a previous commit yields an empty list.

    Returns:
        Repository-relative paths in diff order.
    """
    logger.debug("Running git diff", cwd=str(codebase), base=base_ref, head=head_ref)
    try:
        result = subprocess.run(
            ["git", "diff", "--name-only", base_ref, head_ref],
            capture_output=True,
            text=True,
            cwd=codebase,
        )
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.warning("git diff unavailable", cwd=str(codebase), error=str(e))
        return []

    if result.returncode != 0:
        logger.warning(
            "git diff failed or no previous commit",
            cwd=str(codebase),
            stderr=result.stderr.strip()[:200],
        )
        return []

    changed: list[str] = []
    for line in result.stdout.split("\n"):
        path = line.strip()
        if not path:
            continue
        if path.startswith(prefix) and path.endswith(suffix):
            changed.append(path)
        else:
            logger.debug("Skipping non-feature file", path=path)

    logger.info("Changed feature files", count=len(changed))
    return changed
