"""
Prompt building for spec-sync test generation.

Builds system/user prompt pairs for test-case analysis, whole-file test
generation and single-block updates. Prompts can be overridden with
templates in the prompts directory.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from .manual_zone import MANUAL_ZONE_END, MANUAL_ZONE_START
from .matcher import MatchTarget

SCRIPT_SYSTEM_PROMPT = """You are a Playwright and TypeScript expert.
Your goal is to generate high-quality automation test scripts that follow best practices:
1. Use Page Object Model patterns where appropriate.
2. Include clean setup/teardown if needed.
3. Use descriptive test names.
4. Ensure all assertions are relevant.
5. Use "test.describe" to group tests.
6. Return ONLY the code, without markdown markers."""

CASES_SYSTEM_PROMPT = """You are an expert QA Engineer specialized in Playwright and TypeScript testing.
Your task is to analyze provided code and generate comprehensive, actionable test cases.

*Test Case Generation Standards*:
1. Happy Path Scenarios - Normal, expected user flows
2. Edge Cases - Boundary conditions, unusual but valid inputs
3. Error Handling - Exception scenarios, error states
4. Negative Scenarios - Invalid inputs, failed operations
5. Performance Scenarios - Load, timeout, slow network
6. Accessibility - Keyboard navigation, screen reader compatibility
7. State Management - State transitions, data persistence
8. Integration Points - API calls, external dependencies, mocking strategies

*Output Format*:
Each test case should include:
- Test ID (TC-XXX)
- Title (clear, specific action)
- Preconditions (setup required)
- Steps (numbered, detailed actions)
- Expected Result (specific assertion)
- Data Requirements (mocks/constants needed)
- Notes (special considerations, known issues)

Return ONLY the structured test cases without explanations."""

CASES_FORMAT = """Generate test cases in this exact format:

*TC-[ID] | [Test Title]*
Preconditions: [Setup required]
Steps:
  1. [Step 1]
  2. [Step 2]
Expected Result: [Specific assertion]
Data Requirements: [Mocks/Constants needed]
Notes: [Special considerations]

---

Generate comprehensive test cases covering all scenarios."""

_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*$", re.MULTILINE)

TREE_SKIP_DIRS = {".git", "node_modules", "dist", "build", "coverage", ".next", "__pycache__"}


@dataclass
class CaseContext:
    """Optional context for test-case generation."""

    code_type: str = "Feature/Page Object"
    feature_name: str = ""
    dev_status: str = "Complete"
    dependency_status: str = ""
    known_limitations: str = ""
    additional_context: str = ""


# === Templates ===


def load_prompt_template(name: str, prompts_dir: Path) -> str | None:
    """Load prompt template from the prompts directory.

    Tries ``<name>.md`` then ``<name>.txt``.

    Returns:
        Template content, or None if not found.
    """
    for ext in [".md", ".txt"]:
        template_path = prompts_dir / f"{name}{ext}"
        if template_path.exists():
            return _read_template(template_path)
    return None


def _read_template(path: Path) -> str:
    """Read and process template file."""
    content = path.read_text()

    # Strip comment lines only for .txt files
    if path.suffix == ".txt":
        lines = [line for line in content.split("\n") if not line.strip().startswith("#")]
        return "\n".join(lines).strip()

    return content.strip()


def render_template(template: str, variables: dict[str, str]) -> str:
    """Render template with variable substitution.

    Supports both {{VARIABLE}} and ${VARIABLE} placeholder syntax.
    """
    result = template
    for name, value in variables.items():
        result = result.replace(f"{{{{{name}}}}}", value)
        result = result.replace(f"${{{name}}}", value)
    return result


# === Output cleanup ===


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fence lines the model may have added."""
    return _FENCE_RE.sub("", text).strip()


# === Context ===


def render_directory_tree(root: Path, max_depth: int = 3, max_entries: int = 200) -> str:
    """Render an indented listing of ``root`` for prompt context.

    Hidden entries and build/dependency directories are skipped.
    """
    if not root.is_dir():
        return ""

    lines: list[str] = [f"{root.name}/"]

    def walk(directory: Path, depth: int) -> None:
        if depth > max_depth:
            return
        try:
            entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name))
        except OSError:
            return
        for entry in entries:
            if len(lines) > max_entries:
                return
            if entry.name.startswith(".") or entry.name in TREE_SKIP_DIRS:
                continue
            indent = "  " * depth
            if entry.is_dir():
                lines.append(f"{indent}{entry.name}/")
                walk(entry, depth + 1)
            else:
                lines.append(f"{indent}{entry.name}")

    walk(root, 1)
    if len(lines) > max_entries:
        lines = lines[:max_entries] + ["..."]
    return "\n".join(lines)


# === Prompt builders ===


def build_cases_prompt(code: str, context: CaseContext | None = None) -> tuple[str, str]:
    """Build the (system, user) prompt pair for test-case generation."""
    ctx = context or CaseContext()
    parts = [
        "Analyze the following code and generate comprehensive test cases:",
        "",
        f"*Code Type*: {ctx.code_type}",
        f"*Feature Name*: {ctx.feature_name or 'Not specified'}",
        f"*Development Status*: {ctx.dev_status}",
    ]
    if ctx.dependency_status:
        parts.append(f"**Dependencies**: {ctx.dependency_status}")
    if ctx.known_limitations:
        parts.append(f"**Known Limitations**: {ctx.known_limitations}")
    parts.extend(["", "```typescript", code, "```", ""])
    if ctx.additional_context:
        parts.extend([f"**Additional Context**:\n{ctx.additional_context}", ""])
    parts.append(CASES_FORMAT)
    return CASES_SYSTEM_PROMPT, "\n".join(parts)


def _template_or(
    name: str,
    prompts_dir: Path | None,
    variables: dict[str, str],
    fallback: str,
) -> str:
    template = load_prompt_template(name, prompts_dir) if prompts_dir else None
    if template:
        return render_template(template, variables)
    return fallback


def build_script_prompt(
    target: MatchTarget,
    code: str,
    test_cases: str | None = None,
    existing_script: str | None = None,
    project_tree: str | None = None,
    prompts_dir: Path | None = None,
) -> tuple[str, str]:
    """Build the (system, user) prompt pair for whole-file generation.

    With ``existing_script`` the model is asked to update the file in place,
    keeping existing coverage and the manual zone.
    """
    cases_section = f"Use these test cases as a guide:\n{test_cases}\n" if test_cases else ""
    tree_section = f"Project structure:\n{project_tree}\n" if project_tree else ""

    existing_section = ""
    if existing_script:
        existing_section = (
            "An existing test file is shown below. Update it to cover the code, "
            "keep tests that still apply, and do not remove passing coverage.\n"
            f"Keep everything between {MANUAL_ZONE_START} and {MANUAL_ZONE_END} "
            "exactly as it is.\n\n"
            f"Existing test file:\n```typescript\n{existing_script}\n```\n"
        )

    fallback = f"""Generate a Playwright test script for the following feature.
Feature: {target.feature}
Test Name: {target.test_name}

{cases_section}
{tree_section}
{existing_section}
Code to test:
```typescript
{code}
```
"""
    variables = {
        "FEATURE": target.feature,
        "TEST_NAME": target.test_name,
        "CODE": code,
        "TEST_CASES": test_cases or "",
        "EXISTING_SCRIPT": existing_script or "",
        "PROJECT_TREE": project_tree or "",
    }
    return SCRIPT_SYSTEM_PROMPT, _template_or("script", prompts_dir, variables, fallback)


def build_block_prompt(
    target: MatchTarget,
    code: str,
    block_content: str,
    test_cases: str | None = None,
    prompts_dir: Path | None = None,
) -> tuple[str, str]:
    """Build the (system, user) prompt pair for a single-block update.

    The model must answer with exactly one ``test.describe`` block.
    """
    cases_section = f"Use these test cases as a guide:\n{test_cases}\n" if test_cases else ""

    fallback = f"""Update the following Playwright test group for the changed code.
Feature: {target.feature}
Test Name: {target.test_name}

Return ONLY the updated test.describe(...) block: no imports, no other blocks,
no markdown markers. Keep existing tests that still apply.

{cases_section}
Current test block:
```typescript
{block_content}
```

Code to test:
```typescript
{code}
```
"""
    variables = {
        "FEATURE": target.feature,
        "TEST_NAME": target.test_name,
        "CODE": code,
        "TEST_CASES": test_cases or "",
        "BLOCK": block_content,
    }
    return SCRIPT_SYSTEM_PROMPT, _template_or("block", prompts_dir, variables, fallback)
