"""Tests for spec_sync.prompt module."""

from spec_sync.manual_zone import MANUAL_ZONE_START
from spec_sync.matcher import MatchTarget
from spec_sync.prompt import (
    CASES_SYSTEM_PROMPT,
    SCRIPT_SYSTEM_PROMPT,
    CaseContext,
    build_block_prompt,
    build_cases_prompt,
    build_script_prompt,
    load_prompt_template,
    render_directory_tree,
    render_template,
    strip_code_fences,
)

TARGET = MatchTarget(feature="order", test_name="updateOrder")
CODE = "export function updateOrder(id: string) { return id; }"

# === render_template ===


class TestRenderTemplate:
    def test_double_brace_substitution(self):
        assert render_template("Hello {{NAME}}", {"NAME": "world"}) == "Hello world"

    def test_dollar_brace_substitution(self):
        assert render_template("Hello ${NAME}", {"NAME": "world"}) == "Hello world"

    def test_missing_variable_left_as_is(self):
        assert render_template("Hello {{MISSING}}", {}) == "Hello {{MISSING}}"


# === load_prompt_template ===


class TestLoadPromptTemplate:
    def test_missing_template(self, tmp_path):
        assert load_prompt_template("script", tmp_path) is None

    def test_md_preferred_over_txt(self, tmp_path):
        (tmp_path / "script.md").write_text("from md\n")
        (tmp_path / "script.txt").write_text("from txt\n")
        assert load_prompt_template("script", tmp_path) == "from md"

    def test_txt_comment_lines_stripped(self, tmp_path):
        (tmp_path / "block.txt").write_text("# note for maintainers\nUpdate {{BLOCK}}\n")
        assert load_prompt_template("block", tmp_path) == "Update {{BLOCK}}"


# === strip_code_fences ===


class TestStripCodeFences:
    def test_removes_typescript_fence(self):
        text = "```typescript\ntest.describe('X', () => {});\n```\n"
        assert strip_code_fences(text) == "test.describe('X', () => {});"

    def test_plain_text_unchanged(self):
        assert strip_code_fences("const a = 1;") == "const a = 1;"

    def test_inline_backticks_kept(self):
        text = "const s = `a ${b}`;"
        assert strip_code_fences(text) == text


# === render_directory_tree ===


class TestRenderDirectoryTree:
    def test_lists_dirs_before_files(self, tmp_path):
        (tmp_path / "src" / "features").mkdir(parents=True)
        (tmp_path / "src" / "features" / "order.ts").write_text("")
        (tmp_path / "package.json").write_text("{}")
        tree = render_directory_tree(tmp_path).split("\n")
        assert tree[0] == f"{tmp_path.name}/"
        assert tree[1] == "  src/"
        assert "      order.ts" in tree
        assert tree[-1] == "  package.json"

    def test_skips_hidden_and_dependencies(self, tmp_path):
        (tmp_path / "node_modules" / "lib").mkdir(parents=True)
        (tmp_path / ".git").mkdir()
        (tmp_path / "index.ts").write_text("")
        tree = render_directory_tree(tmp_path)
        assert "node_modules" not in tree
        assert ".git" not in tree
        assert "index.ts" in tree

    def test_depth_limit(self, tmp_path):
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)
        tree = render_directory_tree(tmp_path, max_depth=2)
        assert "b/" in tree
        assert "c/" not in tree

    def test_entry_limit(self, tmp_path):
        for i in range(10):
            (tmp_path / f"f{i}.ts").write_text("")
        tree = render_directory_tree(tmp_path, max_entries=3).split("\n")
        assert tree[-1] == "..."
        assert len(tree) == 4

    def test_missing_root(self, tmp_path):
        assert render_directory_tree(tmp_path / "missing") == ""


# === Prompt builders ===


class TestBuildCasesPrompt:
    def test_contains_code_and_format(self):
        system, user = build_cases_prompt(CODE, CaseContext(feature_name="order"))
        assert system == CASES_SYSTEM_PROMPT
        assert CODE in user
        assert "*Feature Name*: order" in user
        assert "TC-[ID]" in user

    def test_optional_sections(self):
        _, user = build_cases_prompt(CODE)
        assert "Not specified" in user
        assert "Known Limitations" not in user
        _, user = build_cases_prompt(CODE, CaseContext(known_limitations="no offline mode"))
        assert "**Known Limitations**: no offline mode" in user


class TestBuildScriptPrompt:
    def test_new_file_prompt(self):
        system, user = build_script_prompt(TARGET, CODE, test_cases="TC-001")
        assert system == SCRIPT_SYSTEM_PROMPT
        assert "Feature: order" in user
        assert "Test Name: updateOrder" in user
        assert "TC-001" in user
        assert "Existing test file" not in user

    def test_existing_script_mentions_manual_zone(self):
        _, user = build_script_prompt(TARGET, CODE, existing_script="// old")
        assert "Existing test file" in user
        assert "// old" in user
        assert MANUAL_ZONE_START in user

    def test_project_tree_included(self):
        _, user = build_script_prompt(TARGET, CODE, project_tree="app/\n  src/")
        assert "Project structure:\napp/" in user

    def test_custom_template(self, tmp_path):
        (tmp_path / "script.md").write_text("Write tests for {{TEST_NAME}} in ${FEATURE}")
        _, user = build_script_prompt(TARGET, CODE, prompts_dir=tmp_path)
        assert user == "Write tests for updateOrder in order"


class TestBuildBlockPrompt:
    def test_contains_block_and_code(self):
        block = "test.describe('Order', () => {});"
        _, user = build_block_prompt(TARGET, CODE, block)
        assert block in user
        assert CODE in user
        assert "Return ONLY the updated test.describe" in user

    def test_custom_template(self, tmp_path):
        (tmp_path / "block.md").write_text("Rewrite {{BLOCK}}")
        _, user = build_block_prompt(TARGET, CODE, "B", prompts_dir=tmp_path)
        assert user == "Rewrite B"

    def test_template_dir_without_block_template(self, tmp_path):
        _, user = build_block_prompt(TARGET, CODE, "B", prompts_dir=tmp_path)
        assert "Current test block" in user
