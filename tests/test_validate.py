"""Tests for spec_sync.validate module."""

from pathlib import Path

from spec_sync.manual_zone import MANUAL_ZONE_END, MANUAL_ZONE_START
from spec_sync.validate import (
    ValidationResult,
    _levenshtein,
    _suggest_key,
    format_results,
    validate_all,
    validate_config,
    validate_spec_file,
    validate_tests_dir,
)

GOOD_SPEC = f"""import {{ test }} from '@playwright/test';

{MANUAL_ZONE_START}
test('manual', async () => {{}});
{MANUAL_ZONE_END}

test.describe('Order Management Service', () => {{
  test.describe('nested', () => {{}});
}});
"""


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


# === Helpers ===


class TestLevenshtein:
    def test_identical(self):
        assert _levenshtein("provider", "provider") == 0

    def test_one_edit(self):
        assert _levenshtein("provder", "provider") == 1

    def test_empty(self):
        assert _levenshtein("", "abc") == 3


class TestSuggestKey:
    def test_close_match(self):
        assert _suggest_key("base_rf", {"base_ref", "head_ref"}) == "base_ref"

    def test_no_match_when_far(self):
        assert _suggest_key("completely_different", {"base_ref"}) is None


# === validate_config ===


class TestValidateConfig:
    def test_missing_file_ok(self, tmp_path):
        assert validate_config(tmp_path / "missing.yaml").ok

    def test_valid_config(self, tmp_path):
        path = _write(
            tmp_path / "spec-sync.config.yaml",
            "sync:\n  base_ref: main\n  llm:\n    provider: cli\n  paths:\n    tests: e2e\n",
        )
        result = validate_config(path)
        assert result.ok
        assert result.warnings == []

    def test_unknown_key_with_suggestion(self, tmp_path):
        path = _write(tmp_path / "c.yaml", "sync:\n  llm:\n    provdier: groq\n")
        result = validate_config(path)
        assert not result.ok
        assert "sync.llm.provdier" in result.errors[0]
        assert "did you mean 'provider'" in result.errors[0]

    def test_unknown_path_key(self, tmp_path):
        path = _write(tmp_path / "c.yaml", "sync:\n  paths:\n    specs: e2e\n")
        assert "sync.paths.specs" in validate_config(path).errors[0]

    def test_unsupported_provider(self, tmp_path):
        path = _write(tmp_path / "c.yaml", "sync:\n  llm:\n    provider: openai\n")
        result = validate_config(path)
        assert any("Unsupported provider 'openai'" in e for e in result.errors)

    def test_invalid_yaml(self, tmp_path):
        path = _write(tmp_path / "c.yaml", "sync: [\n")
        assert "Failed to parse YAML" in validate_config(path).errors[0]

    def test_no_sync_section(self, tmp_path):
        path = _write(tmp_path / "c.yaml", "other: 1\n")
        assert validate_config(path).ok


# === validate_spec_file ===


class TestValidateSpecFile:
    def test_clean_file(self, tmp_path):
        result = validate_spec_file(_write(tmp_path / "a.spec.ts", GOOD_SPEC))
        assert result.ok
        assert result.warnings == []

    def test_no_blocks_warns(self, tmp_path):
        result = validate_spec_file(_write(tmp_path / "a.spec.ts", "test('a', () => {});\n"))
        assert result.ok
        assert "no test.describe blocks" in result.warnings[0]

    def test_unparseable_group_warns(self, tmp_path):
        text = "test.describe('Broken', suite);\ntest.describe('Ok', () => {});\n"
        result = validate_spec_file(_write(tmp_path / "a.spec.ts", text))
        assert "could not be parsed" in result.warnings[0]

    def test_group_token_in_comment_ignored(self, tmp_path):
        text = "// test.describe('old', ...\ntest.describe('Ok', () => {});\n"
        result = validate_spec_file(_write(tmp_path / "a.spec.ts", text))
        assert result.warnings == []

    def test_unpaired_markers(self, tmp_path):
        text = f"{MANUAL_ZONE_START}\ntest.describe('Ok', () => {{}});\n"
        result = validate_spec_file(_write(tmp_path / "a.spec.ts", text))
        assert "unpaired manual zone markers" in result.errors[0]

    def test_reversed_markers(self, tmp_path):
        text = f"{MANUAL_ZONE_END}\n{MANUAL_ZONE_START}\ntest.describe('Ok', () => {{}});\n"
        result = validate_spec_file(_write(tmp_path / "a.spec.ts", text))
        assert "precedes start marker" in result.errors[0]

    def test_multiple_zones_warn(self, tmp_path):
        zone = f"{MANUAL_ZONE_START}\nx\n{MANUAL_ZONE_END}\n"
        text = zone + zone + "test.describe('Ok', () => {});\n"
        result = validate_spec_file(_write(tmp_path / "a.spec.ts", text))
        assert result.ok
        assert "only the first is preserved" in result.warnings[0]


# === validate_tests_dir / validate_all ===


class TestValidateTestsDir:
    def test_missing_dir_ok(self, tmp_path):
        assert validate_tests_dir(tmp_path / "missing").ok

    def test_collects_nested_spec_files(self, tmp_path):
        _write(tmp_path / "order" / "a.spec.ts", GOOD_SPEC)
        _write(tmp_path / "user" / "b.spec.ts", f"{MANUAL_ZONE_START}\n")
        _write(tmp_path / "user" / "notes.ts", f"{MANUAL_ZONE_START}\n")
        result = validate_tests_dir(tmp_path)
        assert len(result.errors) == 1
        assert "b.spec.ts" in result.errors[0]

    def test_validate_all_merges(self, tmp_path):
        config = _write(tmp_path / "c.yaml", "sync:\n  bogus: 1\n")
        _write(tmp_path / "specs" / "a.spec.ts", "const a = 1;\n")
        result = validate_all(config_file=config, tests_dir=tmp_path / "specs")
        assert len(result.errors) == 1
        assert len(result.warnings) == 1


class TestFormatResults:
    def test_counts(self):
        result = ValidationResult(errors=["bad"], warnings=["meh", "hmm"])
        text = format_results(result)
        assert "  x bad" in text
        assert "  ! meh" in text
        assert text.endswith("1 error, 2 warnings")

    def test_empty(self):
        assert format_results(ValidationResult()).strip() == "0 errors, 0 warnings"
