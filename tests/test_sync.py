"""Tests for spec_sync.sync — batch synchronization of spec files."""

from pathlib import Path
from unittest.mock import patch

from spec_sync.config import SyncConfig
from spec_sync.errors import ErrorCode, GenerationError
from spec_sync.generator import UpdateMode
from spec_sync.sync import log_progress, sync_changed_files, sync_file

# --- Helpers ---

GENERATED = """import { test } from '@playwright/test';

test.describe('Order Management Service', () => {
  test('updates order', async () => {});
});"""


class FakeClient:
    """Generation backend returning a fixed response, or failing for some code."""

    def __init__(self, response: str = GENERATED, fail_on: str | None = None):
        self.response = response
        self.fail_on = fail_on
        self.calls = 0

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls += 1
        if self.fail_on and self.fail_on in user_prompt:
            raise GenerationError("backend down", ErrorCode.NETWORK)
        return self.response


def _make_config(tmp_path: Path, **overrides) -> SyncConfig:
    defaults = {
        "project_root": tmp_path,
        "codebase_path": tmp_path / "app",
        "api_key": "",
        "generate_test_cases": False,
        "include_project_tree": False,
    }
    defaults.update(overrides)
    return SyncConfig(**defaults)


def _write_source(config: SyncConfig, rel_path: str, code: str) -> None:
    path = config.codebase_path / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(code)


class TestLogProgress:
    def test_prints_and_appends(self, tmp_path, capsys):
        progress = tmp_path / "logs" / "progress.txt"
        log_progress("Wrote spec", "order", progress)
        log_progress("Done", progress_file=progress)
        lines = progress.read_text().splitlines()
        assert lines[0].endswith("[order] Wrote spec")
        assert lines[1].endswith("] Done")
        assert "Wrote spec" in capsys.readouterr().out

    def test_without_file(self, capsys):
        log_progress("hello")
        assert "hello" in capsys.readouterr().out


class TestSyncFile:
    def test_creates_spec_file(self, tmp_path):
        config = _make_config(tmp_path)
        _write_source(config, "src/features/order/updateOrder.ts", "export const a = 1;")
        spec_path, result = sync_file("src/features/order/updateOrder.ts", config, FakeClient())
        assert spec_path == config.tests_dir / "order" / "updateOrder.spec.ts"
        assert result.mode == UpdateMode.CREATED
        assert spec_path.read_text() == GENERATED + "\n"

    def test_updates_existing_spec(self, tmp_path):
        config = _make_config(tmp_path)
        _write_source(config, "src/features/order/updateOrder.ts", "export const a = 1;")
        spec_path = config.tests_dir / "order" / "updateOrder.spec.ts"
        spec_path.parent.mkdir(parents=True)
        spec_path.write_text(
            "import { test } from '@playwright/test';\n\n"
            "test.describe('Order Management Service', () => {\n  test('old', () => {});\n});\n\n"
            "test.describe('User Search Service', () => {});\n"
        )
        block = "test.describe('Order Management Service', () => { test('new', () => {}); });"
        _, result = sync_file("src/features/order/updateOrder.ts", config, FakeClient(block))
        assert result.mode == UpdateMode.BLOCK
        text = spec_path.read_text()
        assert block in text
        assert "test('old'" not in text
        assert "User Search Service" in text

    def test_leading_block_written_without_blank_lines(self, tmp_path):
        config = _make_config(tmp_path)
        _write_source(config, "src/features/order/updateOrder.ts", "export const a = 1;")
        spec_path = config.tests_dir / "order" / "updateOrder.spec.ts"
        spec_path.parent.mkdir(parents=True)
        spec_path.write_text(
            "test.describe('Order Management Service', () => {});\n\n"
            "test.describe('User Search Service', () => {});\n"
        )
        block = "test.describe('Order Management Service', () => { test('new', () => {}); });"
        sync_file("src/features/order/updateOrder.ts", config, FakeClient(block))
        assert spec_path.read_text().startswith(block)

    def test_prose_regeneration_keeps_existing_file(self, tmp_path):
        config = _make_config(tmp_path)
        _write_source(config, "src/features/order/updateOrder.ts", "export const a = 1;")
        spec_path = config.tests_dir / "order" / "updateOrder.spec.ts"
        spec_path.parent.mkdir(parents=True)
        original = (
            "test.describe('Inventory Service', () => {});\n\n"
            "test.describe('Shipping Service', () => {});\n"
        )
        spec_path.write_text(original)
        report = sync_changed_files(
            config,
            FakeClient("Mocked test response from LLM (No API Key provided)"),
            files=["src/features/order/updateOrder.ts"],
        )
        assert "src/features/order/updateOrder.ts" in report.failed
        assert spec_path.read_text() == original

    def test_dry_run_does_not_write(self, tmp_path):
        config = _make_config(tmp_path)
        _write_source(config, "src/features/order/updateOrder.ts", "x")
        spec_path, _ = sync_file(
            "src/features/order/updateOrder.ts", config, FakeClient(), dry_run=True
        )
        assert not spec_path.exists()

    def test_test_cases_requested_first(self, tmp_path):
        config = _make_config(tmp_path, generate_test_cases=True)
        _write_source(config, "src/features/order/updateOrder.ts", "x")
        client = FakeClient()
        sync_file("src/features/order/updateOrder.ts", config, client)
        assert client.calls == 2


class TestSyncChangedFiles:
    def test_continues_after_failure(self, tmp_path):
        config = _make_config(tmp_path)
        _write_source(config, "src/features/order/updateOrder.ts", "BROKEN")
        _write_source(config, "src/features/user/createUser.ts", "fine")
        report = sync_changed_files(
            config,
            FakeClient(fail_on="BROKEN"),
            files=["src/features/order/updateOrder.ts", "src/features/user/createUser.ts"],
        )
        assert not report.ok
        assert "src/features/order/updateOrder.ts" in report.failed
        assert report.written == [config.tests_dir / "user" / "createUser.spec.ts"]

    def test_missing_source_recorded(self, tmp_path):
        config = _make_config(tmp_path)
        report = sync_changed_files(
            config, FakeClient(), files=["src/features/order/gone.ts"]
        )
        assert list(report.failed) == ["src/features/order/gone.ts"]

    @patch("spec_sync.sync.get_changed_files", return_value=[])
    def test_no_changes(self, mock_changed, tmp_path):
        config = _make_config(tmp_path)
        report = sync_changed_files(config, FakeClient())
        assert report.ok
        assert report.written == []
        assert "No new feature files detected" in config.progress_file.read_text()

    @patch("spec_sync.sync.get_changed_files")
    def test_uses_git_diff_by_default(self, mock_changed, tmp_path):
        config = _make_config(tmp_path, base_ref="main")
        _write_source(config, "src/features/order/updateOrder.ts", "x")
        mock_changed.return_value = ["src/features/order/updateOrder.ts"]
        report = sync_changed_files(config, FakeClient())
        assert report.ok
        assert len(report.written) == 1
        assert mock_changed.call_args[1]["base_ref"] == "main"
