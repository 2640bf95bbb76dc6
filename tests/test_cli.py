"""Tests for CLI commands.

These tests verify that all CLI commands are registered and run end to end
against a temporary store with the LLM disabled.
"""

import json

import pytest

from ledgerlearn.config import Config, PageSourceConfig
from ledgerlearn.documents import FilesystemPageSource, HttpPageSource
from ledgerlearn.runner.main import build_page_source, create_cli, main

COMPANY = ["--company", "acme-ab"]
TELIA = ["--supplier", "Telia Sverige AB", "--description", "Mobilabonnemang", "--amount", "650"]


@pytest.fixture
def workspace(tmp_path, clean_env):
    """Config file pointing at a temporary store and upload directory."""
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
llm:
  enabled: false
pages:
  kind: filesystem
  root: "{uploads}"
state_db_path: "{tmp_path / 'state.db'}"
"""
    )
    return config_path, uploads


def run(workspace, *args: str) -> int:
    config_path, _ = workspace
    return main(["-c", str(config_path), *args])


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_all_commands_registered(self) -> None:
        parser = create_cli()
        subparsers_action = next(a for a in parser._actions if a.dest == "command")

        assert set(subparsers_action.choices) == {
            "init",
            "analyze",
            "predict",
            "approve",
            "alias",
            "suppliers",
            "status",
        }

    def test_approve_arguments(self) -> None:
        correction = ["--account", "6212", "--correction", "--correction-id", "r1"]

        args = create_cli().parse_args(["approve", *COMPANY, *TELIA, *correction])

        assert args.amount == 650.0
        assert args.correction is True
        assert args.correction_id == "r1"

    def test_no_command(self) -> None:
        assert main([]) == 1


class TestBuildPageSource:
    """Tests for build_page_source()."""

    def test_filesystem(self, tmp_path) -> None:
        source = build_page_source(Config(pages=PageSourceConfig(root=tmp_path, max_pages=7)))
        assert isinstance(source, FilesystemPageSource)
        assert source.root == tmp_path
        assert source.max_pages == 7

    def test_http(self) -> None:
        config = Config(pages=PageSourceConfig(kind="http", base_url="http://files.test"))
        assert isinstance(build_page_source(config), HttpPageSource)


class TestCommands:
    """End-to-end command tests."""

    def test_init(self, tmp_path, capsys) -> None:
        path = tmp_path / "config.yaml"

        assert main(["-c", str(path), "init"]) == 0
        assert path.exists()
        assert main(["-c", str(path), "init"]) == 1
        assert "already exists" in capsys.readouterr().out

    def test_invalid_config(self, tmp_path, clean_env, capsys) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("pages:\n  kind: ftp\n")

        assert main(["-c", str(path), "status"]) == 1
        assert "Invalid config" in capsys.readouterr().out

    def test_status(self, workspace, capsys) -> None:
        assert run(workspace, "status") == 0

        out = capsys.readouterr().out
        assert "Supplier profiles:      0" in out
        assert "disabled" in out

    def test_analyze_creates_jobs(self, workspace, capsys) -> None:
        _, uploads = workspace
        (uploads / "batch.pdf").write_bytes(b"%PDF")
        for n in (1, 2, 3):
            (uploads / f"batch_p{n}.jpg").write_bytes(b"jpeg")

        assert run(workspace, "analyze", *COMPANY, "batch.pdf") == 0

        out = capsys.readouterr().out
        assert "3 page(s), 1 document(s), merged" in out
        assert "batch.pdf  pages 1,2,3" in out

    def test_analyze_without_jobs(self, workspace, capsys) -> None:
        _, uploads = workspace
        (uploads / "receipt.jpg").write_bytes(b"jpeg")

        assert run(workspace, "analyze", *COMPANY, "--no-jobs", "receipt.jpg") == 0

        out = capsys.readouterr().out
        assert "1 page(s), 1 document(s), single" in out
        assert "job-" not in out

    def test_analyze_missing_upload(self, workspace, capsys) -> None:
        assert run(workspace, "analyze", *COMPANY, "missing.pdf") == 1
        assert "Could not extract pages from missing.pdf" in capsys.readouterr().out

    def test_predict_learns_from_approval(self, workspace, capsys) -> None:
        assert run(workspace, "predict", *COMPANY, *TELIA, "--json") == 0
        before = json.loads(capsys.readouterr().out)

        assert run(workspace, "approve", *COMPANY, *TELIA, "--account", "6212") == 0
        assert "Learned 6212" in capsys.readouterr().out

        assert run(workspace, "predict", *COMPANY, *TELIA, "--json") == 0
        after = json.loads(capsys.readouterr().out)

        assert before["source"] == "category_rules"
        assert after["account"] == "6212"
        assert after["source"] == "ml_model"

    def test_predict_text_output(self, workspace, capsys) -> None:
        unknown = ["--supplier", "Okänd Leverantör", "--description", "Diverse"]

        assert run(workspace, "predict", *COMPANY, *unknown, "--amount", "1000") == 0

        out = capsys.readouterr().out
        assert "Account:     4010" in out
        assert "category_rules" in out

    def test_approve_empty_supplier(self, workspace, capsys) -> None:
        assert run(workspace, "approve", *COMPANY, "--supplier", " ", "--account", "6212") == 1

    def test_alias_and_suppliers(self, workspace, capsys) -> None:
        run(workspace, "approve", *COMPANY, *TELIA, "--account", "6212")

        assert run(workspace, "alias", *COMPANY, "Telia Sverige AB", "Telia Mobil") == 0
        assert run(workspace, "alias", *COMPANY, "Unknown AB", "Other") == 1
        assert run(workspace, "suppliers", *COMPANY) == 0

        out = capsys.readouterr().out
        assert "Telia Sverige AB" in out
        assert "1 supplier(s)" in out

    def test_supplier_stats(self, workspace, capsys) -> None:
        run(workspace, "approve", *COMPANY, *TELIA, "--account", "6212")

        assert run(workspace, "suppliers", *COMPANY, "--stats") == 0

        out = capsys.readouterr().out
        assert "Suppliers:           1" in out
        assert "Transactions:        1" in out
