"""Smoke tests for the commands that work without a network."""

from click.testing import CliRunner

from gitops_market.cli import main


def test_create_then_validate(tmp_path):
    runner = CliRunner()
    result = runner.invoke(main, ["-p", str(tmp_path), "create", "my-stack", "-c", "observability", "-o", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "my-stack@0.1.0" in result.output

    result = runner.invoke(main, ["-p", str(tmp_path), "validate", str(tmp_path / "my-stack")])
    assert result.exit_code == 0
    assert "Valid!" in result.output


def test_validate_failure_exits_nonzero(tmp_path):
    result = CliRunner().invoke(main, ["-p", str(tmp_path), "validate", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "pattern.yaml is missing" in result.output


def test_list_empty_project(tmp_path):
    result = CliRunner().invoke(main, ["-p", str(tmp_path), "list"])
    assert result.exit_code == 0
    assert "No patterns installed." in result.output


def test_uninstall_unknown_pattern(tmp_path):
    result = CliRunner().invoke(main, ["-p", str(tmp_path), "uninstall", "ghost"])
    assert result.exit_code == 1
    assert "not installed" in result.output
