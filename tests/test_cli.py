"""Tests for the click CLI (runs in a temporary working directory)."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from main import cli
from models.composition import CompositionResult


@pytest.fixture
def runner(tmp_path: Path, monkeypatch) -> CliRunner:
    monkeypatch.chdir(tmp_path)
    return CliRunner()


@pytest.fixture
def data(runner: CliRunner) -> str:
    result = runner.invoke(cli, ["generate", "--students", "12", "--seed", "4",
                                 "-o", "data.json"])
    assert result.exit_code == 0, result.output
    return "data.json"


# ─── Data & composition ───────────────────────────────────────────────────────

class TestCompose:
    def test_generate_writes_dataset(self, runner, data):
        assert Path(data).exists()

    def test_compose_and_evaluate(self, runner, data):
        result = runner.invoke(cli, ["compose", "--data", data, "-o", "res.json"])
        assert result.exit_code == 0, result.output
        saved = CompositionResult.load_json(Path("res.json"))
        assert len(saved.placed_students) + len(saved.unplaced_students) == 12

        result = runner.invoke(cli, ["evaluate", "res.json", "--data", data])
        assert result.exit_code == 0, result.output
        assert "Evaluation" in result.output

    def test_compose_without_report(self, runner, data):
        result = runner.invoke(cli, ["compose", "--data", data, "--no-report",
                                     "--students", "stu_001,stu_002,stu_003",
                                     "--optimize-for", "content"])
        assert result.exit_code == 0, result.output

    def test_invalid_criteria_exit_code(self, runner, data):
        result = runner.invoke(cli, ["compose", "--data", data,
                                     "--min-students", "5", "--max-students", "3"])
        assert result.exit_code == 1
        assert "Invalid criteria" in result.output

    def test_missing_dataset_exit_code(self, runner):
        result = runner.invoke(cli, ["compose", "--data", "missing.json"])
        assert result.exit_code == 1

    def test_compatible(self, runner, data):
        result = runner.invoke(cli, ["compatible", "stu_003", "--data", data,
                                     "--limit", "3"])
        assert result.exit_code == 0, result.output
        assert "Compatible with stu_003" in result.output

    def test_compatible_unknown_student(self, runner, data):
        result = runner.invoke(cli, ["compatible", "ghost", "--data", data])
        assert result.exit_code == 1

    def test_suggest_size(self, runner, data):
        result = runner.invoke(cli, ["suggest-size", "--data", data])
        assert result.exit_code == 0, result.output
        assert "Recommended" in result.output


# ─── Config & scenarios ───────────────────────────────────────────────────────

class TestConfigCommands:
    def test_init_and_show(self, runner):
        result = runner.invoke(cli, ["config", "init"])
        assert result.exit_code == 0, result.output
        assert Path("config/composer_config.yaml").exists()

        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0, result.output
        assert "Criteria" in result.output

    def test_init_keeps_existing(self, runner):
        runner.invoke(cli, ["config", "init"])
        result = runner.invoke(cli, ["config", "init"])
        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_show_without_file_uses_defaults(self, runner):
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0, result.output

    def test_scenarios(self, runner):
        result = runner.invoke(cli, ["scenario", "save", "base", "-d", "Baseline",
                                     "--overwrite"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["scenario", "list"])
        assert result.exit_code == 0, result.output
        assert "base" in result.output

        result = runner.invoke(cli, ["scenario", "load", "base"])
        assert result.exit_code == 0, result.output
        assert Path("config/composer_config.yaml").exists()

    def test_load_unknown_scenario(self, runner):
        result = runner.invoke(cli, ["scenario", "load", "nope"])
        assert result.exit_code == 1
