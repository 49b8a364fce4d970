"""Tests for the realty CLI."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from realty_coordinator.cli import main
from realty_coordinator.storage.database import Database, TaskJournal


@pytest.fixture
def runner(tmp_path: Path) -> CliRunner:
    return CliRunner(env={
        "REALTY_DATA_DIR": str(tmp_path),
        "GEMINI_API_KEY": None,
        "GEMINI_BEARER_TOKEN": None,
        "REALTY_MARKET_API_URL": None,
    })


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_init(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(main, ["init"])
    assert result.exit_code == 0
    assert "initialized" in result.output.lower()
    assert (tmp_path / "data" / "realty.db").exists()


def test_agents(runner: CliRunner) -> None:
    result = runner.invoke(main, ["agents"])
    assert result.exit_code == 0
    assert "Registered Agents" in result.output
    assert "financial" in result.output


def test_history_empty(runner: CliRunner) -> None:
    result = runner.invoke(main, ["history"])
    assert result.exit_code == 0
    assert "No task history yet" in result.output


def test_run_journals_task(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(main, ["run", "What are current mortgage rates?"])
    assert result.exit_code == 0, result.output
    assert "get_mortgage_rates" in result.output

    [task] = TaskJournal(Database(tmp_path)).recent_tasks()
    assert task["status"] == "completed"
    assert task["strategy"] == "smart-routing"
    assert task["result"]["tools_used"] == ["get_mortgage_rates"]

    result = runner.invoke(main, ["history"])
    assert result.exit_code == 0
    assert "Task History" in result.output


def test_run_parallel(runner: CliRunner) -> None:
    result = runner.invoke(
        main, ["run", "Mortgage options for the construction project", "--strategy", "parallel"]
    )
    assert result.exit_code == 0, result.output
    assert "Agent 1:" in result.output
    assert "Agent 2:" in result.output


def test_run_rejects_unknown_strategy(runner: CliRunner) -> None:
    result = runner.invoke(main, ["run", "mortgage", "--strategy", "round-robin"])
    assert result.exit_code == 2


def test_run_blank_task_fails(runner: CliRunner) -> None:
    result = runner.invoke(main, ["run", "   "])
    assert result.exit_code == 1
    assert "Task failed" in result.output


def test_workflow(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(main, [
        "workflow", "Sunset updates",
        "--trigger", "construction_milestone",
        "--agent", "property-project",
    ])
    assert result.exit_code == 0, result.output
    assert "Registered construction-workflow-" in result.output
    assert "Generate demand letters on milestones" in result.output

    [workflow] = TaskJournal(Database(tmp_path)).workflows()
    assert workflow["agents"] == ["property-project"]


def test_workflow_unknown_agent(runner: CliRunner) -> None:
    result = runner.invoke(main, ["workflow", "w", "--trigger", "t", "--agent", "ghost"])
    assert result.exit_code == 1
    assert "Workflow rejected" in result.output


def test_score(runner: CliRunner) -> None:
    result = runner.invoke(main, ["score", "rental market trend data"])
    assert result.exit_code == 0
    assert "Smart routing: market-analysis" in result.output


def test_history_shows_task_detail_and_totals(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(main, ["run", "What are current mortgage rates?", "--session", "s-42"])
    assert result.exit_code == 0, result.output
    [task] = TaskJournal(Database(tmp_path)).recent_tasks()

    result = runner.invoke(main, ["history"])
    assert result.exit_code == 0
    assert "Total tasks: 1 (completed: 1)" in result.output

    result = runner.invoke(main, ["history", task["id"]])
    assert result.exit_code == 0, result.output
    assert task["id"] in result.output
    assert "Agent: coordinator" in result.output
    assert "Session: s-42" in result.output
    assert "completed" in result.output


def test_history_unknown_task(runner: CliRunner) -> None:
    result = runner.invoke(main, ["history", "task-0-missing"])
    assert result.exit_code == 1
    assert "Task not found" in result.output


def test_workflows_lists_journal(runner: CliRunner) -> None:
    result = runner.invoke(main, ["workflows"])
    assert result.exit_code == 0
    assert "No workflows registered" in result.output

    runner.invoke(main, [
        "workflow", "Rate watch", "--trigger", "rate_change", "--agent", "financial",
        "--schedule", "@daily",
    ])
    result = runner.invoke(main, ["workflows"])
    assert result.exit_code == 0, result.output
    assert "Workflows" in result.output
    assert "rate_change" in result.output
    assert "@daily" in result.output
