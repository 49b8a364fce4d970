"""Tests for the SQLite task journal."""

from pathlib import Path

import pytest

from realty_coordinator.agents.base import Action, AgentContext, AgentResponse
from realty_coordinator.config import Settings
from realty_coordinator.engine.coordinator import AgentCoordinator
from realty_coordinator.engine.tasks import TaskStatus, TaskStore
from realty_coordinator.engine.workflows import WorkflowConfig, WorkflowRegistry
from realty_coordinator.storage.database import Database, TaskJournal


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def journal(tmp_path: Path) -> TaskJournal:
    return TaskJournal(Database(data_dir=tmp_path / "realty"))


def test_ensure_tables(tmp_path: Path) -> None:
    db = Database(data_dir=tmp_path / "realty")
    db.ensure_tables()
    assert db.db_path.exists()


def test_wal_mode(tmp_path: Path) -> None:
    db = Database(data_dir=tmp_path / "realty")
    db.ensure_tables()
    with db.connect() as conn:
        result = conn.execute("PRAGMA journal_mode").fetchone()
        assert result[0] == "wal"


def test_record_task_upserts(journal: TaskJournal) -> None:
    store = TaskStore()
    record = store.create("mortgage rates", "smart-routing")
    journal.record_task(record)
    assert journal.get_task(record.id)["status"] == "pending"

    store.transition(record.id, TaskStatus.PROCESSING)
    store.transition(record.id, TaskStatus.COMPLETED, result=AgentResponse(
        message="done", confidence=0.9, actions=[Action("mortgage_rates", [{"rate": 6.5}])],
    ))
    journal.record_task(record)

    stored = journal.get_task(record.id)
    assert stored["status"] == "completed"
    assert stored["completed_at"] is not None
    assert stored["result"]["actions"][0]["data"] == [{"rate": 6.5}]
    assert journal.get_stats() == {"total_tasks": 1, "by_status": {"completed": 1}}


def test_recent_tasks_newest_first(journal: TaskJournal) -> None:
    store = TaskStore()
    for i in range(3):
        record = store.create(f"task {i}", "parallel")
        store.transition(record.id, TaskStatus.FAILED, error="boom")
        journal.record_task(record)

    assert [t["input"] for t in journal.recent_tasks()] == ["task 2", "task 1", "task 0"]
    assert len(journal.recent_tasks(limit=2)) == 2
    assert journal.get_task("task-0-missing") is None


def test_record_workflow(journal: TaskJournal) -> None:
    registry = WorkflowRegistry(lambda agent_id: True)
    descriptor = registry.register(WorkflowConfig(
        name="Rate watch", trigger="rate_change", agents=["financial"], schedule="@daily",
    ))
    journal.record_workflow(descriptor)
    assert registry.get(descriptor.workflow_id) is descriptor

    [stored] = journal.workflows()
    assert stored["workflow_id"] == descriptor.workflow_id
    assert stored["trigger"] == "rate_change"
    assert stored["steps"] == ["Run financial on rate_change"]
    assert stored["schedule"] == "@daily"


def test_older_journal_gains_task_columns(tmp_path: Path) -> None:
    db = Database(data_dir=tmp_path / "realty")
    with db.connect() as conn:
        conn.execute(
            "CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, task_id TEXT UNIQUE NOT NULL, "
            "type TEXT NOT NULL, input TEXT NOT NULL, strategy TEXT NOT NULL, status TEXT NOT NULL, "
            "created_at TEXT NOT NULL, completed_at TEXT, error TEXT, result TEXT)"
        )
        conn.execute(
            "INSERT INTO tasks (task_id, type, input, strategy, status, created_at) "
            "VALUES ('task-1', 'user_request', 'old', 'parallel', 'failed', '2024-01-01')"
        )

    journal = TaskJournal(db)
    old = journal.get_task("task-1")
    assert old["agent_id"] == "coordinator"
    assert old["context"] is None

    store = TaskStore()
    record = store.create("comps", "direct:market-analysis", "direct_request",
                          agent_id="market-analysis", context=AgentContext(session_id="s"))
    journal.record_task(record)
    assert journal.get_task(record.id)["agent_id"] == "market-analysis"


@pytest.mark.anyio
async def test_coordinator_journals_finalized_tasks(journal: TaskJournal, scripted_agents) -> None:
    coordinator = AgentCoordinator(
        agents=scripted_agents, settings=Settings(agent_timeout=5.0), journal=journal
    )
    await coordinator.execute_task("mortgage help", AgentContext(session_id="s"))

    [stored] = journal.recent_tasks()
    assert stored["status"] == "completed"
    assert stored["result"]["message"] == "Financial says hi"
    assert stored["agent_id"] == "coordinator"
    assert stored["context"]["session_id"] == "s"

    await coordinator.execute_agent("market-analysis", "comps", AgentContext(session_id="s2"))
    direct = journal.recent_tasks()[0]
    assert direct["agent_id"] == "market-analysis"
    assert direct["context"]["session_id"] == "s2"


@pytest.mark.anyio
async def test_journal_failure_does_not_fail_task(tmp_path: Path, scripted_agents) -> None:
    journal = TaskJournal(Database(data_dir=tmp_path / "realty"))
    with journal.db.connect() as conn:
        conn.execute("DROP TABLE tasks")

    coordinator = AgentCoordinator(
        agents=scripted_agents, settings=Settings(agent_timeout=5.0), journal=journal
    )
    response = await coordinator.execute_task("mortgage help", AgentContext(session_id="s"))

    assert response.message == "Financial says hi"
    assert coordinator.get_task_history()[0].status == TaskStatus.COMPLETED
