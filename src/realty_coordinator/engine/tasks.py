"""Task records and the bounded in-memory task store."""

from __future__ import annotations

import itertools
import random
import string
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from realty_coordinator.agents.base import AgentContext, AgentResponse

_BASE36 = string.digits + string.ascii_lowercase


class TaskStatus(StrEnum):
    """Task lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


_TRANSITIONS: dict[TaskStatus, tuple[TaskStatus, ...]] = {
    TaskStatus.PENDING: (TaskStatus.PROCESSING, TaskStatus.FAILED),
    TaskStatus.PROCESSING: (TaskStatus.COMPLETED, TaskStatus.FAILED),
    TaskStatus.COMPLETED: (),
    TaskStatus.FAILED: (),
}


def new_task_id() -> str:
    """``task-<epoch ms>-<9 base-36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"task-{int(time.time() * 1000)}-{suffix}"


@dataclass
class TaskRecord:
    """One submitted task and its outcome."""

    id: str
    type: str
    input: str
    strategy: str
    agent_id: str = "coordinator"
    context: AgentContext | None = None
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    result: AgentResponse | None = None
    error: str | None = None
    seq: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "input": self.input,
            "strategy": self.strategy,
            "agent_id": self.agent_id,
            "context": self.context.to_dict() if self.context else None,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


class TaskStore:
    """
    Holds task records for history queries.

    ``max_records`` bounds the store; once exceeded, the oldest finalized
    records are evicted. Pending and processing records are never evicted.
    """

    def __init__(self, max_records: int | None = None) -> None:
        self.max_records = max_records
        self._records: dict[str, TaskRecord] = {}
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, task: str, strategy: str, task_type: str = "user_request", *,
               agent_id: str = "coordinator",
               context: AgentContext | None = None) -> TaskRecord:
        with self._lock:
            record = TaskRecord(
                id=new_task_id(), type=task_type, input=task, strategy=strategy,
                agent_id=agent_id, context=context, seq=next(self._seq),
            )
            while record.id in self._records:
                record.id = new_task_id()
            self._records[record.id] = record
            self._evict()
        return record

    def transition(self, task_id: str, status: TaskStatus, *,
                   result: AgentResponse | None = None,
                   error: str | None = None) -> TaskRecord:
        """Move a record to ``status``. Terminal records are never rewritten."""
        with self._lock:
            record = self._records[task_id]
            if status not in _TRANSITIONS[record.status]:
                raise ValueError(
                    f"Invalid task transition {record.status.value} -> {status.value} for {task_id}"
                )
            record.status = status
            if status.is_terminal:
                record.completed_at = datetime.now(timezone.utc)
                record.result = result
                record.error = error
                self._evict()
        return record

    def get(self, task_id: str) -> TaskRecord | None:
        return self._records.get(task_id)

    def history(self, limit: int | None = None) -> list[TaskRecord]:
        """Newest first; equal timestamps fall back to submission order."""
        with self._lock:
            records = sorted(
                self._records.values(), key=lambda r: (r.created_at, r.seq), reverse=True
            )
        return records if limit is None else records[:max(limit, 0)]

    def counts(self) -> dict[str, int]:
        with self._lock:
            counts = {status.value: 0 for status in TaskStatus}
            for record in self._records.values():
                counts[record.status.value] += 1
        return counts

    def __len__(self) -> int:
        return len(self._records)

    def _evict(self) -> None:
        if self.max_records is None or len(self._records) <= self.max_records:
            return
        finalized = sorted(
            (r for r in self._records.values() if r.status.is_terminal),
            key=lambda r: (r.created_at, r.seq),
        )
        for record in finalized[: len(self._records) - self.max_records]:
            del self._records[record.id]
