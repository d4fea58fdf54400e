"""Domain models for tracked workflows and sagas."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class WorkflowStatus(StrEnum):
    """Workflow states; only RUNNING may transition."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    COMPENSATING = "compensating"


@dataclass
class Workflow:
    """A timeout- or retry-governed unit of tracked work."""

    workflow_id: str
    type: str
    created_at: datetime
    status: WorkflowStatus = WorkflowStatus.RUNNING
    state: dict[str, object] = field(default_factory=dict)
    retries: int = 0
    max_retries: int = 0
    completed_at: datetime | None = None


class SagaStatus(StrEnum):
    """Saga lifecycle states."""

    RUNNING = "running"
    COMPENSATING = "compensating"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SagaStep:
    """A forward action with its compensating action.

    ``max_retries`` caps the number of attempts made for ``action``.
    """

    name: str
    action: Callable[[], Awaitable[object]]
    compensation: Callable[[], Awaitable[None]]
    max_retries: int = 1
    retry_count: int = 0


@dataclass
class Saga:
    """An ordered multi-step transaction with LIFO compensation."""

    saga_id: str
    type: str
    steps: list[SagaStep]
    status: SagaStatus = SagaStatus.RUNNING
    current_step: int = 0
    compensation_steps: list[SagaStep] = field(default_factory=list)
    results: dict[str, object] = field(default_factory=dict)
    compensation_failures: list[str] = field(default_factory=list)
    workflow_id: str | None = None
    error: str | None = None
