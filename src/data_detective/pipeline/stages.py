from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from pydantic import BaseModel, Field

from ..errors import InvalidStageTransition
from ..utils import now_iso

if TYPE_CHECKING:
    from .context import RunContext


class StageName(str, Enum):
    VALIDATE = "validate"
    PROFILE = "profile"
    SELECT_PROVIDER = "select_provider"
    CALL_PROVIDER = "call_provider"
    SCORE_CONFIDENCE = "score_confidence"
    ASSEMBLE = "assemble"


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# failed -> pending is the retry edge; the manager decides when it may be taken.
_ALLOWED: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset({StageStatus.RUNNING}),
    StageStatus.RUNNING: frozenset({StageStatus.COMPLETED, StageStatus.FAILED}),
    StageStatus.FAILED: frozenset({StageStatus.PENDING}),
    StageStatus.COMPLETED: frozenset(),
}


class StageState(BaseModel):
    """
    Serializable retry/state record for one named stage.

    attempts counts every entry into RUNNING. backoff_delays holds the delay
    (seconds) scheduled before each retry, in order. errors keeps the
    message of every failed attempt; error is the most recent one.
    """

    name: StageName
    blocking: bool = False
    status: StageStatus = StageStatus.PENDING
    attempts: int = 0
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    retryable: bool = True
    backoff_delays: list[float] = Field(default_factory=list)
    output: Optional[str] = None

    @property
    def retries_used(self) -> int:
        return max(self.attempts - 1, 0)

    def _move(self, to: StageStatus) -> None:
        if to not in _ALLOWED[self.status]:
            raise InvalidStageTransition(f"Stage '{self.name.value}': {self.status.value} -> {to.value} is not allowed")
        self.status = to

    def start(self) -> None:
        self._move(StageStatus.RUNNING)
        self.attempts += 1
        self.started_at = now_iso()
        self.finished_at = None
        self.duration_ms = None

    def complete(self, output: Optional[str] = None, *, duration_ms: float = 0.0) -> None:
        self._move(StageStatus.COMPLETED)
        self.finished_at = now_iso()
        self.duration_ms = duration_ms
        self.error = None
        self.output = output

    def fail(self, error: str, *, retryable: bool = True, duration_ms: float = 0.0) -> None:
        self._move(StageStatus.FAILED)
        self.finished_at = now_iso()
        self.duration_ms = duration_ms
        self.error = error
        self.errors.append(error)
        self.retryable = retryable

    def reset_for_retry(self, delay: float) -> None:
        self._move(StageStatus.PENDING)
        self.backoff_delays.append(delay)


StageHandler = Callable[["RunContext"], Optional[str]]


@dataclass(frozen=True)
class StageSpec:
    """A stage in the declared order. The handler returns a short output summary."""

    name: StageName
    handler: StageHandler
    blocking: bool = False

    def new_state(self) -> StageState:
        return StageState(name=self.name, blocking=self.blocking)
