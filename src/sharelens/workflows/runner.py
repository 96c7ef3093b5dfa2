"""Sequential workflow runner with per-run wall-clock budget.

A workflow is an ordered list of named steps. A run executes them one after
another; the first failure aborts the rest and the run ends ``failed`` with
that step's error. Completed steps are not rolled back: compensating
actions belong to the caller's ``on_failure`` hook.

Step outputs live in memory for the duration of the run only. There is no
automatic retry; re-trigger the whole run instead.

A run returns only after its last step has stopped. On timeout the runner
sets ``StepContext.cancelled`` and waits for the step to notice; steps call
``ctx.raise_if_cancelled()`` before every write they must not make late.

State machine per run:  pending -> running -> (completed | failed)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sharelens.errors import SharelensError, WorkflowTimeout

_log = logging.getLogger(__name__)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING}),
    RunStatus.RUNNING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
}


class IllegalTransition(RuntimeError):
    """A run was asked to move backwards or out of a terminal state."""


@dataclass
class StepContext:
    """What a step sees: the trigger input and every earlier step's output.

    ``cancelled`` is set once the run has timed out. Work done after that
    point is discarded, so a step must not start new writes.
    """

    trigger: Any
    outputs: dict[str, Any] = field(default_factory=dict)
    cancelled: threading.Event = field(default_factory=threading.Event)

    def output_of(self, step_name: str) -> Any:
        return self.outputs[step_name]

    def raise_if_cancelled(self, what: str = "step") -> None:
        """Raise WorkflowTimeout if the run was cancelled."""
        if self.cancelled.is_set():
            raise WorkflowTimeout(f"Run cancelled before {what}")


@dataclass(frozen=True)
class Step:
    name: str
    fn: Callable[[StepContext], Any]


@dataclass(frozen=True)
class Workflow:
    workflow_id: str
    steps: Sequence[Step]

    def __post_init__(self) -> None:
        names = [s.name for s in self.steps]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate step names in workflow '{self.workflow_id}': {names}")


@dataclass
class RunError:
    kind: str
    message: str
    step_name: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, step_name: str | None) -> RunError:
        kind = exc.kind if isinstance(exc, SharelensError) else "StepError"
        return cls(kind=kind, message=str(exc) or type(exc).__name__, step_name=step_name)


@dataclass
class StepOutcome:
    step_name: str
    succeeded: bool
    started_at: datetime
    finished_at: datetime
    output: Any = None
    error: RunError | None = None


@dataclass
class WorkflowRun:
    """One invocation of a workflow. Mutated only by WorkflowRunner."""

    workflow_id: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: RunStatus = RunStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    step_results: list[StepOutcome] = field(default_factory=list)
    error: RunError | None = None
    exception: BaseException | None = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED

    def output_of(self, step_name: str) -> Any:
        """Return the output of a successfully finished step.

        Raises:
            KeyError: If the step did not run or did not succeed.
        """
        for outcome in self.step_results:
            if outcome.step_name == step_name and outcome.succeeded:
                return outcome.output
        raise KeyError(step_name)

    def transition(self, new: RunStatus) -> None:
        if new not in _TRANSITIONS[self.status]:
            raise IllegalTransition(
                f"Run {self.run_id}: cannot move from {self.status.value} to {new.value}"
            )
        self.status = new


FailureHook = Callable[[WorkflowRun, BaseException], None]


class WorkflowRunner:
    """Execute workflows step by step under one wall-clock budget per run.

    Steps run on a single worker thread so that a step blocked on network
    I/O cannot hold the run past its budget. On timeout the run fails with
    kind ``Timeout``: the step is told to stop through ``ctx.cancelled``, its
    result is discarded, and the failure hook runs only once it has returned.

    Args:
        timeout: Budget in seconds for the whole run (``None`` = unbounded).
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be > 0 seconds")
        self.timeout = timeout
        self._clock = clock

    def run(
        self,
        workflow: Workflow,
        trigger: Any = None,
        on_failure: FailureHook | None = None,
    ) -> WorkflowRun:
        """Run *workflow* with *trigger* as input and return the finished run.

        Never raises for step failures: inspect ``run.status`` / ``run.error``.
        """
        run = WorkflowRun(workflow_id=workflow.workflow_id)
        run.transition(RunStatus.RUNNING)
        run.started_at = _now()
        deadline = None if self.timeout is None else self._clock() + self.timeout
        ctx = StepContext(trigger=trigger)
        _log.info("Workflow %s started (run %s)", workflow.workflow_id, run.run_id)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"wf-{workflow.workflow_id}")
        try:
            for step in workflow.steps:
                started = _now()
                try:
                    output = self._execute(executor, step, ctx, deadline)
                except Exception as exc:
                    self._fail(run, step, started, exc, on_failure)
                    return run

                ctx.outputs[step.name] = output
                run.step_results.append(
                    StepOutcome(
                        step_name=step.name,
                        succeeded=True,
                        started_at=started,
                        finished_at=_now(),
                        output=output,
                    )
                )
                _log.debug("Step %s.%s finished", workflow.workflow_id, step.name)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        run.transition(RunStatus.COMPLETED)
        run.completed_at = _now()
        _log.info("Workflow %s completed (run %s)", workflow.workflow_id, run.run_id)
        return run

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute(
        self,
        executor: ThreadPoolExecutor,
        step: Step,
        ctx: StepContext,
        deadline: float | None,
    ) -> Any:
        remaining = None
        if deadline is not None:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise WorkflowTimeout(
                    f"Run budget of {self.timeout:g}s exhausted before step '{step.name}'"
                )

        _log.debug("Step %s started", step.name)
        future = executor.submit(step.fn, ctx)
        try:
            return future.result(timeout=remaining)
        except FutureTimeout:
            ctx.cancelled.set()
            if not future.cancel():
                _log.warning("Step %s over budget; waiting for it to stop", step.name)
                wait([future])
            raise WorkflowTimeout(
                f"Run exceeded its {self.timeout:g}s budget during step '{step.name}'"
            ) from None

    def _fail(
        self,
        run: WorkflowRun,
        step: Step,
        started: datetime,
        exc: Exception,
        on_failure: FailureHook | None,
    ) -> None:
        error = RunError.from_exception(exc, step.name)
        run.step_results.append(
            StepOutcome(
                step_name=step.name,
                succeeded=False,
                started_at=started,
                finished_at=_now(),
                error=error,
            )
        )
        run.error = error
        run.exception = exc
        run.transition(RunStatus.FAILED)
        run.completed_at = _now()
        _log.error(
            "Workflow %s failed at step %s: [%s] %s",
            run.workflow_id, step.name, error.kind, error.message,
        )

        if on_failure is not None:
            try:
                on_failure(run, exc)
            except Exception:
                _log.exception("Failure handler for run %s raised", run.run_id)


def _now() -> datetime:
    return datetime.now(timezone.utc)
