"""Saga step ledger used by the business transaction workflows.

A workflow is a fixed, ordered list of steps.  Each step that succeeds
may register a compensating action; when a later step fails the
orchestrator asks the run to compensate, which replays the registered
actions in reverse order.  This gives a best-effort undo, not atomicity:
a compensation can itself fail, and that is recorded rather than hidden.

Calls to external collaborators go through ``call`` and are bounded by
the step timeout; in-process ledger operations go through ``run``.  Both
honour the caller's cancellation event between and during steps.  A
collaborator call abandoned that way is undone if it succeeds later.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from concurrent.futures import Executor, Future
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from threading import Event
from typing import Any, TypeVar

import structlog

from polimarket.domain.exceptions import (
    DependencyFailureError,
    DomainException,
    OperationTimeoutError,
    TransactionCancelledError,
)
from polimarket.domain.model.transaction import StepRecord, StepStatus

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# How often a waiting step re-checks the cancellation event.
_CANCEL_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class Undo:
    """Compensation for a collaborator call, built from the call's result.

    If the call outlives its step timeout or the caller cancels, the action
    still runs once the collaborator eventually succeeds.
    """

    name: str
    action: Callable[[Any], Any]


@dataclass(frozen=True)
class _Compensation:
    name: str
    action: Callable[[], Any]
    remote: bool


class SagaRun:

    def __init__(
        self,
        transaction_id: str,
        executor: Executor,
        step_timeout: float,
        cancel_event: Event | None = None,
    ) -> None:
        self.transaction_id = transaction_id
        self._executor = executor
        self._step_timeout = step_timeout
        self._cancel_event = cancel_event
        self._steps: list[StepRecord] = []
        self._compensations: list[_Compensation] = []

    @property
    def steps(self) -> list[StepRecord]:
        return list(self._steps)

    # --- Forward steps --------------------------------------------------------

    def run(self, name: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run an in-process step and record its outcome."""
        self._raise_if_cancelled(name)
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            self._record(name, StepStatus.FAILED, str(exc))
            raise
        self._record(name, StepStatus.COMPLETED)
        return result

    def call(
        self,
        name: str,
        fn: Callable[..., T],
        *args: Any,
        undo: Undo | None = None,
        **kwargs: Any,
    ) -> T:
        """Run a collaborator call under the step timeout and record its outcome.

        With ``undo`` the compensation is registered as soon as the call
        succeeds.
        """
        self._raise_if_cancelled(name)
        try:
            result = self._bounded(name, fn, args, kwargs, honour_cancel=True, undo=undo)
        except Exception as exc:
            self._record(name, StepStatus.FAILED, str(exc))
            raise
        self._record(name, StepStatus.COMPLETED)
        if undo is not None:
            self.compensate_with(undo.name, undo.action, result, remote=True)
        return result

    def compensate_with(
        self,
        name: str,
        fn: Callable[..., Any],
        *args: Any,
        remote: bool = False,
        **kwargs: Any,
    ) -> None:
        """Register the undo action for the step that just completed."""
        self._compensations.append(
            _Compensation(name=name, action=lambda: fn(*args, **kwargs), remote=remote)
        )

    def discard_compensation(self, name: str) -> None:
        """Forget a registered undo action that a later step has superseded."""
        self._compensations = [c for c in self._compensations if c.name != name]

    # --- Compensation ---------------------------------------------------------

    def compensate(self) -> list[str]:
        """Undo completed steps in reverse order; return the failures."""
        failures: list[str] = []
        while self._compensations:
            comp = self._compensations.pop()
            try:
                if comp.remote:
                    self._bounded(comp.name, comp.action, (), {}, honour_cancel=False)
                else:
                    comp.action()
            except Exception as exc:
                logger.error(
                    "compensation_failed",
                    transaction_id=self.transaction_id,
                    step=comp.name,
                    error=str(exc),
                )
                self._record(comp.name, StepStatus.COMPENSATION_FAILED, str(exc))
                failures.append(f"Compensation '{comp.name}' failed: {exc}")
            else:
                logger.info(
                    "compensation_applied",
                    transaction_id=self.transaction_id,
                    step=comp.name,
                )
                self._record(comp.name, StepStatus.COMPENSATED)
        return failures

    # --- Internal helpers -----------------------------------------------------

    def _bounded(
        self,
        name: str,
        fn: Callable[..., T],
        args: tuple,
        kwargs: dict,
        honour_cancel: bool,
        undo: Undo | None = None,
    ) -> T:
        future = self._executor.submit(fn, *args, **kwargs)
        deadline = time.monotonic() + self._step_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._abandon(name, future, undo)
                raise OperationTimeoutError(
                    f"Step '{name}' timed out after {self._step_timeout}s"
                )
            try:
                return future.result(timeout=min(_CANCEL_POLL_SECONDS, remaining))
            except FuturesTimeout:
                if future.done():
                    # The collaborator itself raised a TimeoutError.
                    raise OperationTimeoutError(
                        f"Step '{name}' timed out in the collaborator"
                    ) from None
                if honour_cancel and self._cancelled:
                    self._abandon(name, future, undo)
                    raise TransactionCancelledError(
                        f"Transaction cancelled by caller during step '{name}'"
                    ) from None
            except DomainException:
                raise
            except Exception as exc:
                raise DependencyFailureError(name, str(exc)) from exc

    def _abandon(self, name: str, future: Future, undo: Undo | None) -> None:
        if future.cancel() or undo is None:
            return

        def undo_late_success(done: Future) -> None:
            if done.cancelled() or done.exception() is not None:
                return
            try:
                undo.action(done.result())
            except Exception as exc:
                logger.error(
                    "late_compensation_failed",
                    transaction_id=self.transaction_id,
                    step=name,
                    compensation=undo.name,
                    error=str(exc),
                )
            else:
                logger.warning(
                    "late_compensation_applied",
                    transaction_id=self.transaction_id,
                    step=name,
                    compensation=undo.name,
                )

        future.add_done_callback(undo_late_success)

    @property
    def _cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _raise_if_cancelled(self, name: str) -> None:
        if self._cancelled:
            raise TransactionCancelledError(
                f"Transaction cancelled by caller before step '{name}'"
            )

    def _record(self, name: str, status: StepStatus, error: str | None = None) -> None:
        self._steps.append(StepRecord(name=name, status=status, error=error))
