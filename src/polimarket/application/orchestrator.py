"""Application service: Business Transaction Orchestrator.

Dispatches a typed business transaction to its workflow and turns the
outcome into a TransactionResult.  The entry point never raises: every
failure ends up in ``TransactionResult.errors``.

Per transaction the state moves Received -> Processing -> one of
Completed, Failed or Error.  Failed means the request was rejected by a
business rule (bad payload, unknown target, not enough stock); Error means
a collaborator failed, timed out, the caller cancelled, or something
unexpected happened.  In both cases the completed steps are compensated.

Transactions are best-effort, not atomic: no lock is held across steps,
and a compensation that fails is reported, not retried.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

import structlog

from polimarket.application.saga import SagaRun
from polimarket.application.workflow import Workflow
from polimarket.domain.exceptions import (
    DependencyFailureError,
    EntityNotFoundError,
    InvalidStockOperationError,
    OperationTimeoutError,
    TransactionCancelledError,
    ValidationError,
)
from polimarket.domain.gateways import EventPublisher
from polimarket.domain.model.transaction import (
    BusinessTransactionRequest,
    StepRecord,
    StepStatus,
    TransactionResult,
    TransactionStatus,
    TransactionType,
)

logger = structlog.get_logger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Unexpected error while executing transaction"

_REJECTIONS = (ValidationError, EntityNotFoundError, InvalidStockOperationError)
_FAULTS = (DependencyFailureError, OperationTimeoutError, TransactionCancelledError)


class TransactionOrchestrator:

    def __init__(
        self,
        workflows: Iterable[Workflow],
        publisher: EventPublisher,
        step_timeout: float = 5.0,
        max_workers: int = 8,
    ) -> None:
        self._workflows: dict[TransactionType, Workflow] = {}
        for workflow in workflows:
            self._workflows[workflow.transaction_type] = workflow
        missing = set(TransactionType) - set(self._workflows)
        if missing:
            names = ", ".join(sorted(t.value for t in missing))
            raise ValueError(f"No workflow registered for: {names}")

        self._publisher = publisher
        self._step_timeout = step_timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="polimarket-step"
        )
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._results: dict[str, TransactionResult] = {}

    # --- Queries --------------------------------------------------------------

    def get_result(self, transaction_id: str) -> TransactionResult:
        with self._lock:
            result = self._results.get(transaction_id)
        if result is None:
            raise EntityNotFoundError(f"Transaction '{transaction_id}' not found")
        return result

    def status_of(self, transaction_id: str) -> TransactionStatus:
        with self._lock:
            if transaction_id in self._in_flight:
                return TransactionStatus.PROCESSING
            result = self._results.get(transaction_id)
        if result is None:
            raise EntityNotFoundError(f"Transaction '{transaction_id}' not found")
        return result.status

    # --- Execution ------------------------------------------------------------

    def execute(
        self,
        request: BusinessTransactionRequest,
        cancel_event: threading.Event | None = None,
    ) -> TransactionResult:
        started_at = datetime.now(timezone.utc)
        transaction_id = (request.transaction_id or "").strip()
        log = logger.bind(transaction_id=transaction_id, transaction_type=request.transaction_type)
        log.info("transaction_received")

        if not transaction_id:
            return self._rejected(request, None, started_at, "Transaction ID is required")
        try:
            transaction_type = TransactionType.parse(request.transaction_type)
        except ValidationError as exc:
            return self._rejected(request, None, started_at, str(exc))

        with self._lock:
            duplicate = transaction_id in self._in_flight or transaction_id in self._results
            if not duplicate:
                self._in_flight.add(transaction_id)
        if duplicate:
            return self._rejected(
                request,
                transaction_type,
                started_at,
                f"Duplicate transaction id: {transaction_id}",
            )

        try:
            result = self._process(
                request, transaction_id, transaction_type, started_at, cancel_event, log
            )
        finally:
            with self._lock:
                self._in_flight.discard(transaction_id)
        return result

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # --- Internal helpers -----------------------------------------------------

    def _process(
        self,
        request: BusinessTransactionRequest,
        transaction_id: str,
        transaction_type: TransactionType,
        started_at: datetime,
        cancel_event: threading.Event | None,
        log: Any,
    ) -> TransactionResult:
        workflow = self._workflows[transaction_type]
        saga = SagaRun(transaction_id, self._executor, self._step_timeout, cancel_event)
        results: dict[str, Any] = {}
        errors: list[str] = []
        log.info("transaction_processing")

        try:
            results = workflow.run(request, saga)
            status = TransactionStatus.COMPLETED
        except _REJECTIONS as exc:
            status = TransactionStatus.FAILED
            errors.append(str(exc))
        except _FAULTS as exc:
            status = TransactionStatus.ERROR
            errors.append(str(exc))
        except Exception:
            log.exception("transaction_crashed")
            status = TransactionStatus.ERROR
            errors.append(UNEXPECTED_ERROR_MESSAGE)

        steps = saga.steps
        if status is TransactionStatus.COMPLETED:
            results["notifications_sent"] = self._publish(workflow, request, results, steps)
        else:
            errors.extend(saga.compensate())
            steps = saga.steps

        result = TransactionResult.build(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            status=status,
            started_at=started_at,
            results=results,
            errors=errors,
            steps=steps,
        )
        with self._lock:
            self._results[transaction_id] = result

        log.info(
            "transaction_finished",
            status=status.value,
            success=result.success,
            duration_ms=round(result.duration.total_seconds() * 1000, 2),
            errors=list(result.errors),
        )
        return result

    def _publish(
        self,
        workflow: Workflow,
        request: BusinessTransactionRequest,
        results: dict[str, Any],
        steps: list[StepRecord],
    ) -> bool:
        # Publishing is fire-and-forget: a failure is logged and noted in the
        # step ledger but never changes the outcome of the transaction.
        try:
            self._publisher.publish(workflow.completion_event(request, results))
        except Exception as exc:
            logger.warning(
                "event_publish_failed",
                transaction_id=request.transaction_id,
                error=str(exc),
            )
            steps.append(StepRecord("publish_event", StepStatus.FAILED, str(exc)))
            return False
        steps.append(StepRecord("publish_event", StepStatus.COMPLETED))
        return True

    def _rejected(
        self,
        request: BusinessTransactionRequest,
        transaction_type: TransactionType | None,
        started_at: datetime,
        message: str,
    ) -> TransactionResult:
        result = TransactionResult.build(
            transaction_id=request.transaction_id,
            transaction_type=transaction_type,
            status=TransactionStatus.FAILED,
            started_at=started_at,
            errors=[message],
        )
        logger.warning(
            "transaction_rejected",
            transaction_id=request.transaction_id,
            transaction_type=request.transaction_type,
            error=message,
        )
        return result
