"""Qualification workflow orchestrator.

Runs the configured step sequence for a supplier strictly in order, bounds
every step with a timeout, honours cooperative cancellation between steps,
persists run and step state, and computes the qualification outcome.
"""

import asyncio
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ConfigurationError,
    RunNotFoundError,
    RunPersistenceError,
    StepExecutionError,
    StepTimeoutError,
    ValidationError,
    WorkflowAlreadyRunningError,
)
from app.repositories.workflow_repository import (
    WorkflowRunRepository,
    WorkflowStepResultRepository,
)
from app.schemas.workflows.request import WorkflowOptions
from app.schemas.workflows.response import WorkflowRunResult
from app.services.base_service import BaseService
from app.services.verification.reasoning_service import FieldReasoningService
from app.services.verification.verification_service import DocumentVerificationService
from app.services.workflow.cancellation import (
    CancellationRegistry,
    CancellationToken,
    cancellation_registry,
)
from app.services.workflow.steps import (
    FAIL,
    STEP_CATALOGUE,
    CompletedStep,
    QualificationSteps,
    StepContext,
    StepDefinition,
    StepOutcome,
    build_step_sequence,
    compute_overall,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

WORKFLOW_TYPE_FULL = "Q1_supplier_qualification"
WORKFLOW_TYPE_SINGLE_STEP = "Q1_single_step"

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
CANCELED = "canceled"


class QualificationWorkflowService(BaseService):
    """Service driving supplier qualification runs.

    Extends BaseService to leverage standardized execution flow; each public
    ``execute_*`` method dispatches through :meth:`run`.
    """

    def __init__(
        self,
        session: AsyncSession,
        reasoning_service: Optional[FieldReasoningService] = None,
        step_timeout_seconds: Optional[float] = None,
        registry: Optional[CancellationRegistry] = None,
        enforce_single_run: Optional[bool] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize the orchestrator with a database session.

        Args:
            session: Async database session for repository access
            reasoning_service: Collaborator for fuzzy field comparisons
            step_timeout_seconds: Per-step wall-clock budget
            registry: Cancellation registry shared with the cancel endpoint
            enforce_single_run: Reject a second full run for a busy supplier
            today: Clock used for document date checks

        Raises:
            ConfigurationError: If the step timeout is not positive
        """
        super().__init__()
        self.session = session
        self.run_repo = WorkflowRunRepository(session)
        self.step_repo = WorkflowStepResultRepository(session)
        self.verification_service = DocumentVerificationService(
            session, reasoning_service, today=today
        )
        self.steps = QualificationSteps(session, self.verification_service)
        self.executors = self.steps.executors()
        self.registry = registry if registry is not None else cancellation_registry
        self.step_timeout_seconds = (
            step_timeout_seconds
            if step_timeout_seconds is not None
            else settings.step_timeout_seconds
        )
        if self.step_timeout_seconds <= 0:
            raise ConfigurationError(
                f"Step timeout must be positive, got {self.step_timeout_seconds}"
            )
        self.enforce_single_run = (
            enforce_single_run
            if enforce_single_run is not None
            else settings.workflow.enforce_single_run
        )

    async def run(self, *args, **kwargs) -> Any:
        """Route to the handler for ``action``."""
        action = kwargs.get("action")

        if action == "run_workflow":
            return await self._run_workflow(
                kwargs["supplier_id"],
                kwargs.get("options") or WorkflowOptions(),
                kwargs.get("cancel_token"),
            )
        elif action == "run_single_step":
            return await self._run_single_step(
                kwargs["supplier_id"],
                kwargs["step_key"],
                kwargs.get("options") or WorkflowOptions(),
            )
        elif action == "cancel":
            return await self._cancel(kwargs["supplier_id"])
        elif action == "get_status":
            return await self._get_status(kwargs["supplier_id"])
        elif action == "get_run":
            return await self._get_run(kwargs["run_id"])
        else:
            raise ValidationError(f"Unknown action: {action}")

    def validate(self, *args, **kwargs):
        action = kwargs.get("action")
        if action in ("run_workflow", "run_single_step", "cancel", "get_status"):
            if not kwargs.get("supplier_id"):
                raise ValidationError("supplier_id is required")
        if action == "run_single_step" and kwargs.get("step_key") not in STEP_CATALOGUE:
            raise ValidationError(f"Unknown step: {kwargs.get('step_key')}")
        if action == "get_run" and not kwargs.get("run_id"):
            raise ValidationError("run_id is required")

    async def execute_run_workflow(
        self,
        supplier_id: UUID,
        options: Optional[WorkflowOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> WorkflowRunResult:
        """Run the full qualification sequence for a supplier.

        Args:
            supplier_id: Supplier to qualify
            options: SOA / White List inclusion and requester
            cancel_token: Optional token to stop the run between steps

        Returns:
            The final run with its ordered steps

        Raises:
            WorkflowAlreadyRunningError: If the supplier already has a run in flight
            RunPersistenceError: If the run or a step result cannot be stored
        """
        return await self.execute(
            action="run_workflow",
            supplier_id=supplier_id,
            options=options,
            cancel_token=cancel_token,
        )

    async def execute_run_single_step(
        self,
        supplier_id: UUID,
        step_key: str,
        options: Optional[WorkflowOptions] = None,
    ) -> WorkflowRunResult:
        """Run one step in an isolated run of its own.

        Raises:
            ValidationError: If ``step_key`` is not a known step
            RunPersistenceError: If the run or step result cannot be stored
        """
        return await self.execute(
            action="run_single_step",
            supplier_id=supplier_id,
            step_key=step_key,
            options=options,
        )

    async def execute_cancel(self, supplier_id: UUID) -> WorkflowRunResult:
        """Cancel the supplier's latest running run.

        Raises:
            RunNotFoundError: If no run is currently running
        """
        return await self.execute(action="cancel", supplier_id=supplier_id)

    async def execute_get_status(self, supplier_id: UUID) -> Optional[WorkflowRunResult]:
        """Latest run for a supplier, full runs preferred over single-step runs."""
        return await self.execute(action="get_status", supplier_id=supplier_id)

    async def execute_get_run(self, run_id: UUID) -> WorkflowRunResult:
        return await self.execute(action="get_run", run_id=run_id)

    async def _run_workflow(
        self,
        supplier_id: UUID,
        options: WorkflowOptions,
        cancel_token: Optional[CancellationToken],
    ) -> WorkflowRunResult:
        token = cancel_token or CancellationToken()
        registered = self.registry.register(supplier_id, token)
        if not registered and self.enforce_single_run:
            raise WorkflowAlreadyRunningError(
                f"A qualification workflow is already running for supplier {supplier_id}"
            )

        try:
            return await self._drive(supplier_id, options, token)
        finally:
            if registered:
                self.registry.release(supplier_id, token)

    async def _drive(
        self,
        supplier_id: UUID,
        options: WorkflowOptions,
        token: CancellationToken,
    ) -> WorkflowRunResult:
        run_id = await self._create_run(supplier_id, WORKFLOW_TYPE_FULL, options.triggered_by)
        sequence = build_step_sequence(options.include_soa)
        ctx = StepContext(
            supplier_id=supplier_id,
            options=options,
            run_id=run_id,
            cancel_token=token,
        )

        LOGGER.info(
            "Qualification workflow started",
            extra={
                "run_id": str(run_id),
                "supplier_id": str(supplier_id),
                "steps": [step.key for step in sequence],
            },
        )

        for step in sequence:
            if await self._cancel_requested(run_id, token):
                LOGGER.info(
                    "Qualification workflow canceled",
                    extra={"run_id": str(run_id), "completed_steps": len(ctx.completed)},
                )
                await self._persist(run_id, self._close_canceled(run_id, token))
                return await self._load(run_id)

            ctx.completed.append(await self._execute_step(run_id, step, ctx))

        overall = compute_overall(ctx.completed)
        notes = [issue for step in ctx.completed if step.status == FAIL for issue in step.issues]

        applied = await self._persist(
            run_id, self.run_repo.finish_run(run_id, COMPLETED, overall=overall, notes=notes)
        )
        if not applied:
            LOGGER.info(
                "Run left running state before completion, keeping persisted status",
                extra={"run_id": str(run_id)},
            )
            await self._persist(run_id, self.run_repo.close_canceled(run_id))
        else:
            LOGGER.info(
                "Qualification workflow completed",
                extra={"run_id": str(run_id), "overall": overall},
            )
        return await self._load(run_id)

    async def _run_single_step(
        self,
        supplier_id: UUID,
        step_key: str,
        options: WorkflowOptions,
    ) -> WorkflowRunResult:
        run_id = await self._create_run(
            supplier_id, WORKFLOW_TYPE_SINGLE_STEP, options.triggered_by
        )
        step = StepDefinition(key=step_key, name=STEP_CATALOGUE[step_key], order_index=1)
        ctx = StepContext(supplier_id=supplier_id, options=options, run_id=run_id)

        await self._execute_step(run_id, step, ctx)
        await self._persist(run_id, self.run_repo.finish_run(run_id, COMPLETED))
        return await self._load(run_id)

    async def _execute_step(
        self, run_id: UUID, step: StepDefinition, ctx: StepContext
    ) -> CompletedStep:
        """Run one step under its timeout and persist the outcome.

        Step failures of any kind become a ``fail`` outcome; only a failure
        to store the outcome escapes, as RunPersistenceError.
        """
        started_at = datetime.now(timezone.utc)
        clock = time.perf_counter()
        LOGGER.info(
            f"Step {step.key} started",
            extra={"run_id": str(run_id), "order_index": step.order_index},
        )

        try:
            outcome = await asyncio.wait_for(
                self._invoke(step, ctx), timeout=self.step_timeout_seconds
            )
        except asyncio.TimeoutError:
            error = StepTimeoutError(step.key, self.step_timeout_seconds)
            LOGGER.warning(
                f"Step {step.key} timed out",
                extra={"run_id": str(run_id), "timeout_seconds": self.step_timeout_seconds},
            )
            # The cancelled step may have left the session mid-transaction
            await self._rollback_quietly()
            outcome = StepOutcome(
                FAIL,
                [str(error)],
                {"error": "timeout", "timeout_seconds": self.step_timeout_seconds},
            )
        except Exception as e:
            LOGGER.error(
                f"Step {step.key} raised: {str(e)}",
                exc_info=True,
                extra={"run_id": str(run_id)},
            )
            cause = e.original_error if isinstance(e, StepExecutionError) and e.original_error else e
            if isinstance(cause, SQLAlchemyError):
                await self._rollback_quietly()
            outcome = StepOutcome(
                FAIL,
                [f"Step execution failed: {str(e)}"],
                {"error": type(cause).__name__},
            )

        ended_at = datetime.now(timezone.utc)
        await self._persist(
            run_id,
            self.step_repo.create_step(
                run_id=run_id,
                step_key=step.key,
                name=step.name,
                status=outcome.status,
                issues=list(outcome.issues),
                details=outcome.details,
                score=outcome.score,
                order_index=step.order_index,
                started_at=started_at,
                ended_at=ended_at,
            ),
        )

        LOGGER.info(
            f"Step {step.key} finished",
            extra={
                "run_id": str(run_id),
                "status": outcome.status,
                "duration_ms": int((time.perf_counter() - clock) * 1000),
            },
        )
        return CompletedStep(step.key, step.name, outcome.status, list(outcome.issues))

    async def _invoke(self, step: StepDefinition, ctx: StepContext) -> StepOutcome:
        # Only wait_for may report a timeout; a TimeoutError from the step itself is a failure
        try:
            return await self.executors[step.key](ctx)
        except asyncio.TimeoutError as e:
            raise StepExecutionError(
                step.key, str(e) or type(e).__name__, original_error=e
            ) from e

    async def _create_run(
        self, supplier_id: UUID, workflow_type: str, triggered_by: Optional[str]
    ) -> UUID:
        try:
            run = await self.run_repo.create_run(supplier_id, workflow_type, triggered_by)
        except SQLAlchemyError as e:
            LOGGER.error(
                "Failed to create workflow run",
                exc_info=True,
                extra={"supplier_id": str(supplier_id), "workflow_type": workflow_type},
            )
            raise RunPersistenceError(f"Failed to create workflow run: {str(e)}", e) from e
        return run.id

    async def _persist(self, run_id: UUID, operation):
        """Await a run-level write; a storage failure fails the run and propagates."""
        try:
            return await operation
        except SQLAlchemyError as e:
            LOGGER.error(
                "Failed to persist workflow state",
                exc_info=True,
                extra={"run_id": str(run_id)},
            )
            await self._mark_failed(run_id, e)
            raise RunPersistenceError(f"Failed to persist workflow state: {str(e)}", e) from e

    async def _mark_failed(self, run_id: UUID, error: Exception) -> None:
        try:
            await self.session.rollback()
            await self.run_repo.finish_run(
                run_id, FAILED, notes=[f"Workflow failed: {str(error)}"]
            )
        except SQLAlchemyError:
            LOGGER.error("Could not mark workflow run as failed", extra={"run_id": str(run_id)})

    async def _cancel_requested(self, run_id: UUID, token: CancellationToken) -> bool:
        if token.cancelled:
            return True
        status = await self._persist(run_id, self.run_repo.get_status(run_id))
        return status == CANCELED

    async def _close_canceled(self, run_id: UUID, token: CancellationToken) -> None:
        # Signalled in-process only: the persisted status still says running
        applied = await self.run_repo.finish_run(
            run_id, CANCELED, notes=[token.reason] if token.reason else None
        )
        if not applied:
            await self.run_repo.close_canceled(run_id)

    async def _rollback_quietly(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            LOGGER.warning("Session rollback failed", exc_info=True)

    async def _load(self, run_id: UUID) -> WorkflowRunResult:
        run = await self.run_repo.get_with_steps(run_id)
        if run is None:
            raise RunNotFoundError(f"Workflow run {run_id} not found")
        return WorkflowRunResult.model_validate(run)

    async def _cancel(self, supplier_id: UUID) -> WorkflowRunResult:
        run = await self.run_repo.get_latest_for_supplier(
            supplier_id,
            [WORKFLOW_TYPE_FULL, WORKFLOW_TYPE_SINGLE_STEP],
            status=RUNNING,
        )
        if run is None:
            raise RunNotFoundError(f"No running workflow found for supplier {supplier_id}")

        await self.run_repo.finish_run(run.id, CANCELED)
        self.registry.cancel(supplier_id)
        LOGGER.info(
            "Workflow run canceled",
            extra={"run_id": str(run.id), "supplier_id": str(supplier_id)},
        )
        return await self._load(run.id)

    async def _get_status(self, supplier_id: UUID) -> Optional[WorkflowRunResult]:
        run = await self.run_repo.get_latest_for_supplier(
            supplier_id, [WORKFLOW_TYPE_FULL, WORKFLOW_TYPE_SINGLE_STEP]
        )
        if run is None:
            return None
        return WorkflowRunResult.model_validate(run)

    async def _get_run(self, run_id: UUID) -> WorkflowRunResult:
        return await self._load(run_id)
