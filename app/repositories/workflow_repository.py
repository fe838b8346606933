import uuid
from typing import Optional, List, Sequence, Any, Dict
from datetime import datetime, timezone

from sqlalchemy import select, update, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database.models import WorkflowRun, WorkflowStepResult
from app.repositories.base_repository import BaseRepository

RUNNING = "running"


class WorkflowRunRepository(BaseRepository[WorkflowRun]):
    """Repository for managing qualification workflow run records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkflowRun)

    async def create_run(
        self,
        supplier_id: uuid.UUID,
        workflow_type: str,
        triggered_by: Optional[str] = None,
    ) -> WorkflowRun:
        """Create a new run record in the running state.

        Args:
            supplier_id: Supplier being qualified
            workflow_type: Workflow type tag
            triggered_by: Optional user or system that requested the run

        Returns:
            Created WorkflowRun instance
        """
        return await self.create(
            supplier_id=supplier_id,
            workflow_type=workflow_type,
            triggered_by=triggered_by,
            status=RUNNING,
            notes=[],
            started_at=datetime.now(timezone.utc),
        )

    async def get_status(self, run_id: uuid.UUID) -> Optional[str]:
        """Read the persisted status, bypassing the session identity map."""
        result = await self.session.execute(
            select(WorkflowRun.status).where(WorkflowRun.id == run_id)
        )
        return result.scalar_one_or_none()

    async def finish_run(
        self,
        run_id: uuid.UUID,
        status: str,
        overall: Optional[str] = None,
        notes: Optional[List[str]] = None,
    ) -> bool:
        """Move a running run to a terminal status.

        The update only applies while the run is still ``running``, so a run
        that was already canceled or failed is never moved again.

        Args:
            run_id: Workflow run ID
            status: Terminal status (completed | failed | canceled)
            overall: Optional qualification outcome
            notes: Optional replacement notes

        Returns:
            True if the transition was applied
        """
        values: Dict[str, Any] = {
            "status": status,
            "ended_at": datetime.now(timezone.utc),
        }
        if overall is not None:
            values["overall"] = overall
        if notes is not None:
            values["notes"] = notes

        stmt = (
            update(WorkflowRun)
            .where(WorkflowRun.id == run_id, WorkflowRun.status == RUNNING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def close_canceled(self, run_id: uuid.UUID) -> None:
        """Stamp ended_at on a run that was canceled without one."""
        stmt = (
            update(WorkflowRun)
            .where(
                WorkflowRun.id == run_id,
                WorkflowRun.status == "canceled",
                WorkflowRun.ended_at.is_(None),
            )
            .values(ended_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def get_with_steps(self, run_id: uuid.UUID) -> Optional[WorkflowRun]:
        """Load a run together with its ordered steps, refreshing cached state."""
        query = (
            select(WorkflowRun)
            .where(WorkflowRun.id == run_id)
            .options(selectinload(WorkflowRun.steps))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_latest_for_supplier(
        self,
        supplier_id: uuid.UUID,
        workflow_types: Sequence[str],
        status: Optional[str] = None,
    ) -> Optional[WorkflowRun]:
        """Get the most recent run for a supplier.

        Runs are ordered by the position of their type in ``workflow_types``
        first, then newest first.

        Args:
            supplier_id: Supplier ID
            workflow_types: Accepted workflow type tags, in order of preference
            status: Optional status filter

        Returns:
            WorkflowRun with steps loaded, or None
        """
        preference = case(
            {wf_type: idx for idx, wf_type in enumerate(workflow_types)},
            value=WorkflowRun.workflow_type,
        )
        query = (
            select(WorkflowRun)
            .where(
                WorkflowRun.supplier_id == supplier_id,
                WorkflowRun.workflow_type.in_(list(workflow_types)),
            )
            .options(selectinload(WorkflowRun.steps))
            .order_by(preference, WorkflowRun.started_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if status:
            query = query.where(WorkflowRun.status == status)

        result = await self.session.execute(query)
        return result.scalars().first()


class WorkflowStepResultRepository(BaseRepository[WorkflowStepResult]):
    """Repository for managing per-step results of a workflow run."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkflowStepResult)

    async def create_step(
        self,
        run_id: uuid.UUID,
        step_key: str,
        name: str,
        status: str,
        issues: List[str],
        details: Dict[str, Any],
        score: Optional[int],
        order_index: int,
        started_at: datetime,
        ended_at: datetime,
    ) -> WorkflowStepResult:
        """Persist a finished step.

        Returns:
            Created WorkflowStepResult instance
        """
        return await self.create(
            run_id=run_id,
            step_key=step_key,
            name=name,
            status=status,
            issues=issues,
            details=details,
            score=score,
            order_index=order_index,
            started_at=started_at,
            ended_at=ended_at,
        )
