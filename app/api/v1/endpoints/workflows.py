from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session as get_session
from app.core.exceptions import (
    AppError,
    RunNotFoundError,
    ValidationError,
    WorkflowAlreadyRunningError,
)
from app.schemas.workflows import (
    ApiResponse,
    CancelWorkflowRequest,
    RunSingleStepRequest,
    StartWorkflowRequest,
    WorkflowOptions,
)
from app.services.verification.reasoning_service import FieldReasoningService
from app.services.workflow.orchestrator import QualificationWorkflowService
from app.utils.logging import get_logger
from app.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()

ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Invalid Request"),
    (RunNotFoundError, status.HTTP_404_NOT_FOUND, "Workflow Run Not Found"),
    (WorkflowAlreadyRunningError, status.HTTP_409_CONFLICT, "Workflow Already Running"),
)


def get_reasoning_service(request: Request) -> Optional[FieldReasoningService]:
    return getattr(request.app.state, "reasoning_service", None)


async def get_workflow_service(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    reasoning_service: Annotated[Optional[FieldReasoningService], Depends(get_reasoning_service)],
) -> QualificationWorkflowService:
    return QualificationWorkflowService(db_session, reasoning_service=reasoning_service)


def _http_error(request: Request, error: AppError) -> HTTPException:
    """Translate a service error into an RFC 7807 style HTTPException."""
    code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Workflow Operation Failed"
    for error_type, error_code, error_title in ERROR_STATUS:
        if isinstance(error, error_type):
            code, title = error_code, error_title
            break

    if code >= 500:
        LOGGER.error(f"{title}: {error}", exc_info=True)

    detail = create_error_detail(title=title, status=code, detail=str(error), request=request)
    return HTTPException(status_code=code, detail=detail.model_dump(mode="json"))


@router.post(
    "/start",
    response_model=ApiResponse,
    summary="Run the full qualification workflow",
    operation_id="start_qualification_workflow",
)
async def start_workflow(
    request: Request,
    payload: StartWorkflowRequest,
    workflow_service: Annotated[QualificationWorkflowService, Depends(get_workflow_service)],
) -> ApiResponse:
    """Run every configured step for a supplier and return the finished run."""
    options = WorkflowOptions(
        include_soa=payload.include_soa,
        include_white_list=payload.include_white_list,
        triggered_by=payload.triggered_by,
    )
    try:
        result = await workflow_service.execute_run_workflow(payload.supplier_id, options)
    except AppError as e:
        raise _http_error(request, e)

    return create_api_response(
        data={"run": result},
        message=f"Workflow {result.status}",
        request=request,
    )


@router.post(
    "/steps/run",
    response_model=ApiResponse,
    summary="Run or retry a single step",
    operation_id="run_single_workflow_step",
)
async def run_single_step(
    request: Request,
    payload: RunSingleStepRequest,
    workflow_service: Annotated[QualificationWorkflowService, Depends(get_workflow_service)],
) -> ApiResponse:
    """Run one step in an isolated run, without touching earlier runs."""
    options = WorkflowOptions(
        include_white_list=payload.include_white_list,
        triggered_by=payload.triggered_by,
    )
    try:
        result = await workflow_service.execute_run_single_step(
            payload.supplier_id, payload.step_key, options
        )
    except AppError as e:
        raise _http_error(request, e)

    return create_api_response(
        data={"run": result},
        message=f"Step {payload.step_key} executed",
        request=request,
    )


@router.post(
    "/cancel",
    response_model=ApiResponse,
    summary="Cancel the running workflow of a supplier",
    operation_id="cancel_qualification_workflow",
)
async def cancel_workflow(
    request: Request,
    payload: CancelWorkflowRequest,
    workflow_service: Annotated[QualificationWorkflowService, Depends(get_workflow_service)],
) -> ApiResponse:
    try:
        result = await workflow_service.execute_cancel(payload.supplier_id)
    except AppError as e:
        raise _http_error(request, e)

    return create_api_response(
        data={"run": result},
        message="Workflow canceled",
        request=request,
    )


@router.get(
    "/status",
    response_model=ApiResponse,
    summary="Latest workflow run of a supplier",
    operation_id="get_qualification_workflow_status",
)
async def get_workflow_status(
    request: Request,
    supplier_id: Annotated[UUID, Query(..., description="Supplier ID")],
    workflow_service: Annotated[QualificationWorkflowService, Depends(get_workflow_service)],
) -> ApiResponse:
    """Latest run with ordered steps; full runs take precedence over single-step runs."""
    try:
        result = await workflow_service.execute_get_status(supplier_id)
    except AppError as e:
        raise _http_error(request, e)

    return create_api_response(
        data={"run": result},
        message="Workflow status retrieved" if result else "No workflow runs found",
        request=request,
    )


@router.get(
    "/runs/{run_id}",
    response_model=ApiResponse,
    summary="Get a workflow run",
    operation_id="get_qualification_workflow_run",
)
async def get_workflow_run(
    request: Request,
    run_id: UUID,
    workflow_service: Annotated[QualificationWorkflowService, Depends(get_workflow_service)],
) -> ApiResponse:
    try:
        result = await workflow_service.execute_get_run(run_id)
    except AppError as e:
        raise _http_error(request, e)

    return create_api_response(
        data={"run": result},
        message="Workflow run retrieved",
        request=request,
    )
