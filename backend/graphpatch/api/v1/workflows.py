"""Workflow API Router.

Endpoints for patching a stored workflow graph, inspecting its health,
auditing its webhook registrations and checking create/update payloads.
Engine errors are mapped to HTTP errors whose ``detail`` carries the
``error_code``, ``message`` and ``details`` of the raised exception.
"""

from __future__ import annotations

from typing import Annotated, Any

import httpx
from fastapi import APIRouter, Body, HTTPException, status

from graphpatch.api.deps import (  # noqa: TC001 - Required at runtime for FastAPI
    Analyzer,
    Inspector,
    Patcher,
)
from graphpatch.core.exceptions import AppError
from graphpatch.core.logging import get_logger
from graphpatch.schemas.operations import parse_operations
from graphpatch.schemas.patch import PatchRequest, PatchResponse
from graphpatch.schemas.validation import PayloadValidationResult, WorkflowReport
from graphpatch.schemas.webhook import WebhookReport
from graphpatch.services.workflow.exceptions import (
    EmptyWorkflowError,
    InvalidOperationError,
    InvalidWorkflowPayloadError,
    NodeNotFoundError,
    PostSaveVerificationError,
    SelectorError,
    StructuralValidationError,
    WorkflowVersionConflictError,
)
from graphpatch.services.workflow.payload import validate_workflow_payload

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Exception to HTTP Status Mapping
# =============================================================================

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (NodeNotFoundError, status.HTTP_404_NOT_FOUND),
    (SelectorError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidOperationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidWorkflowPayloadError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StructuralValidationError, status.HTTP_409_CONFLICT),
    (EmptyWorkflowError, status.HTTP_409_CONFLICT),
    (WorkflowVersionConflictError, status.HTTP_409_CONFLICT),
    (PostSaveVerificationError, status.HTTP_502_BAD_GATEWAY),
)


def map_service_error(exc: Exception) -> HTTPException:
    """Translate an engine or store error into an ``HTTPException``.

    Store responses with status 404 become 404; any other store failure is
    reported as 502.
    """
    if isinstance(exc, AppError):
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                return HTTPException(status_code=status_code, detail=exc.to_dict())
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict())

    if isinstance(exc, httpx.HTTPStatusError):
        upstream = exc.response.status_code
        if upstream == status.HTTP_404_NOT_FOUND:
            return HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "error_code": "WORKFLOW_NOT_FOUND",
                    "message": "Workflow not found in the workflow store",
                    "details": {"upstream_status": upstream},
                },
            )
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error_code": "WORKFLOW_STORE_ERROR",
                "message": f"Workflow store returned {upstream}",
                "details": {"upstream_status": upstream},
            },
        )

    if isinstance(exc, httpx.RequestError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error_code": "WORKFLOW_STORE_UNAVAILABLE",
                "message": f"Workflow store request failed: {exc}",
                "details": {},
            },
        )

    raise exc


# =============================================================================
# Workflow Endpoints
# =============================================================================


@router.post(
    "/{workflow_id}/patch",
    response_model=PatchResponse,
    summary="Patch workflow graph",
    description=(
        "Apply an ordered batch of node and connection operations atomically, "
        "persist once if anything changed, and verify the persisted result."
    ),
)
async def patch_workflow(
    workflow_id: str,
    data: PatchRequest,
    patcher: Patcher,
) -> PatchResponse:
    """Patch a workflow graph.

    Args:
        workflow_id: Workflow identifier in the store.
        data: Operation batch in wire format.
        patcher: Patch engine.

    Returns:
        Structured per-operation outcome.

    Raises:
        HTTPException: 404/409/422/502 depending on the failure.
    """
    try:
        operations = parse_operations(data.operations, max_operations=patcher.max_operations)
        return await patcher.patch(workflow_id, operations)
    except (AppError, httpx.HTTPError) as exc:
        raise map_service_error(exc) from exc


@router.get(
    "/{workflow_id}/inspection",
    response_model=WorkflowReport,
    summary="Inspect workflow",
    description="Report floating nodes, missing credentials, broken connections and untyped nodes.",
)
async def inspect_workflow(
    workflow_id: str,
    inspector: Inspector,
) -> WorkflowReport:
    try:
        return await inspector.inspect(workflow_id)
    except (AppError, httpx.HTTPError) as exc:
        raise map_service_error(exc) from exc


@router.get(
    "/{workflow_id}/webhooks",
    response_model=WebhookReport,
    summary="Audit workflow webhooks",
    description="Derive webhook URLs and check them against registered routes.",
)
async def get_workflow_webhooks(
    workflow_id: str,
    analyzer: Analyzer,
) -> WebhookReport:
    try:
        return await analyzer.analyze(workflow_id)
    except (AppError, httpx.HTTPError) as exc:
        raise map_service_error(exc) from exc


@router.post(
    "/payload-validation",
    response_model=PayloadValidationResult,
    summary="Validate workflow payload",
    description="Check a create/update payload without contacting the workflow store.",
)
async def validate_payload(
    payload: Annotated[dict[str, Any], Body(..., description="Workflow create/update payload")],
) -> PayloadValidationResult:
    try:
        return validate_workflow_payload(payload)
    except InvalidWorkflowPayloadError as exc:
        logger.info(
            f"Rejected workflow payload: {exc.reason}",
            extra={"context": {"error_code": exc.error_code}},
        )
        raise map_service_error(exc) from exc
