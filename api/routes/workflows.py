"""
Workflow invocation endpoints.

Adapts HTTP requests to workflow inputs and executor results to HTTP
responses. Failures keep the executor's envelope; the status code comes
from the error kind.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from api.dependencies import get_collaborators, get_executor
from orchestration import Collaborators, WorkflowError, WorkflowExecutor


router = APIRouter()


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    summary="List workflows",
)
async def list_workflows(
    executor: WorkflowExecutor = Depends(get_executor),
) -> List[Dict[str, Any]]:
    """
    List every registered workflow with its schemas and steps.
    """
    return [definition.describe() for definition in executor.registry]


@router.post(
    "/{workflow_name}",
    status_code=status.HTTP_200_OK,
    summary="Execute a workflow",
    description="""
    Validate the body against the workflow's input schema and run its
    effect pipeline (persist, ledger call, aggregate updates, compliance event).
    
    Returns {"success": true, "outputs": {...}} or
    {"success": false, "errorKind", "message", "details"?}.
    """,
)
async def execute_workflow(
    workflow_name: str,
    inputs: Any = Body(...),
    executor: WorkflowExecutor = Depends(get_executor),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """
    Execute a workflow by name.
    
    Args:
        workflow_name: Registered workflow name
        inputs: Workflow input payload
    
    Returns:
        Invocation envelope
    """
    try:
        result = await executor.execute(workflow_name, inputs, collaborators)
    except WorkflowError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_response())
    
    return result.to_response()
