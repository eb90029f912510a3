"""
Compliance trail endpoints.

Read-only views of compliance events and audit log entries.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_collaborators
from orchestration import Collaborators


router = APIRouter()


@router.get("/events", summary="List compliance events")
async def list_events(
    event_type: Optional[str] = Query(None, alias="eventType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(100, ge=1, le=1000),
    collaborators: Collaborators = Depends(get_collaborators),
) -> List[Dict[str, Any]]:
    events = collaborators.compliance_log.find_events(event_type=event_type, user_id=user_id)
    return [event.to_dict() for event in events[-limit:]]


@router.get("/audit", summary="List audit log entries")
async def list_audit_entries(
    action: Optional[str] = None,
    status: Optional[str] = None,
    execution_id: Optional[str] = Query(None, alias="executionId"),
    limit: int = Query(100, ge=1, le=1000),
    collaborators: Collaborators = Depends(get_collaborators),
) -> List[Dict[str, Any]]:
    """
    List audit log entries, optionally filtered.
    
    Every workflow invocation has exactly one terminal entry
    (workflow_execution or error_handling) under its executionId.
    """
    entries = collaborators.compliance_log.find_audit(
        action=action, status=status, execution_id=execution_id
    )
    return [entry.to_dict() for entry in entries[-limit:]]
