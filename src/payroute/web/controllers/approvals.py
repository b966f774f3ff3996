"""Approval API endpoints."""

from fastapi import APIRouter, Depends

from payroute.web.contracts.approvals import ApprovalCheckRequest, ApprovalCheckResponse
from payroute.web.dependencies import get_approval_service
from payroute.web.services.approval_service import ApprovalService

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.post("/check", response_model=ApprovalCheckResponse)
async def check_approval(
    request: ApprovalCheckRequest,
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalCheckResponse:
    """Check token approvals and return the next approval transaction if needed."""
    return await service.check(request)
