import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..errors import StorefrontError
from ..models.schemas import PartnerRequestCreate, PartnerRequestStatusUpdate
from ..services import PartnerRequestService
from .deps import success, get_partner_service, require_platform_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/partner-requests", tags=["Partners"])


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_partner_request(
        request: PartnerRequestCreate,
        partners: PartnerRequestService = Depends(get_partner_service)
):
    """
    Apply to sell on the platform

    Platform admins are notified of every new request.
    """
    try:
        created = partners.create_request(request)
        return success(created, message="Partner request submitted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error submitting partner request: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit partner request"
        )


@router.get("")
def list_partner_requests(
        request_status: Optional[str] = Query(None, alias="status", pattern="^(pending|approved|rejected)$"),
        _: bool = Depends(require_platform_admin),
        partners: PartnerRequestService = Depends(get_partner_service)
):
    results = partners.list_requests(request_status)
    return success(results, total=len(results))


@router.patch("/{request_id}")
def update_partner_request(
        request_id: str,
        request: PartnerRequestStatusUpdate,
        _: bool = Depends(require_platform_admin),
        partners: PartnerRequestService = Depends(get_partner_service)
):
    try:
        updated = partners.update_status(request_id, request.status)
        return success(updated, message=f"Partner request {request.status}")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error updating partner request {request_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update partner request"
        )
