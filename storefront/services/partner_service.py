import logging
from typing import List, Optional

from sqlalchemy import desc

from ..errors import StorefrontError, NotFoundError, InvalidRequestError
from ..models.database import SessionLocal, PartnerRequest
from ..models.schemas import PartnerRequestCreate, PartnerRequestModel
from ..models.converters import partner_request_to_model
from .notification_service import NotificationService
from .realtime import change_feed

logger = logging.getLogger(__name__)


class PartnerRequestService:
    """Businesses asking to sell on the platform"""

    def __init__(self, session_factory=SessionLocal, notification_service: Optional[NotificationService] = None,
                 feed=change_feed):
        self.session_factory = session_factory
        self.notification_service = notification_service or NotificationService(session_factory, feed=feed)
        self.feed = feed

    def create_request(self, data: PartnerRequestCreate) -> PartnerRequestModel:
        db = self.session_factory()
        try:
            request = PartnerRequest(**data.model_dump(), status="pending")
            db.add(request)
            db.commit()
            db.refresh(request)
            result = partner_request_to_model(request)
            logger.info(f"Partner request {request.id} from {request.business_name}")
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating partner request for {data.business_name}: {e}")
            raise
        finally:
            db.close()

        self.notification_service.notify_partner_request(result.business_name, result.id)
        return result

    def list_requests(self, status: Optional[str] = None) -> List[PartnerRequestModel]:
        db = self.session_factory()
        try:
            q = db.query(PartnerRequest)
            if status:
                q = q.filter(PartnerRequest.status == status)
            return [partner_request_to_model(r) for r in q.order_by(desc(PartnerRequest.created_at)).all()]
        except Exception as e:
            logger.error(f"Error listing partner requests: {e}")
            return []
        finally:
            db.close()

    def update_status(self, request_id: str, status: str) -> PartnerRequestModel:
        """Approve or reject a pending request"""
        db = self.session_factory()
        try:
            request = db.query(PartnerRequest).filter(PartnerRequest.id == request_id).first()
            if not request:
                raise NotFoundError(f"Partner request {request_id} not found")
            if request.status != "pending":
                raise InvalidRequestError(f"Partner request is already {request.status}")
            request.status = status
            db.commit()
            db.refresh(request)
            logger.info(f"Partner request {request_id} {status}")
            return partner_request_to_model(request)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating partner request {request_id}: {e}")
            raise
        finally:
            db.close()
