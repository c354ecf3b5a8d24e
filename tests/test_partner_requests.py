"""Tests for partner requests from prospective sellers."""

import pytest

from storefront.errors import InvalidRequestError, NotFoundError
from storefront.models.schemas import PartnerRequestCreate
from storefront.services import PartnerRequestService, NotificationService


def make_request(**overrides):
    data = {
        "business_name": "Cotton Co", "contact_name": "Ravi", "mobile_number": "+91 98765 43210",
        "email": "ravi@cotton.example.com",
    }
    data.update(overrides)
    return PartnerRequestCreate(**data)


@pytest.fixture
def partners(session_factory, feed):
    return PartnerRequestService(session_factory, feed=feed)


class TestPartnerRequests:
    """Test submitting and reviewing partner requests."""

    def test_submit_notifies_admins(self, partners, session_factory):
        request = partners.create_request(make_request())
        assert request.status == "pending"
        admin = NotificationService(session_factory).get_notifications("admin")
        assert admin[0].link == f"/admin/partner-requests/{request.id}"

    @pytest.mark.parametrize("field,value", [("email", "nope"), ("mobile_number", "123")])
    def test_contact_details_are_validated(self, field, value):
        with pytest.raises(ValueError):
            make_request(**{field: value})

    def test_approve_once(self, partners):
        request = partners.create_request(make_request())
        assert partners.update_status(request.id, "approved").status == "approved"
        with pytest.raises(InvalidRequestError, match="already approved"):
            partners.update_status(request.id, "rejected")

    def test_unknown_request(self, partners):
        with pytest.raises(NotFoundError):
            partners.update_status("nope", "approved")

    def test_list_by_status(self, partners):
        first = partners.create_request(make_request())
        partners.create_request(make_request(business_name="Gadget Hub"))
        partners.update_status(first.id, "rejected")
        assert [r.business_name for r in partners.list_requests("pending")] == ["Gadget Hub"]
        assert len(partners.list_requests()) == 2
