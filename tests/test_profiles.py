"""Tests for customer profiles."""

import pytest

from storefront.models.schemas import ProfileUpdate
from storefront.services import ProfileService, AnalyticsService


@pytest.fixture
def profiles(session_factory):
    return ProfileService(session_factory)


def test_first_sighting_creates_profile(profiles, session_factory):
    assert profiles.ensure_profile("user-1")
    assert not profiles.ensure_profile("user-1")
    profiles.ensure_profile("user-2")
    assert AnalyticsService(session_factory).get_dashboard().total_users == 2


def test_update_keeps_unset_fields(profiles):
    profiles.update_profile("user-1", ProfileUpdate(full_name="Asha Rao", email="asha@example.com"))
    profile = profiles.update_profile("user-1", ProfileUpdate(phone="+91 98765 43210"))
    assert (profile.full_name, profile.email, profile.phone) == ("Asha Rao", "asha@example.com", "+91 98765 43210")


def test_unknown_profile(profiles):
    assert profiles.get_profile("nobody") is None


def test_invalid_email():
    with pytest.raises(ValueError):
        ProfileUpdate(email="nope")
