import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from ..models.database import SessionLocal, UserProfile
from ..models.schemas import ProfileModel, ProfileUpdate

logger = logging.getLogger(__name__)


class ProfileService:
    """
    Customer profiles.

    Identity belongs to the auth provider; a profile row is created the first
    time a user id reaches the API so customers can be counted and named.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def ensure_profile(self, user_id: str) -> bool:
        """
        Create an empty profile for a user id not seen before

        Returns:
            bool: True when a profile was created
        """
        db = self.session_factory()
        try:
            if db.query(UserProfile.id).filter(UserProfile.id == user_id).first():
                return False
            db.add(UserProfile(id=user_id))
            db.commit()
            logger.info(f"Created profile for user {user_id}")
            return True
        except IntegrityError:
            # Another request created it first
            db.rollback()
            return False
        finally:
            db.close()

    def get_profile(self, user_id: str) -> Optional[ProfileModel]:
        db = self.session_factory()
        try:
            profile = db.get(UserProfile, user_id)
            return ProfileModel.model_validate(profile) if profile else None
        finally:
            db.close()

    def update_profile(self, user_id: str, data: ProfileUpdate) -> ProfileModel:
        db = self.session_factory()
        try:
            profile = db.get(UserProfile, user_id)
            if profile is None:
                profile = UserProfile(id=user_id)
                db.add(profile)
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(profile, field, value)
            db.commit()
            db.refresh(profile)
            logger.info(f"Updated profile for user {user_id}")
            return ProfileModel.model_validate(profile)
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating profile for user {user_id}: {e}")
            raise
        finally:
            db.close()
