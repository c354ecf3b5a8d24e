from typing import Optional

from sqlalchemy.orm import Session

from ..errors import AuthenticationRequiredError, PermissionDeniedError
from ..models.database import ShopAdmin


def is_shop_admin(db: Session, shop_id: Optional[str], user_id: Optional[str]) -> bool:
    if not shop_id or not user_id:
        return False
    return db.query(ShopAdmin.id).filter(
        ShopAdmin.shop_id == shop_id, ShopAdmin.user_id == user_id
    ).first() is not None


def ensure_shop_admin(db: Session, shop_id: Optional[str], user_id: Optional[str]) -> None:
    """Raise unless user_id administers shop_id"""
    if not user_id:
        raise AuthenticationRequiredError("Sign in to manage a shop")
    if not is_shop_admin(db, shop_id, user_id):
        raise PermissionDeniedError("You do not have permission to manage this shop")
