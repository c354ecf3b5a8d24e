import logging

from fastapi import APIRouter, HTTPException, status, Depends

from ..errors import StorefrontError
from ..models.schemas import AddressCreate, AddressUpdate
from ..services import AddressService
from .deps import success, get_address_service, get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/addresses", tags=["Addresses"])


def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


@router.get("")
def list_addresses(user_id: str = Depends(get_current_user_id),
                         addresses: AddressService = Depends(get_address_service)):
    """Saved addresses, default first"""
    results = addresses.get_addresses(user_id)
    return success(results, total=len(results))


@router.post("", status_code=status.HTTP_201_CREATED)
def add_address(
        request: AddressCreate,
        user_id: str = Depends(get_current_user_id),
        addresses: AddressService = Depends(get_address_service)
):
    try:
        return success(addresses.add_address(user_id, request), message="Address saved")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("save address", e)


@router.patch("/{address_id}")
def update_address(
        address_id: str,
        request: AddressUpdate,
        user_id: str = Depends(get_current_user_id),
        addresses: AddressService = Depends(get_address_service)
):
    try:
        return success(addresses.update_address(user_id, address_id, request), message="Address updated")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("update address", e)


@router.delete("/{address_id}")
def delete_address(
        address_id: str,
        user_id: str = Depends(get_current_user_id),
        addresses: AddressService = Depends(get_address_service)
):
    try:
        addresses.delete_address(user_id, address_id)
        return success(message="Address deleted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("delete address", e)


@router.post("/{address_id}/default")
def set_default_address(
        address_id: str,
        user_id: str = Depends(get_current_user_id),
        addresses: AddressService = Depends(get_address_service)
):
    try:
        return success(addresses.set_default_address(user_id, address_id), message="Default address updated")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("set default address", e)
