"""
Domain errors raised by storefront services and rendered by the API layer
"""


class StorefrontError(Exception):
    """Base class for storefront rule violations"""
    status_code = 400
    error = "Storefront Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(StorefrontError):
    status_code = 400
    error = "Invalid Request"


class AuthenticationRequiredError(StorefrontError):
    status_code = 401
    error = "Authentication Required"


class PermissionDeniedError(StorefrontError):
    status_code = 403
    error = "Permission Denied"


class NotFoundError(StorefrontError):
    status_code = 404
    error = "Not Found"


class StockLimitError(StorefrontError):
    """Requested quantity exceeds available stock"""
    status_code = 409
    error = "Stock Limit Reached"


class PaymentError(StorefrontError):
    status_code = 502
    error = "Payment Error"
