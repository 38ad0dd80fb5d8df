"""Exception classes for the special offers service.

Every error carries the HTTP status it maps to and a short machine code so
the request boundary can turn it into a structured JSON response.
"""

from typing import Any, Dict, List, Optional


class PhoneHubError(Exception):
    """Base exception class for all service errors."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class OfferValidationError(PhoneHubError):
    """Raised for missing or malformed fields, bad JSON sub-objects and bad date ordering."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class DuplicatePromoCode(PhoneHubError):
    status_code = 400
    code = "DUPLICATE_KEY"

    def __init__(self, promo_code: str) -> None:
        super().__init__(
            "Promo code already exists. Please use a different code.",
            {"promoCode": promo_code},
        )


class OfferNotFound(PhoneHubError):
    status_code = 404
    code = "NOT_FOUND"


class RedemptionError(PhoneHubError):
    """Base class for redemption-time failures of an existing offer."""

    status_code = 400


class OfferInactive(RedemptionError):
    code = "INACTIVE"


class OfferOutOfWindow(RedemptionError):
    code = "OUT_OF_WINDOW"


class RedemptionLimitReached(RedemptionError):
    code = "REDEMPTION_LIMIT_REACHED"


class ProductNotEligible(RedemptionError):
    code = "PRODUCT_NOT_ELIGIBLE"
