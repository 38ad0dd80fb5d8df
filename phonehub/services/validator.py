from phonehub.exceptions import (
    OfferInactive,
    OfferNotFound,
    OfferOutOfWindow,
    ProductNotEligible,
    RedemptionLimitReached,
)
from phonehub.schemas.offer import RedemptionTerms


def validate_redemption(offer, now, product_id=None) -> RedemptionTerms:
    """
    Decide whether an offer can be redeemed at `now`. Pure: reads the snapshot, never writes.

    Checks run in order and stop at the first failure:
    1. offer exists                       -> OfferNotFound
    2. offer is active                    -> OfferInactive
    3. now within [valid_from, valid_until] -> OfferOutOfWindow
    4. below max_redemptions (if capped)  -> RedemptionLimitReached
    5. product targeted (if list and product_id given) -> ProductNotEligible

    Returns the discount terms the storefront applies.
    """
    if offer is None:
        raise OfferNotFound("Invalid or expired promo code")

    if not offer.is_active:
        raise OfferInactive("This offer is currently inactive")

    if now < offer.valid_from:
        raise OfferOutOfWindow("This offer is not yet valid")
    if now > offer.valid_until:
        raise OfferOutOfWindow("This offer has expired")

    if offer.max_redemptions is not None and offer.current_redemptions >= offer.max_redemptions:
        raise RedemptionLimitReached("This offer has reached its maximum redemption limit")

    # No product yet means the code is checked before a product is chosen
    if offer.target_products and product_id is not None:
        if str(product_id) not in [str(p) for p in offer.target_products]:
            raise ProductNotEligible("This offer is not applicable to the selected product")

    return RedemptionTerms(
        title=offer.title,
        discount=offer.discount,
        discount_type=offer.discount_type,
        discount_value=offer.discount_value,
        product_details=offer.product_details or {},
    )
