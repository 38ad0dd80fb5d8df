import logging

from phonehub.exceptions import RedemptionLimitReached
from phonehub.models.offer import utcnow
from phonehub.schemas.offer import RedeemResponse
from phonehub.services.offer_store import OfferStore
from phonehub.services.validator import validate_redemption

logger = logging.getLogger(__name__)


def redeem(store: OfferStore, promo_code: str, product_id: str | None = None, now=None) -> RedeemResponse:
    """
    🎟️ Redeem a promo code: validate, then atomically take one redemption slot.

    Validation failures propagate untouched and nothing is written. The increment is
    a single conditional UPDATE; if it loses a race the offer is re-read so the
    caller learns the real reason.
    """
    now = now or utcnow()

    offer = store.get_by_code(promo_code)
    terms = validate_redemption(offer, now, product_id)

    if not store.increment_redemptions(offer.id, now):
        # Someone else changed the offer between our read and our write
        validate_redemption(store.get(offer.id), now, product_id)
        logger.info("Redemption of %s lost the race for the last slot", offer.promo_code)
        raise RedemptionLimitReached("This offer has reached its maximum redemption limit")

    offer = store.get(offer.id)
    logger.info(
        "Promo code %s redeemed (%s/%s)",
        offer.promo_code,
        offer.current_redemptions,
        offer.max_redemptions if offer.max_redemptions is not None else "∞",
    )

    return RedeemResponse(
        message="Promo code applied successfully! 🎉",
        offer=terms,
        remaining_redemptions=offer.remaining_redemptions,
    )
