import logging

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from phonehub.exceptions import DuplicatePromoCode
from phonehub.models.offer import SpecialOffer, below_cap_clause, valid_now_clause

logger = logging.getLogger(__name__)


class OfferStore:
    """Persistence for special offers. One instance per request session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, offer_id: int) -> SpecialOffer | None:
        return self.db.query(SpecialOffer).filter(SpecialOffer.id == offer_id).first()

    def get_by_code(self, promo_code: str) -> SpecialOffer | None:
        code = promo_code.strip().upper()
        return self.db.query(SpecialOffer).filter(SpecialOffer.promo_code == code).first()

    def _filtered(self, is_active=None, category=None, valid_at=None):
        query = self.db.query(SpecialOffer)
        if is_active is not None:
            query = query.filter(SpecialOffer.is_active == is_active)
        if category:
            query = query.filter(SpecialOffer.category == category)
        if valid_at is not None:
            query = query.filter(valid_now_clause(valid_at))
        return query

    def list_offers(self, is_active=None, category=None, valid_at=None, skip=0, limit=50) -> list[SpecialOffer]:
        """Newest first; offers created in the same instant fall back to id order."""
        return (
            self._filtered(is_active, category, valid_at)
            .order_by(SpecialOffer.created_at.desc(), SpecialOffer.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_offers(self, is_active=None, category=None, valid_at=None) -> int:
        return self._filtered(is_active, category, valid_at).count()

    def create(self, data: dict) -> SpecialOffer:
        offer = SpecialOffer(**data, current_redemptions=0)
        self.db.add(offer)
        self._commit(offer.promo_code)
        self.db.refresh(offer)
        return offer

    def update(self, offer: SpecialOffer, changes: dict) -> SpecialOffer:
        for field, value in changes.items():
            setattr(offer, field, value)
        self._commit(offer.promo_code)
        self.db.refresh(offer)
        return offer

    def set_active(self, offer: SpecialOffer, is_active: bool) -> SpecialOffer:
        offer.is_active = is_active
        self.db.commit()
        self.db.refresh(offer)
        return offer

    def delete(self, offer: SpecialOffer) -> None:
        self.db.delete(offer)
        self.db.commit()

    def increment_redemptions(self, offer_id: int, now) -> bool:
        """
        🔐 ATOMIC OPERATION: bump current_redemptions by one, only while the offer is
        still valid at `now` and below its cap. The guard and the increment are a single
        UPDATE, so concurrent redemptions can never overshoot max_redemptions.

        Returns True when the row was updated.
        """
        updated = (
            self.db.query(SpecialOffer)
            .filter(SpecialOffer.id == offer_id, valid_now_clause(now), below_cap_clause())
            .update(
                {SpecialOffer.current_redemptions: SpecialOffer.current_redemptions + 1},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def stats(self, now) -> dict:
        """Dashboard counts in one aggregate query."""
        total, active, expired, valid = self.db.query(
            func.count(SpecialOffer.id),
            func.coalesce(func.sum(case((SpecialOffer.is_active.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((SpecialOffer.valid_until < now, 1), else_=0)), 0),
            func.coalesce(func.sum(case((valid_now_clause(now), 1), else_=0)), 0),
        ).one()
        return {"total": total, "active": int(active), "expired": int(expired), "valid": int(valid)}

    def _commit(self, promo_code):
        # The unique index on promo_code is the final word on duplicates
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if not is_promo_code_collision(e):
                raise
            logger.info("Rejected duplicate promo code %s", promo_code)
            raise DuplicatePromoCode(promo_code)


def is_promo_code_collision(error: IntegrityError) -> bool:
    """Unique violation on promo_code, as worded by SQLite or PostgreSQL."""
    message = str(error.orig).lower()
    return "promo_code" in message and ("unique" in message or "duplicate" in message)
