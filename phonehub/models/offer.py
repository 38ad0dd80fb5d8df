from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Index, Integer, String, and_, or_

from phonehub.database import Base

PROMO_CODE_MAX_LENGTH = 20


def utcnow():
    """Naive UTC timestamp, the representation stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SpecialOffer(Base):
    __tablename__ = "special_offers"
    __table_args__ = (
        # Matches valid_now_clause
        Index("ix_special_offers_validity", "is_active", "valid_from", "valid_until"),
    )

    id = Column(Integer, primary_key=True, index=True)
    promo_code = Column(String(PROMO_CODE_MAX_LENGTH), unique=True, index=True, nullable=False)  # e.g., "SAVE10"

    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    discount = Column(String, nullable=False)  # Display string, e.g. "10% OFF"
    discount_type = Column(String(20), nullable=False, default="percentage")  # percentage | fixed
    discount_value = Column(Float, nullable=False, default=0)
    category = Column(String, nullable=False, index=True)

    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)  # Independent of the validity window

    max_redemptions = Column(Integer, nullable=True)  # Null = unlimited
    current_redemptions = Column(Integer, nullable=False, default=0)

    image = Column(String, nullable=True)
    redemption_steps = Column(JSON, nullable=False, default=list)
    product_details = Column(JSON, nullable=False, default=dict)
    target_products = Column(JSON, nullable=False, default=list)  # Empty = any product

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_expired(self):
        return utcnow() > self.valid_until

    @property
    def is_valid_now(self):
        return is_valid_at(self, utcnow())

    @property
    def remaining_redemptions(self):
        if self.max_redemptions is None:
            return None
        return max(0, self.max_redemptions - (self.current_redemptions or 0))


def is_valid_at(offer, now):
    """The one validity rule: active and inside [valid_from, valid_until], bounds inclusive."""
    return bool(offer.is_active) and offer.valid_from <= now <= offer.valid_until


def valid_now_clause(now):
    """SQL counterpart of is_valid_at, for listings, stats and the redemption update."""
    return and_(
        SpecialOffer.is_active.is_(True),
        SpecialOffer.valid_from <= now,
        SpecialOffer.valid_until >= now,
    )


def below_cap_clause():
    return or_(
        SpecialOffer.max_redemptions.is_(None),
        SpecialOffer.current_redemptions < SpecialOffer.max_redemptions,
    )
