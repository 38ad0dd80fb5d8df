"""Offer schemas for API validation.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from phonehub.models.offer import PROMO_CODE_MAX_LENGTH


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ProductDetails(CamelModel):
    """Snapshot of the product an offer advertises."""

    name: str | None = None
    price: float | None = Field(default=None, ge=0)
    discounted_price: float | None = Field(default=None, ge=0)
    original_price: float | None = Field(default=None, ge=0)
    specs: str | None = None


class OfferFields(CamelModel):
    """Shared normalisation for create and update payloads."""

    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    @field_validator("promo_code", check_fields=False)
    @classmethod
    def upper_promo_code(cls, v):
        return v.upper() if v is not None else v

    @field_validator("valid_from", "valid_until", check_fields=False)
    @classmethod
    def to_naive_utc(cls, v):
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @field_validator("redemption_steps", check_fields=False)
    @classmethod
    def drop_blank_steps(cls, v):
        return [step for step in v if step.strip()] if v is not None else v

    @field_validator("target_products", mode="before", check_fields=False)
    @classmethod
    def product_ids_as_strings(cls, v):
        if isinstance(v, list):
            return [str(p) for p in v]
        return v


class OfferCreate(OfferFields):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    discount: str = Field(..., min_length=1)
    discount_type: DiscountType = Field(default=DiscountType.PERCENTAGE, validate_default=True)
    discount_value: float = Field(default=0, ge=0)
    valid_from: datetime
    valid_until: datetime
    category: str = Field(..., min_length=1)
    promo_code: str = Field(..., min_length=1, max_length=PROMO_CODE_MAX_LENGTH)
    is_active: bool = True
    redemption_steps: list[str] = []
    product_details: ProductDetails = ProductDetails()
    max_redemptions: int | None = Field(default=None, ge=1)
    target_products: list[str] = []

    @model_validator(mode="after")
    def check_window(self):
        if self.valid_from >= self.valid_until:
            raise ValueError("Valid Until date must be after Valid From date")
        return self


class OfferUpdate(OfferFields):
    """Partial update: only fields that were supplied are set."""

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=500)
    discount: str | None = Field(default=None, min_length=1)
    discount_type: DiscountType | None = None
    discount_value: float | None = Field(default=None, ge=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    category: str | None = Field(default=None, min_length=1)
    promo_code: str | None = Field(default=None, min_length=1, max_length=PROMO_CODE_MAX_LENGTH)
    is_active: bool | None = None
    redemption_steps: list[str] | None = None
    product_details: ProductDetails | None = None
    max_redemptions: int | None = Field(default=None, ge=1)
    target_products: list[str] | None = None

    @field_validator("redemption_steps", "product_details", "target_products", mode="before")
    @classmethod
    def reject_null(cls, v):
        # Leaving a field out keeps the stored value; an explicit null is an error
        if v is None:
            raise ValueError("must not be null")
        return v


class OfferResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    discount: str
    discount_type: DiscountType
    discount_value: float
    valid_from: datetime
    valid_until: datetime
    category: str
    promo_code: str
    image: str | None = None
    is_active: bool
    redemption_steps: list[str] = []
    product_details: ProductDetails = ProductDetails()
    max_redemptions: int | None = None
    current_redemptions: int = 0
    target_products: list[str] = []
    created_at: datetime
    updated_at: datetime

    # Derived, never stored
    is_expired: bool
    is_valid_now: bool
    remaining_redemptions: int | None = None


class PublicOfferResponse(CamelModel):
    """Customer-safe view: no counters, no admin fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    discount: str
    category: str
    image: str | None = None
    valid_until: datetime
    promo_code: str
    product_details: ProductDetails = ProductDetails()


class OfferEnvelope(CamelModel):
    success: bool = True
    message: str | None = None
    offer: OfferResponse


class PublicOffersResponse(CamelModel):
    success: bool = True
    offers: list[PublicOfferResponse]


class OfferStats(CamelModel):
    total: int
    active: int
    expired: int
    valid: int


class OfferStatsResponse(CamelModel):
    success: bool = True
    stats: OfferStats


class ToggleStatusRequest(CamelModel):
    is_active: bool | None = None


class RedeemRequest(CamelModel):
    product_id: str | None = None

    @field_validator("product_id", mode="before")
    @classmethod
    def product_id_as_string(cls, v):
        return str(v) if isinstance(v, int) else v


class RedemptionTerms(CamelModel):
    """What the storefront needs to apply a redeemed discount."""

    title: str
    discount: str
    discount_type: DiscountType
    discount_value: float
    product_details: ProductDetails = ProductDetails()


class RedeemResponse(CamelModel):
    success: bool = True
    message: str
    offer: RedemptionTerms
    remaining_redemptions: int | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


def validation_messages(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into 'field: message' strings."""
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages
