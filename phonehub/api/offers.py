"""
🎁 SPECIAL OFFERS API
Admin management of promo offers plus the public storefront view and redemption.
Admin routes require a verified Google ID token whose email is in ADMIN_EMAILS.
"""

import json
import logging

from fastapi import APIRouter, Body, Depends, File, Form, Query, Response, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from phonehub.database import get_db
from phonehub.dependencies import require_admin
from phonehub.exceptions import DuplicatePromoCode, OfferNotFound, OfferValidationError, RedemptionError
from phonehub.models.offer import utcnow
from phonehub.schemas.offer import (
    MessageResponse,
    OfferCreate,
    OfferEnvelope,
    OfferResponse,
    OfferStatsResponse,
    OfferUpdate,
    PublicOfferResponse,
    PublicOffersResponse,
    RedeemRequest,
    RedeemResponse,
    ToggleStatusRequest,
    validation_messages,
)
from phonehub.services.images import ImageStorage, get_image_storage
from phonehub.services.offer_store import OfferStore
from phonehub.services.redemption import redeem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/special-offers", tags=["special-offers"])

REQUIRED_FIELDS = ("title", "description", "discount", "validFrom", "validUntil", "category", "promoCode")
JSON_FIELDS = ("redemptionSteps", "productDetails", "targetProducts")

# The storefront's brand filter sends this when nothing is selected
ALL_BRANDS = "All Brands"


def offer_form(
    title: str | None = Form(None),
    description: str | None = Form(None),
    discount: str | None = Form(None),
    discount_type: str | None = Form(None, alias="discountType"),
    discount_value: str | None = Form(None, alias="discountValue"),
    valid_from: str | None = Form(None, alias="validFrom"),
    valid_until: str | None = Form(None, alias="validUntil"),
    category: str | None = Form(None),
    promo_code: str | None = Form(None, alias="promoCode"),
    is_active: str | None = Form(None, alias="isActive"),
    redemption_steps: str | None = Form(None, alias="redemptionSteps"),
    product_details: str | None = Form(None, alias="productDetails"),
    max_redemptions: str | None = Form(None, alias="maxRedemptions"),
    target_products: str | None = Form(None, alias="targetProducts"),
) -> dict:
    """Collect the multipart fields that were actually supplied, keyed by their wire names."""
    raw = {
        "title": title,
        "description": description,
        "discount": discount,
        "discountType": discount_type,
        "discountValue": discount_value,
        "validFrom": valid_from,
        "validUntil": valid_until,
        "category": category,
        "promoCode": promo_code,
        "isActive": is_active,
        "redemptionSteps": redemption_steps,
        "productDetails": product_details,
        "maxRedemptions": max_redemptions,
        "targetProducts": target_products,
    }
    return {k: v for k, v in raw.items() if v is not None and v.strip() != ""}


def decode_json_fields(fields: dict) -> dict:
    payload = dict(fields)
    for name in JSON_FIELDS:
        if name in payload:
            try:
                payload[name] = json.loads(payload[name])
            except json.JSONDecodeError:
                raise OfferValidationError("Invalid JSON data in request", [f"{name}: must be valid JSON"])
    return payload


def offer_columns(data: OfferCreate | OfferUpdate, partial: bool = False) -> dict:
    """Schema -> column values. Product details are stored with their camelCase keys."""
    values = data.model_dump(exclude_unset=partial, exclude={"product_details"})
    if not partial or "product_details" in data.model_fields_set:
        values["product_details"] = data.product_details.model_dump(by_alias=True, exclude_none=True)
    return values


def parse_payload(schema, fields: dict):
    try:
        return schema.model_validate(decode_json_fields(fields))
    except ValidationError as e:
        errors = validation_messages(e)
        raise OfferValidationError("Validation error: " + ", ".join(errors), errors)


def get_offer_or_404(store: OfferStore, offer_id: int):
    offer = store.get(offer_id)
    if not offer:
        raise OfferNotFound("Special offer not found")
    return offer


def has_file(image: UploadFile | None) -> bool:
    return image is not None and bool(image.filename)


# --- Public & listing routes (static paths first so they win over /{offer_id}) ---


@router.get("/public/active", response_model=PublicOffersResponse)
def list_public_offers(
    category: str | None = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """🛍️ Offers a customer can use right now: active and inside the validity window."""
    if category == ALL_BRANDS:
        category = None

    offers = OfferStore(db).list_offers(category=category, valid_at=utcnow(), limit=limit)
    return PublicOffersResponse(offers=[PublicOfferResponse.model_validate(o) for o in offers])


@router.get("/stats", response_model=OfferStatsResponse)
def offer_stats(admin: str = Depends(require_admin), db: Session = Depends(get_db)):
    """📊 Dashboard counts: total, active, expired, currently valid."""
    return OfferStatsResponse(stats=OfferStore(db).stats(utcnow()))


@router.post("/redeem/{promo_code}", response_model=RedeemResponse)
def redeem_promo_code(
    promo_code: str,
    body: RedeemRequest | None = Body(None),
    db: Session = Depends(get_db),
):
    """
    🎟️ Redeem a promo code.

    Example:
    POST /api/special-offers/redeem/SAVE10
    {"productId": "64f0c2..."}
    """
    product_id = body.product_id if body else None
    try:
        return redeem(OfferStore(db), promo_code, product_id)
    except (OfferNotFound, RedemptionError) as e:
        logger.info("Redemption of %s rejected: %s", promo_code.upper(), e.code)
        raise


@router.get("", response_model=list[OfferResponse])
def list_offers(
    response: Response,
    status: str | None = Query(None, pattern="^(active|inactive)$"),
    category: str | None = None,
    valid_now: bool | None = Query(None, alias="validNow"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """📋 Offers newest first, filtered by status, category and current validity."""
    is_active = None if status is None else status == "active"
    if category == ALL_BRANDS:
        category = None
    valid_at = utcnow() if valid_now else None

    store = OfferStore(db)
    offers = store.list_offers(is_active, category, valid_at, skip=(page - 1) * limit, limit=limit)
    response.headers["X-Total-Count"] = str(store.count_offers(is_active, category, valid_at))

    return [OfferResponse.model_validate(o) for o in offers]


@router.get("/{offer_id}", response_model=OfferEnvelope)
def get_offer(offer_id: int, db: Session = Depends(get_db)):
    offer = get_offer_or_404(OfferStore(db), offer_id)
    return OfferEnvelope(offer=OfferResponse.model_validate(offer))


# --- Admin routes ---


@router.post("", status_code=201, response_model=OfferEnvelope)
def create_offer(
    fields: dict = Depends(offer_form),
    image: UploadFile | None = File(None),
    admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
    images: ImageStorage = Depends(get_image_storage),
):
    """
    🎉 Create a new special offer (multipart form).

    redemptionSteps, productDetails and targetProducts are JSON-encoded strings.
    """
    missing = [f for f in REQUIRED_FIELDS if f not in fields]
    if missing:
        raise OfferValidationError(
            "Please fill in all required fields",
            [f"{f}: Field required" for f in missing],
        )

    data = parse_payload(OfferCreate, fields)

    store = OfferStore(db)
    if store.get_by_code(data.promo_code):
        raise DuplicatePromoCode(data.promo_code)

    values = offer_columns(data)
    values["image"] = images.save(image) if has_file(image) else None

    try:
        offer = store.create(values)
    except Exception:
        images.delete(values["image"])
        raise

    logger.info("Special offer %s created by %s (id=%s)", offer.promo_code, admin, offer.id)
    return OfferEnvelope(
        message="Special offer created successfully! 🎉",
        offer=OfferResponse.model_validate(offer),
    )


@router.put("/{offer_id}", response_model=OfferEnvelope)
def update_offer(
    offer_id: int,
    fields: dict = Depends(offer_form),
    image: UploadFile | None = File(None),
    admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
    images: ImageStorage = Depends(get_image_storage),
):
    """✏️ Partial update: only supplied fields are validated and replaced."""
    store = OfferStore(db)
    offer = get_offer_or_404(store, offer_id)

    changes = offer_columns(parse_payload(OfferUpdate, fields), partial=True)

    # Window is checked on the merged pair so one-sided edits can't invert it
    if "valid_from" in changes or "valid_until" in changes:
        valid_from = changes.get("valid_from", offer.valid_from)
        valid_until = changes.get("valid_until", offer.valid_until)
        if valid_from >= valid_until:
            raise OfferValidationError("Valid Until date must be after Valid From date")

    if "max_redemptions" in changes and changes["max_redemptions"] < offer.current_redemptions:
        raise OfferValidationError("Maximum redemptions cannot be lower than current redemptions")

    if "promo_code" in changes and changes["promo_code"] != offer.promo_code:
        duplicate = store.get_by_code(changes["promo_code"])
        if duplicate and duplicate.id != offer.id:
            raise DuplicatePromoCode(changes["promo_code"])

    old_image = offer.image
    if has_file(image):
        changes["image"] = images.save(image)

    try:
        offer = store.update(offer, changes)
    except Exception:
        images.delete(changes.get("image"))
        raise

    if "image" in changes and old_image:
        images.delete(old_image)

    logger.info("Special offer %s updated by %s (fields: %s)", offer.id, admin, ", ".join(sorted(changes)))
    return OfferEnvelope(
        message="Special offer updated successfully! 🎉",
        offer=OfferResponse.model_validate(offer),
    )


@router.patch("/{offer_id}/toggle-status", response_model=OfferEnvelope)
def toggle_offer_status(
    offer_id: int,
    body: ToggleStatusRequest | None = Body(None),
    admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    🔁 Flip isActive. A body of {"isActive": bool} sets the value explicitly instead.
    Nothing else on the offer is touched.
    """
    store = OfferStore(db)
    offer = get_offer_or_404(store, offer_id)

    is_active = body.is_active if body and body.is_active is not None else not offer.is_active
    offer = store.set_active(offer, is_active)

    logger.info("Special offer %s %s by %s", offer.id, "activated" if is_active else "deactivated", admin)
    return OfferEnvelope(
        message=f"Offer {'activated' if is_active else 'deactivated'} successfully! 🎉",
        offer=OfferResponse.model_validate(offer),
    )


@router.delete("/{offer_id}", response_model=MessageResponse)
def delete_offer(
    offer_id: int,
    admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
    images: ImageStorage = Depends(get_image_storage),
):
    """🗑️ Delete an offer (hard delete) and, best-effort, its image."""
    store = OfferStore(db)
    offer = get_offer_or_404(store, offer_id)
    image = offer.image

    store.delete(offer)
    images.delete(image)

    logger.info("Special offer %s deleted by %s", offer_id, admin)
    return MessageResponse(message="Special offer deleted successfully! 🎉")
