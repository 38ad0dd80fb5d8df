"""Tests for OfferStore queries, uniqueness and the conditional increment."""

from datetime import timedelta

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from phonehub.exceptions import DuplicatePromoCode
from phonehub.models.offer import SpecialOffer, utcnow
from phonehub.services.offer_store import OfferStore


def offer_values(**overrides):
    now = utcnow()
    values = {
        "title": "Water Damage Check",
        "description": "Free diagnostics with any repair",
        "discount": "FREE",
        "discount_type": "fixed",
        "discount_value": 0,
        "valid_from": now - timedelta(days=1),
        "valid_until": now + timedelta(days=1),
        "category": "Apple",
        "promo_code": "DRYOUT",
        "is_active": True,
        "redemption_steps": ["Book a repair", "Show the code"],
        "product_details": {},
        "target_products": [],
        "max_redemptions": None,
    }
    values.update(overrides)
    return values


class TestLookup:

    def test_create_starts_at_zero(self, db):
        offer = OfferStore(db).create(offer_values())

        assert offer.id is not None
        assert offer.current_redemptions == 0
        assert offer.created_at is not None

    def test_get_by_code_is_case_insensitive(self, db):
        store = OfferStore(db)
        store.create(offer_values(promo_code="DRYOUT"))

        assert store.get_by_code("dryout").promo_code == "DRYOUT"
        assert store.get_by_code("  DryOut ").promo_code == "DRYOUT"
        assert store.get_by_code("missing") is None

    def test_get_unknown_id(self, db):
        assert OfferStore(db).get(999) is None

    def test_duplicate_code_rejected_by_unique_index(self, db):
        store = OfferStore(db)
        store.create(offer_values())

        with pytest.raises(DuplicatePromoCode):
            store.create(offer_values(title="Another"))

        assert store.count_offers() == 1

    def test_update_to_taken_code_rejected(self, db):
        store = OfferStore(db)
        store.create(offer_values(promo_code="FIRST"))
        second = store.create(offer_values(promo_code="SECOND"))

        with pytest.raises(DuplicatePromoCode):
            store.update(second, {"promo_code": "FIRST"})

        assert store.get(second.id).promo_code == "SECOND"

    def test_other_constraint_failures_are_not_duplicates(self, db):
        store = OfferStore(db)

        with pytest.raises(IntegrityError) as exc:
            store.create(offer_values(title=None))

        assert "title" in str(exc.value.orig)
        assert store.count_offers() == 0

    def test_missing_promo_code_is_not_a_duplicate(self, db):
        with pytest.raises(IntegrityError):
            OfferStore(db).create(offer_values(promo_code=None))


class TestSchema:

    def test_validity_lookup_index(self, engine):
        indexes = {ix["name"]: ix["column_names"] for ix in inspect(engine).get_indexes("special_offers")}

        assert indexes["ix_special_offers_validity"] == ["is_active", "valid_from", "valid_until"]


class TestListing:

    def test_newest_first_with_id_tiebreak(self, db, make_offer):
        stamp = utcnow()
        older = make_offer(promo_code="OLD", created_at=stamp - timedelta(hours=1))
        tie_a = make_offer(promo_code="TIEA", created_at=stamp)
        tie_b = make_offer(promo_code="TIEB", created_at=stamp)

        codes = [o.promo_code for o in OfferStore(db).list_offers()]

        assert codes == [tie_b.promo_code, tie_a.promo_code, older.promo_code]

    def test_pagination(self, db, make_offer):
        stamp = utcnow()
        for i in range(5):
            make_offer(promo_code=f"PAGE{i}", created_at=stamp + timedelta(seconds=i))

        store = OfferStore(db)
        page = store.list_offers(skip=2, limit=2)

        assert [o.promo_code for o in page] == ["PAGE2", "PAGE1"]
        assert store.count_offers() == 5

    def test_filters(self, db, make_offer):
        now = utcnow()
        make_offer(promo_code="LIVE", category="Apple")
        make_offer(promo_code="OFF", category="Apple", is_active=False)
        make_offer(promo_code="SAMSUNG", category="Samsung")
        make_offer(
            promo_code="OLD",
            category="Apple",
            valid_from=now - timedelta(days=5),
            valid_until=now - timedelta(days=2),
        )

        store = OfferStore(db)

        assert {o.promo_code for o in store.list_offers(is_active=False)} == {"OFF"}
        assert {o.promo_code for o in store.list_offers(category="Apple")} == {"LIVE", "OFF", "OLD"}
        assert {o.promo_code for o in store.list_offers(category="Apple", valid_at=now)} == {"LIVE"}
        assert store.count_offers(is_active=True) == 3


class TestStats:

    def test_counts(self, db, make_offer):
        now = utcnow()
        make_offer(promo_code="VALID")
        make_offer(promo_code="PAUSED", is_active=False)
        make_offer(promo_code="EXPIRED", valid_from=now - timedelta(days=3), valid_until=now - timedelta(days=1))
        make_offer(promo_code="FUTURE", valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=3))

        stats = OfferStore(db).stats(now)

        assert stats == {"total": 4, "active": 3, "expired": 1, "valid": 1}

    def test_empty(self, db):
        assert OfferStore(db).stats(utcnow()) == {"total": 0, "active": 0, "expired": 0, "valid": 0}


class TestIncrementRedemptions:

    def test_increments_by_one(self, db, make_offer):
        offer = make_offer(max_redemptions=2)
        store = OfferStore(db)

        assert store.increment_redemptions(offer.id, utcnow())
        assert store.get(offer.id).current_redemptions == 1

    def test_refuses_at_cap(self, db, make_offer):
        offer = make_offer(max_redemptions=1, current_redemptions=1)

        assert not OfferStore(db).increment_redemptions(offer.id, utcnow())
        db.expire_all()
        assert db.get(SpecialOffer, offer.id).current_redemptions == 1

    def test_refuses_inactive_or_expired(self, db, make_offer):
        now = utcnow()
        paused = make_offer(promo_code="PAUSED", is_active=False)
        expired = make_offer(promo_code="GONE", valid_from=now - timedelta(days=2), valid_until=now - timedelta(days=1))
        store = OfferStore(db)

        assert not store.increment_redemptions(paused.id, now)
        assert not store.increment_redemptions(expired.id, now)

    def test_stale_reader_cannot_overshoot(self, db, session_factory, make_offer):
        offer = make_offer(max_redemptions=1)

        # A second session takes the only slot after we've read the offer
        other = session_factory()
        try:
            assert OfferStore(other).increment_redemptions(offer.id, utcnow())
        finally:
            other.close()

        assert offer.current_redemptions == 0  # our stale snapshot
        assert not OfferStore(db).increment_redemptions(offer.id, utcnow())
