"""Shared fixtures: a throwaway SQLite database per test and an API client wired to it."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from phonehub.database import Base, get_db
from phonehub.dependencies import require_admin
from phonehub.main import app
from phonehub.models.offer import SpecialOffer, utcnow
from phonehub.services.images import ImageStorage, get_image_storage

ADMIN_EMAIL = "admin@phonehub.test"


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'offers.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def image_storage(tmp_path):
    return ImageStorage(tmp_path / "uploads" / "special-offers")


@pytest.fixture
def client(session_factory, image_storage):
    """API client with the test database, a stub admin and temp image storage."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[require_admin] = lambda: ADMIN_EMAIL
    app.dependency_overrides[get_image_storage] = lambda: image_storage

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


@pytest.fixture
def make_offer(db):
    """Insert an offer straight into the database. Defaults: SAVE10, valid yesterday..tomorrow."""

    def _make(**overrides):
        now = utcnow()
        values = {
            "title": "Screen Repair Deal",
            "description": "10% off any screen replacement",
            "discount": "10% OFF",
            "discount_type": "percentage",
            "discount_value": 10,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=1),
            "category": "Apple",
            "promo_code": "SAVE10",
            "is_active": True,
            "redemption_steps": [],
            "product_details": {},
            "target_products": [],
            "max_redemptions": None,
            "current_redemptions": 0,
        }
        values.update(overrides)
        offer = SpecialOffer(**values)
        db.add(offer)
        db.commit()
        db.refresh(offer)
        return offer

    return _make


@pytest.fixture
def offer_form():
    """Multipart form fields for a valid create request."""
    now = utcnow()
    return {
        "title": "Battery Swap Special",
        "description": "Flat discount on battery replacement",
        "discount": "$15 OFF",
        "discountType": "fixed",
        "discountValue": "15",
        "validFrom": (now - timedelta(days=1)).isoformat(),
        "validUntil": (now + timedelta(days=7)).isoformat(),
        "category": "Samsung",
        "promoCode": "battery15",
        "isActive": "true",
    }
