"""
🎁 SPECIAL OFFER MANAGEMENT HELPER
Quick script to inspect and manage special offers in the database.

Usage:
    python manage_offers.py --list
    python manage_offers.py --summary
    python manage_offers.py --stats "SAVE10"
    python manage_offers.py --deactivate "SAVE10"
    python manage_offers.py --activate "SAVE10"
    python manage_offers.py --delete "SAVE10"
"""

import sys

from phonehub.database import SessionLocal, init_db
from phonehub.models.offer import utcnow
from phonehub.services.images import get_image_storage
from phonehub.services.offer_store import OfferStore


def list_offers():
    """List all offers, newest first"""
    db = SessionLocal()

    try:
        offers = OfferStore(db).list_offers(limit=1000)

        if not offers:
            print("No special offers found.")
            return

        print("\n📋 SPECIAL OFFERS:\n")
        print(f"{'Code':<20} {'Discount':<15} {'Uses':<12} {'Status':<15} {'Valid Until':<20}")
        print("-" * 82)

        for o in offers:
            status = "🟢 Active" if o.is_active else "🔴 Inactive"
            uses = f"{o.current_redemptions}/{o.max_redemptions}" if o.max_redemptions else f"{o.current_redemptions}/∞"
            print(f"{o.promo_code:<20} {o.discount:<15} {uses:<12} {status:<15} {o.valid_until.strftime('%Y-%m-%d'):<20}")

        print()
    finally:
        db.close()


def set_offer_active(code, is_active):
    """Activate or deactivate an offer"""
    db = SessionLocal()

    try:
        store = OfferStore(db)
        offer = store.get_by_code(code)

        if not offer:
            print(f"❌ Offer '{code}' not found!")
            return False

        store.set_active(offer, is_active)

        print(f"✅ Offer '{offer.promo_code}' has been {'activated' if is_active else 'deactivated'}")
        return True
    finally:
        db.close()


def delete_offer(code):
    """Delete an offer and its image"""
    db = SessionLocal()

    try:
        store = OfferStore(db)
        offer = store.get_by_code(code)

        if not offer:
            print(f"❌ Offer '{code}' not found!")
            return False

        image = offer.image
        store.delete(offer)
        get_image_storage().delete(image)

        print(f"✅ Offer '{code.upper()}' has been deleted")
        return True
    finally:
        db.close()


def get_offer_stats(code):
    """Get detailed stats for one offer"""
    db = SessionLocal()

    try:
        offer = OfferStore(db).get_by_code(code)

        if not offer:
            print(f"❌ Offer '{code}' not found!")
            return False

        print(f"\n📊 OFFER STATS: {offer.promo_code}\n")
        print(f"Title:           {offer.title}")
        print(f"Discount:        {offer.discount} ({offer.discount_type} {offer.discount_value:g})")
        print(f"Status:          {'🟢 Active' if offer.is_active else '🔴 Inactive'}")
        print(f"Valid:           {offer.valid_from.strftime('%Y-%m-%d %H:%M')} → {offer.valid_until.strftime('%Y-%m-%d %H:%M')}")
        print(f"Redeemable now:  {'Yes' if offer.is_valid_now else 'No'}")
        print(f"Redemptions:     {offer.current_redemptions}")
        print(f"Max:             {offer.max_redemptions if offer.max_redemptions else 'Unlimited'}")

        if offer.max_redemptions:
            usage_pct = (offer.current_redemptions / offer.max_redemptions) * 100
            print(f"Usage:           {usage_pct:.1f}% ({offer.remaining_redemptions} remaining)")

        print(f"Expired:         {'Yes ⚠️' if offer.is_expired else 'No'}")
        print()

        return True
    finally:
        db.close()


def print_summary():
    """Dashboard counts across all offers"""
    db = SessionLocal()

    try:
        stats = OfferStore(db).stats(utcnow())

        print("\n📊 OFFER SUMMARY\n")
        print(f"Total:    {stats['total']}")
        print(f"Active:   {stats['active']}")
        print(f"Expired:  {stats['expired']}")
        print(f"Valid:    {stats['valid']}")
        print()

        return stats
    finally:
        db.close()


def main(argv):
    if len(argv) < 2:
        print(__doc__)
        return 1

    command = argv[1]

    if command == "--list":
        list_offers()
        return 0

    if command == "--summary":
        print_summary()
        return 0

    actions = {
        "--activate": lambda code: set_offer_active(code, True),
        "--deactivate": lambda code: set_offer_active(code, False),
        "--delete": delete_offer,
        "--stats": get_offer_stats,
    }

    if command not in actions:
        print(f"Unknown command: {command}")
        print(__doc__)
        return 1

    if len(argv) < 3:
        print(f"Usage: python manage_offers.py {command} <code>")
        return 1

    return 0 if actions[command](argv[2]) else 1


if __name__ == "__main__":
    init_db()
    sys.exit(main(sys.argv))
