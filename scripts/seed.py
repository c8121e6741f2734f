"""
Catalog Shop - Database Seeder
===============================
Creates tables and seeds a small demo catalog.

Usage:
    python scripts/seed.py          # Create tables + seed (idempotent)
    python scripts/seed.py --reset  # Drop all tables, recreate and reseed
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine
from modules.catalog.models import Category, Product
from modules.catalog.service import category_service, product_service


CATALOG = {
    "Sparkling": [
        ("Citrus Fizz", "3.50", "Lemon and lime soda with a sharp finish."),
        ("Berry Spritz", "3.80", "Mixed berries, lightly carbonated."),
    ],
    "Cold Brew": [
        ("Classic Cold Brew", "4.20", "Slow-steeped for 18 hours."),
        ("Vanilla Cold Brew", "4.60", ""),
    ],
    "Tea": [
        ("Jasmine Green", "2.90", "Floral green tea, served chilled."),
    ],
}


def ensure_tables():
    """Create all tables if they don't exist (safe to call multiple times)."""
    print("[0/2] Ensuring all tables exist...")
    Base.metadata.create_all(bind=engine)
    print("  + All tables OK\n")


def seed():
    db = SessionLocal()
    try:
        ensure_tables()

        print("[1/2] Categories")
        categories = {}
        for name in CATALOG:
            existing = db.query(Category).filter(Category.name == name).first()
            if existing:
                print(f"  = exists: {name}")
                categories[name] = existing
            else:
                categories[name] = category_service.create(db, name)
                print(f"  + {name}")

        print("\n[2/2] Products")
        for cat_name, products in CATALOG.items():
            cat = categories[cat_name]
            for name, price, description in products:
                existing = db.query(Product).filter(Product.name == name, Product.catid == cat.catid).first()
                if existing:
                    print(f"  = exists: {name}")
                    continue
                p = product_service.create(db, {
                    "catid": cat.catid, "name": name, "price": price, "description": description,
                })
                print(f"  + #{p.pid} {name} (${p.price})")

        db.commit()
        print("\nSeed complete.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def reset_and_seed():
    """Drop all tables and recreate + seed."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("All tables recreated")
    seed()


if __name__ == "__main__":
    if "--reset" in sys.argv:
        confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")
        if confirm.strip().lower() == "yes":
            reset_and_seed()
        else:
            print("Aborted.")
    else:
        seed()
