"""Seed the campus outlets and their starter menus.

Only runs against empty tables, so it is safe to execute on every deploy.

Usage:
    cd backend
    python seed_data.py
"""

import logging
import os
import sys
from decimal import Decimal

# Ensure the backend package is importable
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from canteen.db.base import Base
from canteen.db.session import SessionLocal, engine
from canteen.models import MenuItem, Vendor

logger = logging.getLogger("seed")

# outlet name -> [(name, price, category, description)]
OUTLET_MENUS = {
    "Cafe 2004": [
        ("Masala Dosa", "70.00", "South Indian", "Crispy dosa filled with spiced potato"),
        ("Veg Biryani", "90.00", "Rice", "Aromatic basmati rice with vegetables"),
        ("Shahi Paneer", "160.00", "Main Course", "Rich creamy cottage cheese curry"),
        ("Tava Roti", "7.00", "Bread", "Fresh wheat flatbread"),
        ("Aloo Paratha", "60.00", "Breakfast", "Stuffed potato flatbread"),
        ("Chole Bhature", "70.00", "North Indian", "Spicy chickpeas with fried bread"),
        ("Pav Bhaji", "70.00", "Street Food", "Spiced mashed vegetables with bread"),
    ],
    "Brio": [
        ("Peri-Peri Fries", "90.00", "Snacks", "Spicy Portuguese-style fries"),
        ("Vada Pav", "45.00", "Mumbai Street Food", "Spiced potato fritter in bun"),
        ("Cheese Sandwich", "50.00", "Snacks", "Grilled cheese sandwich"),
        ("Cold Coffee", "60.00", "Beverages", "Chilled coffee with ice cream"),
    ],
    "Nescafe": [
        ("Coffee", "25.00", "Beverages", "Hot brewed coffee"),
        ("Tea", "15.00", "Beverages", "Fresh chai tea"),
        ("Cappuccino", "50.00", "Beverages", "Espresso with steamed milk"),
        ("Hot Chocolate", "45.00", "Beverages", "Rich chocolate drink"),
    ],
    "CHE Canteen": [
        ("Honey Chilli Potato", "70.00", "Chinese", "Crispy potato in sweet chili sauce"),
        ("Manchurian", "70.00", "Chinese", "Vegetable balls in tangy sauce"),
        ("Fried Rice", "80.00", "Chinese", "Stir-fried rice with vegetables"),
        ("Spring Roll", "60.00", "Chinese", "Crispy vegetable rolls"),
    ],
    "Samocha": [
        ("Samosa", "20.00", "Snacks", "Crispy fried pastry with potato"),
        ("Kachori", "25.00", "Snacks", "Spicy lentil filled pastry"),
        ("Pakora", "30.00", "Snacks", "Mixed vegetable fritters"),
    ],
    "Urban Vada Pav": [
        ("Chotu Vada Pav", "30.00", "Street Food", "Mini potato vada in pav"),
        ("Jumbo Vada Pav", "50.00", "Street Food", "Large vada pav with extra chutney"),
        ("Cheese Vada Pav", "60.00", "Street Food", "Vada pav with melted cheese"),
    ],
    "Amul": [
        ("Amul Kool Badam", "20.00", "Beverages", "Refreshing badam milk"),
        ("Amul Lassi", "25.00", "Beverages", "Traditional sweet lassi"),
        ("Amul Buttermilk", "15.00", "Beverages", "Masala chaas"),
        ("Amul Ice Cream Cone", "30.00", "Dessert", "Classic vanilla cone"),
        ("Amul Kulfi", "40.00", "Dessert", "Traditional malai kulfi"),
        ("Amul Cheese Slice", "50.00", "Snacks", "Pack of cheese slices"),
    ],
}


def seed(db: Session) -> dict:
    """Insert outlets and menus if none exist. Returns what was created."""
    created = {"vendors": 0, "menu_items": 0}
    if db.scalar(select(func.count(Vendor.id))):
        logger.info("Outlets already exist, skipping seed")
        return created

    for outlet_name, items in OUTLET_MENUS.items():
        vendor = Vendor(outlet_name=outlet_name, is_active=True, is_online=True)
        db.add(vendor)
        db.flush()
        created["vendors"] += 1
        for name, price, category, description in items:
            db.add(MenuItem(
                vendor_id=vendor.id,
                name=name,
                price=Decimal(price),
                category=category,
                description=description,
                is_available=True,
            ))
            created["menu_items"] += 1
    db.commit()
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = seed(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    logger.info(f"Seed complete: {created}")


if __name__ == "__main__":
    main()
