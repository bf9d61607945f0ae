"""Seed a demo merchant with a small drinks-and-provisions inventory."""
import logging

from stockline.db.init_db import init_db
from stockline.db.session import SessionLocal
from stockline.models.merchant import Merchant
from stockline.models.product import Product
from stockline.services.units import upsert_alternative_unit

logger = logging.getLogger(__name__)

DEMO_MERCHANT = "Mama Ada Provisions"

# name, base unit, stock (base units), selling price, cost price, reorder level, {alt unit: factor}
PRODUCTS = [
    ("Zobo Delight", "bottle", 48, 1000, 650, 12, {"crate": 12}),
    ("Coke", "bottle", 72, 400, 300, 24, {"crate": 24, "pack": 6}),
    ("Peak Milk", "tin", 30, 450, 380, 10, {"carton": 48}),
    ("Rice", "kg", 100, 1500, 1200, 20, {"bag": 50}),
    ("Indomie", "pack", 40, 250, 200, 10, {"carton": 40}),
]


def seed_inventory():
    init_db()
    db = SessionLocal()
    try:
        merchant = db.query(Merchant).filter(Merchant.name == DEMO_MERCHANT).first()
        if not merchant:
            merchant = Merchant(name=DEMO_MERCHANT)
            db.add(merchant)
            db.flush()
            logger.info(f"Created merchant: {merchant.name}")

        db.query(Product).filter(Product.merchant_id == merchant.id).delete()

        for name, base_unit, stock, price, cost, reorder, units in PRODUCTS:
            product = Product(
                merchant_id=merchant.id,
                name=name,
                base_unit_of_measure=base_unit,
                current_stock_in_base_units=stock,
                standard_selling_price_per_base_unit=price,
                cost_price_per_base_unit=cost,
                reorder_level=reorder,
            )
            for unit_name, factor in units.items():
                upsert_alternative_unit(product, unit_name, factor)
            db.add(product)

        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products for merchant_id={merchant.id}")
        return merchant.id
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    seed_inventory()
