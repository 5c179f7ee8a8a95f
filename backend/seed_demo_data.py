"""Seed a demo catalog: products, lots with staggered expiry, and two combos."""
from datetime import date, timedelta
from decimal import Decimal

from pharma_erp.db.init_db import init_db
from pharma_erp.db.session import SessionLocal
from pharma_erp.models import Combo, Product, ProductLot, Warehouse
from pharma_erp.schemas.combo import ComboCreate, ComboItemCreate
from pharma_erp.schemas.lots import LotCreate
from pharma_erp.services.combo_service import create_combo
from pharma_erp.services.lot_service import create_product_lot


def seed_demo_data():
    init_db()
    db = SessionLocal()
    try:
        if db.query(Product).count() > 0:
            print("Products already present, nothing to seed.")
            return

        warehouse = db.query(Warehouse).order_by(Warehouse.id).first()
        today = date.today()

        # (name, sku, retail, cost, lot-managed, [(lot, days to expiry or None, qty)])
        products = [
            ("Paracetamol 500mg", "PARA500", 2500, 1500, True, [("PA-2401", 5, 40), ("PA-2407", 240, 200)]),
            ("Amoxicillin 500mg", "AMOX500", 8000, 5500, True, [("AM-2312", -3, 12), ("AM-2405", 60, 100)]),
            ("Cetirizine 10mg", "CETI10", 1500, 900, True, [("CE-2402", 20, 150)]),
            ("ORS Sachet", "ORS", 2000, 1200, True, [("OR-2403", None, 80)]),
            ("Vitamin C 500mg", "VITC500", 3000, 1800, False, []),
        ]

        created = {}
        for name, sku, retail, cost, lot_managed, lots in products:
            product = Product(
                name=name,
                sku=sku,
                retail_price=Decimal(retail),
                cost_price=Decimal(cost),
                enable_lot_management=lot_managed,
            )
            db.add(product)
            db.commit()
            db.refresh(product)
            created[sku] = product

            for lot_number, days, qty in lots:
                create_product_lot(db, LotCreate(
                    product_id=product.id,
                    warehouse_id=warehouse.id,
                    lot_number=lot_number,
                    expiry_date=today + timedelta(days=days) if days is not None else None,
                    quantity=qty,
                ))

        create_combo(db, ComboCreate(
            name="Fever care pack",
            combo_price=Decimal("7000"),
            items=[
                ComboItemCreate(product_id=created["PARA500"].id, quantity=2),
                ComboItemCreate(product_id=created["ORS"].id, quantity=1),
                ComboItemCreate(product_id=created["VITC500"].id, quantity=1),
            ],
        ))
        create_combo(db, ComboCreate(
            name="Throat infection kit",
            combo_price=Decimal("15000"),
            items=[
                ComboItemCreate(product_id=created["AMOX500"].id, quantity=1),
                ComboItemCreate(product_id=created["CETI10"].id, quantity=3),
            ],
        ))

        print(f"Seeded {len(products)} products, {db.query(ProductLot).count()} lots, "
              f"{db.query(Combo).count()} combos in warehouse '{warehouse.name}'")
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_data()
