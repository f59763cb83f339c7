# hospital_billing/db/init_db.py
from __future__ import annotations

import argparse
from decimal import Decimal

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_billing.core.config import settings
from hospital_billing.core.security import hash_password
from hospital_billing.db.base import Base
from hospital_billing.db.session import engine
from hospital_billing.models import MedicalService, Medicine, Room, User
from hospital_billing.models.user import ROLE_ADMIN

SEED_ROOMS = [
    ("101", "General", "2000.00"),
    ("102", "General", "2000.00"),
    ("201", "Private", "3500.00"),
    ("202", "Private", "3500.00"),
    ("301", "ICU", "8000.00"),
    ("302", "ICU", "8000.00"),
    ("401", "Deluxe", "5000.00"),
    ("402", "Deluxe", "5000.00"),
]

# name, category, unit price, buy price, stock, threshold, unit
SEED_MEDICINES = [
    ("Paracetamol 500mg", "Analgesics", "2.50", "1.80", 1000, 100, "tablets"),
    ("Amoxicillin 250mg", "Antibiotics", "8.00", "6.50", 500, 50, "capsules"),
    ("Omeprazole 20mg", "Antacids", "12.00", "9.50", 200, 25, "capsules"),
    ("Vitamin B Complex", "Vitamins", "15.00", "12.00", 300, 30, "tablets"),
    ("Cough Syrup 100ml", "Respiratory", "45.00", "35.00", 150, 20, "bottles"),
]

SEED_SERVICES = [
    ("General Consultation", "Consultation", "500.00"),
    ("X-Ray Chest", "Radiology", "1200.00"),
    ("Blood Test - CBC", "Laboratory", "800.00"),
    ("ECG", "Cardiology", "600.00"),
    ("Ultrasound Abdomen", "Radiology", "1500.00"),
    ("Physiotherapy Session", "Therapy", "400.00"),
]


def print_tables() -> set:
    names = sorted(inspect(engine).get_table_names())
    print("Existing tables:", names)
    return set(names)


def seed_admin(db: Session) -> None:
    username = settings.SEED_ADMIN_USERNAME
    if db.query(User.id).filter(User.username == username).first():
        return
    db.add(
        User(
            username=username,
            email=f"{username}@hospital.local",
            password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
            role=ROLE_ADMIN,
            first_name="System",
            last_name="Administrator",
            is_active=True,
        ))


def seed_catalogue(db: Session) -> None:
    """
    Seed ONLY missing rows; safe to run multiple times.
    """
    for number, room_type, rate in SEED_ROOMS:
        if not db.query(Room.id).filter(Room.room_number == number).first():
            db.add(Room(room_number=number, room_type=room_type,
                        daily_rate=Decimal(rate), is_occupied=False))

    for name, category, price, buy, stock, threshold, unit in SEED_MEDICINES:
        if not db.query(Medicine.id).filter(Medicine.name == name).first():
            db.add(
                Medicine(name=name, category=category, unit_price=Decimal(price),
                         buy_price=Decimal(buy), stock_quantity=stock,
                         low_stock_threshold=threshold, unit=unit))

    for name, category, price in SEED_SERVICES:
        if not db.query(MedicalService.id).filter(MedicalService.name == name).first():
            db.add(MedicalService(name=name, category=category,
                                  default_price=Decimal(price)))


def run(fresh: bool = False, with_samples: bool = True) -> None:
    if fresh:
        print("WARNING: Dropping ALL tables (dev only) …")
        Base.metadata.drop_all(bind=engine)

    print("Creating all missing tables …")
    Base.metadata.create_all(bind=engine)
    print_tables()

    try:
        with Session(engine) as db:
            seed_admin(db)
            if with_samples:
                seed_catalogue(db)
            db.commit()
            print("Seed data inserted (missing rows only).")
    except SQLAlchemyError as e:
        print("Seeding failed:", e)
        raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, seed admin and sample data).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    parser.add_argument(
        "--no-samples",
        action="store_true",
        help="Only create the admin user; skip rooms / medicines / services.",
    )
    args = parser.parse_args()
    run(fresh=args.fresh, with_samples=not args.no_samples)
