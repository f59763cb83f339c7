import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from hospital_billing.api.deps import get_db  # noqa: E402
from hospital_billing.core.security import hash_password  # noqa: E402
from hospital_billing.db.base import Base  # noqa: E402
from hospital_billing.db.session import make_engine  # noqa: E402
from hospital_billing.main import app  # noqa: E402
from hospital_billing.models import Medicine, MedicalService, Patient, Room, User  # noqa: E402
from hospital_billing.models.user import ROLE_ADMIN, ROLE_DOCTOR  # noqa: E402
from hospital_billing.utils.jwt import create_access_token  # noqa: E402

T0 = datetime(2026, 3, 10, 9, 0, 0)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def _make_user(db, username, role, password="secret123"):
    u = User(
        username=username,
        email=f"{username}@hospital.test",
        password_hash=hash_password(password),
        role=role,
        first_name=username.title(),
        is_active=True,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def admin(db):
    return _make_user(db, "admin", ROLE_ADMIN)


@pytest.fixture
def doctor(db):
    return _make_user(db, "doctor", ROLE_DOCTOR)


@pytest.fixture
def admin_headers(admin):
    token = create_access_token(subject=admin.username, role=admin.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def doctor_headers(doctor):
    token = create_access_token(subject=doctor.username, role=doctor.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient(db):
    p = Patient(patient_code="PAT-2026-0001", name="Rahim Uddin", phone="01700000000")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def other_patient(db):
    p = Patient(patient_code="PAT-2026-0002", name="Karima Begum")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def room(db):
    r = Room(room_number="101", room_type="General", daily_rate=Decimal("1500.00"),
             is_occupied=False)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


@pytest.fixture
def icu_room(db):
    r = Room(room_number="301", room_type="ICU", daily_rate=Decimal("8000.00"),
             is_occupied=False)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


@pytest.fixture
def medicine(db):
    m = Medicine(name="Paracetamol 500mg", category="Analgesics",
                 unit_price=Decimal("2.50"), buy_price=Decimal("1.80"),
                 stock_quantity=100, low_stock_threshold=20, unit="tablets")
    db.add(m)
    db.commit()
    db.refresh(m)
    return m


@pytest.fixture
def xray(db):
    s = MedicalService(name="X-Ray Chest", category="Radiology",
                       default_price=Decimal("1200.00"))
    db.add(s)
    db.commit()
    db.refresh(s)
    return s
