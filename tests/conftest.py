"""Shared fixtures: in-memory SQLite database, customers, callers, API client."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fieldpos.models  # noqa: F401  register tables
from fieldpos.core.security import CallerContext, create_access_token
from fieldpos.models.customer_model import Customer
from fieldpos.utils.database import Base, get_db

AGENT_ID = 101
OTHER_AGENT_ID = 102
SUPERVISOR_ID = 201
ADMIN_ID = 301

AGENT = CallerContext(identity=AGENT_ID, role="agent")
OTHER_AGENT = CallerContext(identity=OTHER_AGENT_ID, role="agent")
SUPERVISOR = CallerContext(identity=SUPERVISOR_ID, role="supervisor")
ADMIN = CallerContext(identity=ADMIN_ID, role="admin")

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_customer(db):
    counter = {"n": 0}

    def _make(
        outstanding="10000",
        penalty="0",
        emi="1000",
        loan_amount=None,
        agent_id=AGENT_ID,
        status="active",
        total_paid="0",
    ):
        counter["n"] += 1
        n = counter["n"]
        customer = Customer(
            loan_id=f"LOAN{n:06d}",
            account_number=f"ACC{n:08d}",
            name=f"Customer {n}",
            mobile=f"98765{n:05d}",
            loan_amount=Decimal(loan_amount or outstanding),
            emi_amount=Decimal(emi),
            emi_frequency="monthly",
            outstanding_amount=Decimal(outstanding),
            penalty_amount=Decimal(penalty),
            total_paid=Decimal(total_paid),
            status=status,
            assigned_agent_id=agent_id,
        )
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    return _make


@pytest.fixture
def client(db):
    from main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_header(caller: CallerContext) -> dict:
    return {"Authorization": f"Bearer {create_access_token(caller.identity, caller.role)}"}
