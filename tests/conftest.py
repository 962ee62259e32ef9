# tests/conftest.py

import os

# Settings are read at import time, so the test environment is set up first.
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_API_KEY"] = ""
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.auth.auth_handler import auth_handler
from app.database import Base, get_db
from app.models import (
    HomeVisit, HomeVisitStatus, LabTest, Order, OrderItem, OrderStatus, PaymentMethod, User
)
from app.models.user import ROLE_ADMIN, ROLE_AGENT, ROLE_USER
from app.services.channels import ChannelSender
from app.services.notification_dispatcher import NotificationDispatcher, get_dispatcher
from app.services.templates import DEFAULT_TEMPLATES, Channel
from main import app as main_app

TEST_PASSWORD = "TestPass123!"


@dataclass
class SentMessage:
    to: str
    subject: Optional[str]
    body: str


class RecordingSender:
    """Channel send function that records every message instead of delivering it"""

    def __init__(self, result: bool = True, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.messages: list[SentMessage] = []

    def __call__(self, to: str, subject: Optional[str], body: str) -> bool:
        self.messages.append(SentMessage(to, subject, body))
        if self.error is not None:
            raise self.error
        return self.result


# --- Database fixtures ---
@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite file database per test, with every table created"""
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'lablink_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# --- Notification fixtures ---
@pytest.fixture
def email_sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def sms_sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def dispatcher(email_sender, sms_sender) -> NotificationDispatcher:
    return NotificationDispatcher(
        templates=DEFAULT_TEMPLATES,
        senders={
            Channel.EMAIL: ChannelSender(Channel.EMAIL, email_sender, real=True, contact_field="email"),
            Channel.SMS: ChannelSender(Channel.SMS, sms_sender, real=False, contact_field="phone"),
        },
    )


# --- Data factories ---
@pytest.fixture
def user_factory(db_session: Session) -> Callable[..., User]:
    def _create_user(
        username: str,
        role: str = ROLE_USER,
        email: Optional[str] = "",
        phone_number: Optional[str] = "+91 98765 43210",
        is_active: bool = True,
        first_name: Optional[str] = None,
        last_name: str = "Tester",
    ) -> User:
        """Pass email=None for a user without an email address"""
        user = User(
            username=username,
            email=f"{username}@example.com" if email == "" else email,
            phone_number=phone_number,
            hashed_password=auth_handler.get_password_hash(TEST_PASSWORD),
            first_name=first_name or username.capitalize(),
            last_name=last_name,
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create_user


@pytest.fixture
def customer(user_factory) -> User:
    return user_factory("priya", first_name="Priya", last_name="Sharma")


@pytest.fixture
def admin_user(user_factory) -> User:
    return user_factory("labadmin", role=ROLE_ADMIN)


@pytest.fixture
def agent(user_factory) -> User:
    return user_factory("ravi", role=ROLE_AGENT, first_name="Ravi", last_name="Kumar", phone_number="+91 90000 11111")


@pytest.fixture
def lab_test_factory(db_session: Session) -> Callable[..., LabTest]:
    def _create_lab_test(
        name: str,
        price: float,
        discount_price: Optional[float] = None,
        report_time: str = "24 hours",
        is_active: bool = True,
    ) -> LabTest:
        lab_test = LabTest(
            name=name,
            slug=name.lower().replace(" ", "-"),
            price=price,
            discount_price=discount_price,
            report_time=report_time,
            is_active=is_active,
        )
        db_session.add(lab_test)
        db_session.commit()
        db_session.refresh(lab_test)
        return lab_test
    return _create_lab_test


@pytest.fixture
def lab_tests(lab_test_factory) -> list[LabTest]:
    return [
        lab_test_factory("Complete Blood Count", 500.0, discount_price=400.0),
        lab_test_factory("Lipid Profile", 800.0),
    ]


@pytest.fixture
def order_factory(db_session: Session, lab_tests) -> Callable[..., Order]:
    """Creates an order directly in any status, with one item per test and a home visit"""
    counter = {"next": 1}

    def _create_order(
        user: User,
        status: OrderStatus = OrderStatus.PENDING,
        visit_status: HomeVisitStatus = HomeVisitStatus.SCHEDULED,
        agent: Optional[User] = None,
        tests: Optional[list[LabTest]] = None,
    ) -> Order:
        tests = tests if tests is not None else lab_tests
        final = sum(test.effective_price for test in tests)
        total = sum(test.price for test in tests)
        order = Order(
            order_number=f"LL2026{counter['next']:06d}",
            user_id=user.id,
            status=status.value,
            total_amount=total,
            discount_amount=total - final,
            final_amount=final,
            payment_method=PaymentMethod.COD.value,
        )
        counter["next"] += 1
        order.items = [OrderItem(test_id=test.id, quantity=1, unit_price=test.effective_price) for test in tests]
        order.home_visit = HomeVisit(
            scheduled_date=date.today() + timedelta(days=1),
            scheduled_time="07:00-09:00",
            address="12 MG Road, Bengaluru, Karnataka 560001",
            status=visit_status.value,
            agent_id=agent.id if agent else None,
        )
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order
    return _create_order


# --- API client ---
@pytest.fixture
def client(session_factory, dispatcher):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(main_app)
    main_app.dependency_overrides.clear()


@pytest.fixture
def token_for() -> Callable[[User], dict]:
    """Authorization headers for a user, as issued at login"""
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {auth_handler.create_user_token(user)}"}
    return _headers
