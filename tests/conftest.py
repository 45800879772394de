"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from coop_ledger.api.main import create_app
from coop_ledger.api.dependencies import get_state_store, get_today
from coop_ledger.domain.models import (
    CollectionPeriod,
    CoopState,
    Loan,
    LoanStatus,
    Member,
    Payment,
    RepaymentPlan,
)
from coop_ledger.infrastructure.database.models import Base
from coop_ledger.infrastructure.store import StateStore


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2025, 3, 1)


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    """Create test database and hand out its session factory"""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(session_factory: sessionmaker, tmp_path) -> StateStore:
    """State store over the test database and a temporary cache directory"""
    return StateStore(
        session_factory=session_factory,
        cache_dir=str(tmp_path / "cache"),
        max_retries=2,
        backoff_base=0,
        sleep=lambda _: None,
    )


@pytest.fixture
def client(store: StateStore) -> TestClient:
    """Create FastAPI test client with test store and a fixed clock"""
    app = create_app()
    app.dependency_overrides[get_state_store] = lambda: store
    app.dependency_overrides[get_today] = lambda: TODAY
    return TestClient(app)


@pytest.fixture
def sample_state() -> CoopState:
    """Three members, two January periods and one approved cut-off loan"""
    members = [
        Member(id=1, name="Member 1", committed_shares=Decimal("10")),
        Member(id=2, name="Member 2", committed_shares=Decimal("10")),
        Member(id=3, name="Member 3", committed_shares=Decimal("5")),
    ]
    jan10 = CollectionPeriod(
        id="2025-01-10",
        date=date(2025, 1, 10),
        total_collected=Decimal("1500"),
        payments=[
            Payment(member_id=1, amount=Decimal("500"), date=date(2025, 1, 10), collection_period="2025-01-10"),
            Payment(member_id=2, amount=Decimal("1000"), date=date(2025, 1, 10), collection_period="2025-01-10"),
        ],
        default_contribution=Decimal("500"),
    )
    jan25 = CollectionPeriod(id="2025-01-25", date=date(2025, 1, 25), default_contribution=Decimal("500"))
    loan = Loan(
        id="loan-1",
        member_id=1,
        amount=Decimal("1000"),
        date_issued=date(2025, 1, 5),
        status=LoanStatus.APPROVED,
        date_approved=date(2025, 1, 5),
        disbursement_period_id="2025-01-10",
        repayment_plan=RepaymentPlan.CUT_OFF,
        interest_rate=Decimal("0.03"),
        term_count=1,
    )
    return CoopState(
        members=members,
        collections=[jan10, jan25],
        loans=[loan],
        selected_period="2025-01-10",
        total_interest_pool=Decimal("30"),
    )
