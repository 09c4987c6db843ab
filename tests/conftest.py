"""Pytest fixtures: in-memory database, fake clock, in-memory token."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from database import build_session_factory, session_scope
from models import Base
from services.subscription_ledger import SubscriptionLedger, create_ledger
from services.token_client import InMemoryToken, TokenRegistry

OWNER = "owner"
CUSTODY = "ledger-vault"
TOKEN_ID = "TKN"


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: int = 1000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def fund(token: InMemoryToken, holder: str, amount: int, operator: str = CUSTODY) -> None:
    """Give `holder` tokens and approve the ledger to spend them."""
    token.mint(holder, amount)
    token.approve(holder, operator, token.allowance(holder, operator) + amount)


@pytest.fixture
def engine():
    """Single shared in-memory SQLite connection per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock(1000)


@pytest.fixture
def token():
    return InMemoryToken(TOKEN_ID)


@pytest.fixture
def registry(token):
    return TokenRegistry({TOKEN_ID: token})


@pytest.fixture
def ledger_id(session_factory):
    with session_scope(session_factory) as db:
        state = create_ledger(db, owner=OWNER, custody_account=CUSTODY)
    return state.id


@pytest.fixture
def ledger(session_factory, ledger_id, registry, clock):
    return SubscriptionLedger(session_factory, ledger_id, registry, clock=clock)


@pytest.fixture
def configured_ledger(ledger):
    """Ledger with fee=10 per period in TKN."""
    ledger.set_fee(OWNER, 10)
    ledger.set_token(OWNER, TOKEN_ID)
    return ledger
