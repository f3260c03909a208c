import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./treasury_relay_dev.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import threading
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from treasury_relay import models  # noqa: F401  registers the tables
from treasury_relay.database import Base, build_engine, get_db
from treasury_relay.main import app
from treasury_relay.api.v1.withdrawals import relay_provider
from treasury_relay.services import ledger_service, payment_recorder
from treasury_relay.services.chain_client import ChainClient, ConfirmationResult, get_chain_client
from treasury_relay.services.notifications import BalanceNotifier
from treasury_relay.services.withdrawal_relay import WithdrawalRelay

# Use TEST_DATABASE_URL from environment, else a throwaway SQLite file per test
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

ALICE_WALLET = "0x" + "a" * 40
BOB_WALLET = "0x" + "b" * 40
SHOP_WALLET_1 = "0x" + "1" * 40
SHOP_WALLET_2 = "0x" + "2" * 40
PAYER = "0x" + "f" * 40


class FakeChainClient(ChainClient):
    """
    In-memory chain. Anything starting with 0x counts as an address.

    Set confirm_success=False to simulate a reverted transfer, or
    send_error / confirm_error to raise from the matching call.
    """
    treasury_address = "0x" + "7" * 40

    def __init__(self, treasury_balance="1000"):
        self.treasury_balance = Decimal(treasury_balance)
        self.transfers = []
        self.confirm_success = True
        self.send_error = None
        self.confirm_error = None
        self.next_tx_hash = None
        self._counter = 0
        self._lock = threading.Lock()

    def is_valid_address(self, value):
        return bool(value) and value.startswith("0x") and len(value) > 2

    def get_treasury_balance(self):
        return self.treasury_balance

    def send_transfer(self, to_address, amount):
        if self.send_error:
            raise self.send_error
        with self._lock:
            self._counter += 1
            tx_hash = self.next_tx_hash or f"0xfaketx{self._counter}"
            self.next_tx_hash = None
            self.transfers.append((to_address, Decimal(amount), tx_hash))
        return tx_hash

    def wait_for_confirmation(self, tx_hash, timeout=None):
        if self.confirm_error:
            raise self.confirm_error
        if self.confirm_success:
            with self._lock:
                amount = next(a for _, a, h in self.transfers if h == tx_hash)
                self.treasury_balance -= amount
        return ConfirmationResult(success=self.confirm_success, block_number=1)


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Fresh schema for every test.

    Services commit for real, so isolation comes from recreating the tables
    rather than rolling back an outer transaction.
    """
    url = TEST_DATABASE_URL or f"sqlite:///{tmp_path / 'ledger.db'}"
    test_engine = build_engine(url)
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Independent sessions, one per worker thread."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def notifier():
    return BalanceNotifier()


@pytest.fixture
def relay(chain, notifier):
    return WithdrawalRelay(chain, notifier=notifier, confirmation_timeout=5)


@pytest.fixture
def client(db_session, relay, chain):
    """
    Create a TestClient that uses the test database session and fake chain.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close, db_session fixture handles it

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[relay_provider] = lambda: (lambda: relay)
    app.dependency_overrides[get_chain_client] = lambda: chain

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def alice(db_session):
    """Registered user alice with wallet ALICE_WALLET."""
    return ledger_service.get_or_create_user(db_session, ALICE_WALLET, "alice")


@pytest.fixture
def funded_alice(db_session, alice):
    """alice holding 2.5 from a single confirmed deposit."""
    payment_recorder.record_payment(db_session, PAYER, "alice", Decimal("2.5"), "0xtx1")
    return alice
