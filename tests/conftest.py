import os

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch
from fastapi.testclient import TestClient

from pnd_wallet.core import config as config_module
from pnd_wallet.core.config import load_config
from pnd_wallet.core.limiter import limiter
from pnd_wallet.core.monitoring import error_monitor
from pnd_wallet.schemas.ledger import PartyKind, PartyRef
from pnd_wallet.schemas.transfer import TransferRequest
from pnd_wallet.services.ledger_service import LedgerService
from pnd_wallet.services.transfer_service import TransferService
from pnd_wallet.storage.memory import InMemoryDocumentStore

ADMIN_API_KEY = "test_admin_key"
FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

ADMIN_ID = "adminUID123456"
USER_ID = "userUID987654"
RIDER_ID = "riderUID555000"


class FixedClock:
    """Clock returning FIXED_NOW, optionally advancing one second per call"""

    def __init__(self, step_seconds: int = 0):
        self.step = timedelta(seconds=step_seconds)
        self.calls = 0

    def __call__(self):
        now = FIXED_NOW + self.step * self.calls
        self.calls += 1
        return now


def seed_parties(store: InMemoryDocumentStore, admin="500", user="200", rider="0"):
    store.put_document("Admins", ADMIN_ID, {"fullname": "Super Admin", "walletbalance": Decimal(admin)})
    store.put_document("Users", USER_ID, {"fullname": "Ada Customer", "walletbalance": Decimal(user)})
    store.put_document("Riders", RIDER_ID, {"fullname": "Rex Rider", "walletbalance": Decimal(rider)})


def make_transfer_request(
    sender=(PartyKind.ADMIN, ADMIN_ID),
    recipient=(PartyKind.RIDER, RIDER_ID),
    amount="150",
    narration="bonus",
) -> TransferRequest:
    return TransferRequest(
        sender=PartyRef(kind=sender[0], id=sender[1]),
        recipient=PartyRef(kind=recipient[0], id=recipient[1]),
        amount=Decimal(amount),
        narration=narration,
    )


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Rate-limit counters and error counts are process-wide"""
    limiter.reset()
    error_monitor.reset()
    yield


@pytest.fixture
def store():
    memory_store = InMemoryDocumentStore()
    seed_parties(memory_store)
    return memory_store


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def transfer_service(store, clock):
    return TransferService(store, max_attempts=3, retry_wait_max=0, clock=clock)


@pytest.fixture
def ledger_service(store):
    return LedgerService(store)


@pytest.fixture
def admin_ref():
    return PartyRef(kind=PartyKind.ADMIN, id=ADMIN_ID)


@pytest.fixture
def user_ref():
    return PartyRef(kind=PartyKind.USER, id=USER_ID)


@pytest.fixture
def rider_ref():
    return PartyRef(kind=PartyKind.RIDER, id=RIDER_ID)


@pytest.fixture
def mock_admin_key():
    with patch("pnd_wallet.security.ADMIN_API_KEY", ADMIN_API_KEY):
        yield ADMIN_API_KEY


@pytest.fixture
def admin_headers(mock_admin_key):
    return {"X-Admin-Key": mock_admin_key}


@pytest.fixture
def client(store, transfer_service, ledger_service, mock_admin_key):
    """TestClient wired to the in-memory store (lifespan is not run)"""
    from pnd_wallet.main import app

    app.state.store = store
    app.state.transfer_service = transfer_service
    app.state.ledger_service = ledger_service
    return TestClient(app)


@pytest.fixture
def mock_env_vars():
    test_env = {
        "ADMIN_API_KEY": ADMIN_API_KEY,
        "MONGO_URL": "mongodb://localhost:27017/pnd_test",
    }

    with patch.dict("os.environ", test_env, clear=True):
        yield test_env


@pytest.fixture
def configure(monkeypatch, mock_env_vars):
    """Load configuration from environment overrides; unloaded again after the test"""
    monkeypatch.setattr(config_module, "_app_config", None)

    def _load(**overrides):
        os.environ.update(overrides)
        return load_config()

    return _load
