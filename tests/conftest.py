import os

# settings are read at import time , these must be in place before sellerdesk is imported
os.environ["ENV"] = "dev"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest_bootstrap.db")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["NOTIFIER_BACKEND"] = "console"
os.environ["AUTO_CREATE_TABLES"] = "false"

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sellerdesk.db.connection import create_all_tables, make_session_factory
from sellerdesk.identity.repository import insert_user_with_password
from sellerdesk.identity.utils import create_access_token, hash_password
from sellerdesk.main import create_app
from sellerdesk.otp.dependencies import build_otp_components
from sellerdesk.otp.models import DeliveryReceipt
from sellerdesk.rate_limiting.utils import reset_in_memory_counters

url_prefix = "/api/v1"

strong_pass = "Str0ng!Passw0rd"
other_strong_pass = "An0ther#Secret9"


class FakeClock:
    """Epoch-ms clock the tests move by hand."""

    def __init__(self, start_ms: int = 1_760_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class CapturingNotifier:
    channel = "capture"

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, destination, code, purpose):
        if self.fail:
            raise ConnectionError("smtp relay unreachable")
        self.sent.append({"destination": destination, "code": code, "purpose": purpose})
        return DeliveryReceipt(destination=destination, channel=self.channel)

    def last_code(self, destination=None):
        for item in reversed(self.sent):
            if destination is None or item["destination"] == destination:
                return item["code"]
        return None


def wrong_code(code: str) -> str:
    return str((int(code) + 1) % 10 ** len(code)).zfill(len(code))


def cookie_header(name: str, value: str) -> dict:
    return {"Cookie": f"{name}={value}"}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def _clear_rate_limit_counters():
    reset_in_memory_counters()
    yield
    reset_in_memory_counters()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return CapturingNotifier()


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sellerdesk_test.db'}")
    await create_all_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return make_session_factory(engine)


@pytest.fixture
def otp(session_maker, notifier, clock):
    return build_otp_components(session_maker, notifier=notifier, clock=clock)


@pytest.fixture
def make_user(session_maker):
    """Creates an account directly in the db , returns (public_id, email, access token)."""
    counter = {"n": 0}

    async def _make(email=None, password=strong_pass, name="test seller"):
        counter["n"] += 1
        email = email or f"seller{counter['n']}@example.com"
        async with session_maker.begin() as session:
            user = await insert_user_with_password(session, email, name, hash_password(password))
            public_id = user.public_id
        return public_id, email, create_access_token(public_id)
    return _make


@pytest.fixture
def app(engine, notifier, clock):
    return create_app(engine=engine, notifier=notifier, clock=clock)


@pytest.fixture
async def ac_client(app):
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
