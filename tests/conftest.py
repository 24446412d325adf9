import asyncio
import inspect
import os
import sys
from pathlib import Path

# Environment must be in place before sessionbridge modules read settings
os.environ.setdefault("TEST_MODE", "true")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("GITHUB_CLIENT_ID", "test-client-id")
os.environ.setdefault("GITHUB_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("CHROME_EXTENSION_ID", "abcdefghijklmnopabcdefghijklmnop")
os.environ.setdefault("OAUTH_STATE_MODE", "stored")
os.environ.setdefault("LOG_JSON", "false")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from sessionbridge.config import Settings  # noqa: E402
from sessionbridge.service.errors import ExchangeFailed, OAuthRequestFailed  # noqa: E402
from sessionbridge.service.runtime import reset_runtime_for_tests  # noqa: E402
from sessionbridge.service.sessions import SessionManager  # noqa: E402
from sessionbridge.service.tokens import TokenCodec  # noqa: E402
from sessionbridge.storage.memory import MemoryStore  # noqa: E402

TEST_SECRET = os.environ["JWT_SECRET"]


class FakeExchange:
    """OAuth exchange stand-in mapping codes to upstream credentials."""

    def __init__(self, credentials=None):
        self.credentials = dict(credentials or {"valid-code": "gho_abc"})
        self.calls = []
        self.unavailable = False

    async def exchange_code(self, code: str) -> str:
        self.calls.append(code)
        if self.unavailable:
            raise OAuthRequestFailed("token endpoint unreachable")
        if code not in self.credentials:
            raise ExchangeFailed("bad_verification_code")
        return self.credentials[code]


@pytest.fixture(autouse=True)
def reset_runtime_state():
    reset_runtime_for_tests()
    yield
    reset_runtime_for_tests()


@pytest.fixture
def settings():
    return Settings(
        jwt_secret=TEST_SECRET,
        store_backend="memory",
        test_mode=True,
        github_client_id="test-client-id",
        github_client_secret="test-client-secret",
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def codec():
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def exchange():
    return FakeExchange()


@pytest.fixture
def manager(store, codec, exchange, settings):
    return SessionManager(store, codec, exchange, settings)


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
