"""
tests/conftest.py – shared pytest configuration.

Integration tests (marked with @pytest.mark.integration) are skipped by
default. Pass --integration to opt in:

    uv run pytest --integration tests/test_integration.py -v
"""
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.ratelimit import limiter
from app.services.storage import MediaStorage
from app.services.tokens import TokenUser, get_token_service


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="Run integration tests that make real Gemini API calls.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if not config.getoption("--integration"):
        skip = pytest.mark.skip(reason="Pass --integration to run this test.")
        for item in items:
            if item.get_closest_marker("integration"):
                item.add_marker(skip)


# ── Fixtures ──────────────────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _isolated_app_state(tmp_path, monkeypatch):
    """Disable rate limits, empty the response cache and point uploads at a temp dir."""
    monkeypatch.setattr(limiter, "enabled", False)
    monkeypatch.setattr(app.state, "media_storage", MediaStorage(tmp_path / "uploads", 1024 * 1024))
    app.state.response_cache.clear()
    yield
    app.dependency_overrides.clear()
    app.state.response_cache.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _bearer(user: TokenUser) -> dict[str, str]:
    token = get_token_service().create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user() -> TokenUser:
    return TokenUser(id="user_test_1", email="tester@example.com", role="user")


@pytest.fixture
def auth_headers(user: TokenUser) -> dict[str, str]:
    return _bearer(user)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return _bearer(TokenUser(id="user_admin_1", email="admin@example.com", role="admin"))
