"""Shared fixtures for the portfolio test suite."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from portfolio.config import MediumConfig, Settings
from portfolio.main import create_app
from portfolio.routes import auth
from portfolio.services.posts import PostStore

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct horse"


class FakeClock:
    """Returns a strictly increasing time, one minute per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture(autouse=True)
def reset_login_rate_limit():
    auth.limiter.reset()
    yield
    auth.limiter.reset()


@pytest.fixture
def empty_seed(tmp_path: Path) -> Path:
    seed = tmp_path / "seed.json"
    seed.write_text("[]", encoding="utf-8")
    return seed


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, empty_seed: Path, clock: FakeClock) -> PostStore:
    return PostStore(tmp_path / "data", seed_file=empty_seed, clock=clock)


@pytest.fixture
def medium_config() -> MediumConfig:
    return MediumConfig(username="tester", timeout=0.5)


@pytest.fixture
def settings(tmp_path: Path, medium_config: MediumConfig) -> Settings:
    data_dir = tmp_path / "site-data"
    data_dir.mkdir()
    (data_dir / "posts.json").write_text(json.dumps([]), encoding="utf-8")
    return Settings(
        data_dir=data_dir,
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
        secret_key="test-secret-key",
        medium=medium_config,
    )


@pytest.fixture
def client(settings: Settings) -> TestClient:
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def admin_client(client: TestClient) -> TestClient:
    response = client.post(
        "/api/blog/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client
