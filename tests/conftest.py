"""Shared fixtures: isolated stores, a controllable clock and an HTTP client."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from config import DEFAULT_ROOMS
from database import ConversationStore, ProfileStore, ThemeStore
from main import create_app

APP_KEY = "test-key"


class FakeClock:
    """Returns a fixed time that tests advance by hand."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def tick(self, seconds=1):
        self.now += timedelta(seconds=seconds)


class Settings:
    APP_KEY = APP_KEY
    MAX_BODY_BYTES = 1024
    LOG_LEVEL = "WARNING"
    ROOMS = DEFAULT_ROOMS


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return ConversationStore(DEFAULT_ROOMS, clock=clock)


@pytest.fixture
def themes():
    return ThemeStore()


@pytest.fixture
def settings():
    return Settings


@pytest.fixture
def client(store, themes, settings):
    app = create_app(store, themes, ProfileStore(), settings=settings)
    with TestClient(app, headers={"x-staticplay-app-key": APP_KEY, "x-staticplay-user-id": "sp_tester"}) as c:
        yield c
