# tests/conftest.py
from __future__ import annotations

import os
import random
from pathlib import Path

import pytest

from tests.utils import (
    RecordingMedia,
    StubConsentBroker,
    StubEncoder,
    make_dispatcher,
    make_image,
    make_store,
)


# -------- Global deterministic seed --------
@pytest.fixture(autouse=True, scope="session")
def _seed_session():
    random.seed(1337)
    os.environ.setdefault("PYTHONHASHSEED", "0")
    yield


@pytest.fixture(autouse=True)
def _no_env_overrides(monkeypatch):
    """Keep developer GALLERY_AGENT_* variables from leaking into tests."""
    for key in list(os.environ):
        if key.startswith("GALLERY_AGENT_"):
            monkeypatch.delenv(key, raising=False)


# -------- Store / fakes --------
@pytest.fixture
def store():
    return make_store()


@pytest.fixture
def media():
    return RecordingMedia()


@pytest.fixture
def consent():
    return StubConsentBroker()


@pytest.fixture
def encoder():
    return StubEncoder({"beach": [1.0, 0.0, 0.0, 0.0], "city": [0.0, 0.0, 1.0, 0.0]})


@pytest.fixture
def dispatcher(store, media, consent, encoder):
    return make_dispatcher(store=store, media=media, consent=consent, encoder=encoder)


# -------- Image files --------
@pytest.fixture
def image_factory(tmp_path: Path):
    """
    Callable factory writing small solid-color images into tmp_path.

    Usage:
        p = image_factory("a.jpg", size=(40, 20), color=(0, 0, 255))
    """

    def _factory(name: str, *, size: tuple[int, int] = (32, 24), color: tuple[int, int, int] = (200, 30, 30)) -> Path:
        return make_image(tmp_path / name, size=size, color=color)

    return _factory


# -------- Pytest markers --------
def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks integration tests")
