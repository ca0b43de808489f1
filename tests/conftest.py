from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path for direct imports.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from fallback import UnknownCountry  # noqa: E402

TEST_CONFIG = {"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"}


@pytest.fixture
def make_app():
    def _make(**kwargs):
        kwargs.setdefault("fallback", UnknownCountry())
        return create_app(dict(TEST_CONFIG), **kwargs)

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()
