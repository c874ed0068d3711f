"""
Pytest fixtures: a fake upstream served through httpx.MockTransport and a
TestClient whose outbound HTTP client is wired to it.
"""

from __future__ import annotations

import pytest

from .factories import FakeUpstream


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def api(upstream, monkeypatch):
    from fastapi.testclient import TestClient

    from solanascope_api import main
    from solanascope_api.settings import settings

    monkeypatch.setattr(main, '_client', upstream.client)
    monkeypatch.setattr(settings, 'dd_api_key', None)
    return TestClient(main.app)
