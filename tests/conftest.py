"""
Shared fixtures. Nothing here touches the network.
"""

import pytest

from services.feature_service import ServiceFeatureTable
from tests.fakes import LAYER_URL, SERVICE_URL, FakeResponse, FakeSession, make_layer_info


@pytest.fixture
def service_responses():
    """GET payloads for a healthy, editable service."""
    return {
        SERVICE_URL: FakeResponse({"layers": [{"id": 0, "name": "PointsofRelaxing"}]}),
        LAYER_URL: FakeResponse(make_layer_info()),
    }


@pytest.fixture
def fake_session(service_responses):
    return FakeSession(get_responses=service_responses)


@pytest.fixture
def table(fake_session):
    """An unloaded table wired to the fake session."""
    return ServiceFeatureTable(LAYER_URL, api_key="test-key", session=fake_session)


@pytest.fixture
def loaded_table(table):
    return table.load()
