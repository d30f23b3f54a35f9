"""
Pytest configuration and fixtures for LabDesk tests
"""

import httpx
import pytest

from labdesk.api.client import LabApiClient
from labdesk.api.schemas import PatientCreate, ProtocolCreate
from labdesk.core.session import SessionContext, TokenStore
from tests.fake_backend import FakeBackend, TEST_PASSWORD, TEST_USERNAME

BASE_URL = "http://testserver/api"


@pytest.fixture
def backend() -> FakeBackend:
    """Fresh in-memory backend for each test"""
    return FakeBackend()


@pytest.fixture
def token_file(tmp_path):
    return tmp_path / "session" / "token"


@pytest.fixture
def session(token_file) -> SessionContext:
    return SessionContext(TokenStore(token_file))


@pytest.fixture
async def anonymous_client(backend, session):
    """Client wired to the fake backend, not logged in"""
    transport = httpx.ASGITransport(app=backend.app)
    async with LabApiClient(session, base_url=BASE_URL, transport=transport) as client:
        yield client


@pytest.fixture
async def client(anonymous_client, session):
    """Client with an authenticated session"""
    await session.login(anonymous_client, TEST_USERNAME, TEST_PASSWORD)
    return anonymous_client


@pytest.fixture
async def patient(client):
    """Registered patient Ana Gomez"""
    return await client.create_patient(PatientCreate(**generate_patient_data()))


@pytest.fixture
async def hemo_protocol(client):
    """Hemogram protocol with a ranged numeric field"""
    return await client.create_protocol(ProtocolCreate(**generate_protocol_data()))


@pytest.fixture
async def urine_protocol(client):
    """Urine protocol mixing text, select and an observations field"""
    return await client.create_protocol(ProtocolCreate(**generate_protocol_data(
        code="orina",
        name="Orina Completa",
        fields=[
            {"key": "color", "label": "Color", "type": "select", "options": ["Amarillo", "Ambar"]},
            {"key": "ph", "label": "pH", "type": "number", "reference": {"low": 5, "high": 8}},
            {"key": "observations", "label": "Observations", "type": "text"},
        ],
    )))


def mock_client(handler, session: SessionContext) -> LabApiClient:
    """Client whose requests go to a plain handler function"""
    return LabApiClient(session, base_url=BASE_URL, transport=httpx.MockTransport(handler))


# Test data generators
def generate_patient_data(**overrides):
    """Generate test patient data"""
    data = {
        "dni": "30111222",
        "first_name": "Ana",
        "last_name": "Gomez",
        "dob": "1990-01-01",
        "phone": "11-5555-0101",
        "insurer": "OSDE",
    }
    data.update(overrides)
    return data


def generate_protocol_data(**overrides):
    """Generate test protocol data"""
    data = {
        "code": "HEMO",
        "name": "Hemograma",
        "fields": [
            {"key": "hb", "label": "Hemoglobina", "type": "number", "unit": "g/dL",
             "reference": {"low": 12, "high": 16}},
        ],
    }
    data.update(overrides)
    return data


def generate_order_data(**overrides):
    """Generate a backend order record with populated references"""
    data = {
        "_id": "order-1",
        "patientId": {"_id": "patient-1", "firstName": "Ana", "lastName": "Gomez", "dni": "30111222"},
        "studies": [
            {"protocolId": "protocol-1", "protocolCode": "HEMO", "displayName": "Hemograma"},
        ],
        "obraSocial": "OSDE",
        "authNumber": "A-1",
        "authorized": True,
        "sampleTaken": False,
        "status": "pending",
        "scheduledAt": "2026-10-19T10:30:00Z",
    }
    data.update(overrides)
    return data
