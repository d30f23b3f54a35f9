"""
Tests for the order composer
"""

import pytest

from labdesk.api.schemas import PatientCreate
from labdesk.core.exceptions import ApiException, NotFoundException, ValidationException
from labdesk.models import OrderStatus
from labdesk.services.composer import OrderComposer
from tests.conftest import generate_patient_data


@pytest.fixture
async def composer(client, patient, hemo_protocol, urine_protocol):
    composer = OrderComposer(client)
    await composer.load()
    return composer


class TestStudySelection:
    """Test adding and removing studies"""

    @pytest.mark.asyncio
    async def test_adding_twice_keeps_one_study(self, composer, hemo_protocol):
        assert composer.add_study(hemo_protocol.id)
        assert not composer.add_study(hemo_protocol.id)
        assert [s.protocol_id for s in composer.studies] == [hemo_protocol.id]

    @pytest.mark.asyncio
    async def test_studies_are_snapshots(self, composer, hemo_protocol, urine_protocol):
        composer.add_study(urine_protocol.id)
        composer.add_study(hemo_protocol.id)
        assert [(s.protocol_code, s.display_name) for s in composer.studies] == [
            ("ORINA", "Orina Completa"), ("HEMO", "Hemograma"),
        ]

    @pytest.mark.asyncio
    async def test_remove_study(self, composer, hemo_protocol, urine_protocol):
        composer.add_study(hemo_protocol.id)
        composer.add_study(urine_protocol.id)
        composer.remove_study(hemo_protocol.id)
        assert [s.protocol_id for s in composer.studies] == [urine_protocol.id]

    @pytest.mark.asyncio
    async def test_unknown_protocol(self, composer):
        with pytest.raises(NotFoundException):
            composer.add_study("nope")


class TestPatientSelection:
    """Test patient search and selection"""

    @pytest.mark.asyncio
    async def test_search_by_name_and_dni(self, composer, patient):
        assert [p.id for p in composer.search("ana")] == [patient.id]
        assert [p.id for p in composer.search("3011")] == [patient.id]
        assert composer.search("zzz") == []

    @pytest.mark.asyncio
    async def test_selecting_prefills_insurer(self, composer, patient):
        composer.select_patient(patient.id)
        assert composer.patient.id == patient.id
        assert composer.insurer == "OSDE"

    @pytest.mark.asyncio
    async def test_switching_patient_resets_insurer(self, client, patient):
        other = await client.create_patient(PatientCreate(**generate_patient_data(
            dni="20999888", first_name="Luis", insurer=None,
        )))
        composer = OrderComposer(client)
        await composer.load()

        composer.select_patient(patient.id)
        assert composer.insurer == "OSDE"
        composer.select_patient(other.id)
        assert composer.insurer == ""

    @pytest.mark.asyncio
    async def test_preselected_patient(self, client, patient):
        composer = OrderComposer(client)
        await composer.load(patient_id=patient.id)
        assert composer.patient.id == patient.id

    @pytest.mark.asyncio
    async def test_unknown_patient(self, composer):
        with pytest.raises(NotFoundException):
            composer.select_patient("nobody")


class TestSubmit:
    """Test order submission"""

    @pytest.mark.asyncio
    async def test_missing_patient_sends_nothing(self, composer, hemo_protocol, backend):
        composer.add_study(hemo_protocol.id)
        with pytest.raises(ValidationException) as exc_info:
            await composer.submit()
        assert "patient" in exc_info.value.errors
        assert backend.requests_to("POST", "/api/orders") == 0

    @pytest.mark.asyncio
    async def test_missing_studies_sends_nothing(self, composer, patient, backend):
        composer.select_patient(patient.id)
        with pytest.raises(ValidationException) as exc_info:
            await composer.submit()
        assert "studies" in exc_info.value.errors
        assert backend.requests_to("POST", "/api/orders") == 0

    @pytest.mark.asyncio
    async def test_creates_pending_order(self, composer, patient, hemo_protocol, backend):
        composer.select_patient(patient.id)
        composer.add_study(hemo_protocol.id)
        composer.auth_number = "AUT-77"
        composer.authorized = True

        order = await composer.submit()

        assert order.status == OrderStatus.PENDING
        assert not order.sample_taken
        assert order.patient_id == patient.id
        assert order.insurer == "OSDE"
        assert order.auth_number == "AUT-77"
        assert order.authorized
        assert order.scheduled_at is not None
        assert order.study_names == "Hemograma"
        stored = backend.orders[order.id]
        assert stored["studies"] == [{
            "protocolId": hemo_protocol.id, "protocolCode": "HEMO", "displayName": "Hemograma",
        }]

    @pytest.mark.asyncio
    async def test_backend_message_is_passed_through(self, composer, patient, hemo_protocol, backend):
        composer.select_patient(patient.id)
        composer.add_study(hemo_protocol.id)
        del backend.patients[patient.id]

        with pytest.raises(ApiException) as exc_info:
            await composer.submit()
        assert exc_info.value.message == "Patient does not exist"
        assert backend.orders == {}
