"""
Order composer - assembles a new order from a patient and selected protocols
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..api.client import LabApiClient
from ..api.schemas import OrderCreate
from ..core.exceptions import NotFoundException, ValidationException
from ..models import Order, Patient, Protocol, Study, filter_patients

logger = logging.getLogger(__name__)


class OrderComposer:
    """Holds the state of the new-order form"""

    def __init__(self, client: LabApiClient):
        self.client = client
        self.patients: List[Patient] = []
        self.protocols: List[Protocol] = []

        self.patient: Optional[Patient] = None
        self.studies: List[Study] = []
        self.insurer: str = ""
        self.auth_number: str = ""
        self.authorized: bool = False

    async def load(self, patient_id: Optional[str] = None):
        """Fetch reference data; optionally pre-select a patient"""
        self.patients, self.protocols = await asyncio.gather(
            self.client.get_patients(),
            self.client.get_protocols(),
        )
        if patient_id:
            self.select_patient(patient_id)

    def search(self, query: str) -> List[Patient]:
        return filter_patients(self.patients, query)

    def select_patient(self, patient_id: str) -> Patient:
        patient = next((p for p in self.patients if p.id == patient_id), None)
        if patient is None:
            raise NotFoundException(f"Patient {patient_id} not found")
        self.patient = patient
        self.insurer = patient.insurer or ""
        return patient

    def add_study(self, protocol_id: str) -> bool:
        """Append a protocol snapshot; adding a selected protocol again does nothing"""
        if any(study.protocol_id == protocol_id for study in self.studies):
            return False
        protocol = next((p for p in self.protocols if p.id == protocol_id), None)
        if protocol is None:
            raise NotFoundException(f"Protocol {protocol_id} not found")
        self.studies.append(Study.from_protocol(protocol))
        return True

    def remove_study(self, protocol_id: str):
        self.studies = [study for study in self.studies if study.protocol_id != protocol_id]

    def validate(self):
        if self.patient is None:
            raise ValidationException(
                "A patient must be selected", errors={"patient": "Required"}
            )
        if not self.studies:
            raise ValidationException(
                "At least one study must be added", errors={"studies": "Required"}
            )

    def build_payload(self) -> OrderCreate:
        self.validate()
        return OrderCreate(
            patient_id=self.patient.id,
            studies=list(self.studies),
            insurer=self.insurer or None,
            auth_number=self.auth_number or None,
            authorized=self.authorized,
            scheduled_at=datetime.now(timezone.utc),
        )

    async def submit(self) -> Order:
        """Validate, then create the order; nothing is sent when validation fails"""
        payload = self.build_payload()
        order = await self.client.create_order(payload)
        logger.info(
            f"Created order {order.id} for patient {self.patient.dni} "
            f"with {len(self.studies)} studies"
        )
        return order
