"""
Patient registry - listing, registration and patient detail
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List

from pydantic import ValidationError

from ..api.client import LabApiClient
from ..api.schemas import PatientCreate, PatientUpdate
from ..core.exceptions import ValidationException
from ..models import Order, Patient, filter_patients

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "first_name": "First name is required",
    "last_name": "Last name is required",
    "dni": "National ID is required",
    "dob": "Date of birth is required",
}


@dataclass
class PatientDetail:
    """A patient together with every order placed for them"""
    patient: Patient
    orders: List[Order] = field(default_factory=list)


def validate_registration(form: Dict[str, str]) -> PatientCreate:
    """Check required fields before anything is sent to the backend"""
    errors = {
        name: message
        for name, message in REQUIRED_FIELDS.items()
        if not str(form.get(name) or "").strip()
    }
    if not errors:
        try:
            form_dob = form["dob"]
            dob = form_dob if isinstance(form_dob, date) else date.fromisoformat(str(form_dob).strip())
        except ValueError:
            errors["dob"] = "Date of birth must be YYYY-MM-DD"
    if errors:
        raise ValidationException("Patient form has errors", errors=errors)

    try:
        return PatientCreate(
            first_name=form["first_name"].strip(),
            last_name=form["last_name"].strip(),
            dni=form["dni"].strip(),
            dob=dob,
            phone=(form.get("phone") or "").strip() or None,
            insurer=(form.get("insurer") or "").strip() or None,
        )
    except ValidationError as e:
        raise ValidationException("Patient form has errors", errors={"form": str(e)}) from e


class PatientRegistry:
    """Patient list as last read from the backend"""

    def __init__(self, client: LabApiClient):
        self.client = client
        self.patients: List[Patient] = []

    async def refresh(self) -> List[Patient]:
        self.patients = await self.client.get_patients()
        return self.patients

    def search(self, query: str) -> List[Patient]:
        return filter_patients(self.patients, query)

    async def register(self, form: Dict[str, str]) -> Patient:
        payload = validate_registration(form)
        patient = await self.client.create_patient(payload)
        logger.info(f"Registered patient {patient.dni}")
        await self.refresh()
        return patient

    async def update(self, patient_id: str, changes: PatientUpdate) -> Patient:
        patient = await self.client.update_patient(patient_id, changes)
        logger.info(f"Updated patient {patient.dni}")
        await self.refresh()
        return patient

    async def detail(self, patient_id: str) -> PatientDetail:
        patient, orders = await asyncio.gather(
            self.client.get_patient(patient_id),
            self.client.get_orders(),
        )
        return PatientDetail(
            patient=patient,
            orders=[order for order in orders if order.patient_id == patient_id],
        )
