"""
Patient model for LabDesk
"""

from datetime import date
from typing import Optional

from pydantic import Field

from .base import BaseSchema


class Patient(BaseSchema):
    """Patient identity record as served by the backend"""

    id: Optional[str] = Field(None, alias="_id")
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    dni: str = Field(..., description="National ID, used as human lookup key")
    dob: Optional[date] = None
    phone: Optional[str] = None
    insurer: Optional[str] = Field(None, alias="obraSocial")

    def __repr__(self):
        return f"<Patient(id={self.id!r}, dni='{self.dni}', name='{self.full_name}')>"

    @property
    def full_name(self) -> str:
        """Get patient's full name"""
        return f"{self.first_name} {self.last_name}"

    def matches(self, query: str) -> bool:
        """Free-text match: names case-insensitively, national ID by substring"""
        query = (query or "").strip()
        if not query:
            return True
        needle = query.lower()
        return (
            query in self.dni
            or needle in self.first_name.lower()
            or needle in self.last_name.lower()
        )


def filter_patients(patients, query: str):
    """Pure filter over an already loaded patient list"""
    return [patient for patient in patients if patient.matches(query)]
