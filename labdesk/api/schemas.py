"""
Pydantic schemas for LabDesk API requests
Defines the request bodies sent to the backend REST endpoints
"""

from datetime import datetime, date
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..models.base import BaseSchema
from ..models.order import OrderStatus, Study
from ..models.protocol import ProtocolField


# Auth schemas
class LoginRequest(BaseSchema):
    """Credentials for POST /auth/login"""
    username: str
    password: str


class LoginResponse(BaseSchema):
    """Identity issued by the backend"""
    user: Dict[str, Any] = Field(default_factory=dict)
    token: str


# Patient schemas
class PatientCreate(BaseSchema):
    """Schema for registering a new patient"""
    first_name: str = Field(..., alias="firstName", min_length=1)
    last_name: str = Field(..., alias="lastName", min_length=1)
    dni: str = Field(..., min_length=1)
    dob: date
    phone: Optional[str] = None
    insurer: Optional[str] = Field(None, alias="obraSocial")


class PatientUpdate(BaseSchema):
    """Schema for updating patient information"""
    first_name: Optional[str] = Field(None, alias="firstName", min_length=1)
    last_name: Optional[str] = Field(None, alias="lastName", min_length=1)
    dni: Optional[str] = Field(None, min_length=1)
    dob: Optional[date] = None
    phone: Optional[str] = None
    insurer: Optional[str] = Field(None, alias="obraSocial")


# Protocol schemas
class ProtocolCreate(BaseSchema):
    """Schema for creating or replacing a protocol"""
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    fields: List[ProtocolField] = Field(default_factory=list)

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper()


# Order schemas
class OrderCreate(BaseSchema):
    """Schema for creating a new order"""
    patient_id: str = Field(..., alias="patientId")
    studies: List[Study] = Field(..., min_length=1)
    insurer: Optional[str] = Field(None, alias="obraSocial")
    auth_number: Optional[str] = Field(None, alias="authNumber")
    authorized: bool = False
    scheduled_at: datetime = Field(..., alias="scheduledAt")


class OrderUpdate(BaseSchema):
    """Schema for updating an order in place"""
    status: Optional[OrderStatus] = None
    sample_taken: Optional[bool] = Field(None, alias="sampleTaken")


# Result schemas
class ResultCreate(BaseSchema):
    """Schema for recording one study's results"""
    order_id: str = Field(..., alias="orderId")
    patient_id: str = Field(..., alias="patientId")
    protocol_id: str = Field(..., alias="protocolId")
    values: Dict[str, Any] = Field(default_factory=dict)
    comments: str = ""

    def to_payload(self) -> dict:
        # comments are sent even when empty
        return self.model_dump(by_alias=True, mode="json")
