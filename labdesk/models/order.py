"""
Order model for LabDesk
"""

from datetime import datetime, date
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from .base import BaseSchema, split_reference
from .patient import Patient
from .protocol import Protocol


class OrderStatus(str, Enum):
    """Order status enumeration, in lifecycle order"""
    PENDING = "pending"
    IN_PROCESS = "in-process"
    COMPLETED = "completed"

    @property
    def next_status(self) -> Optional["OrderStatus"]:
        """The only status this one may move to"""
        return _NEXT_STATUS.get(self)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Forward moves only; completing directly from pending is allowed"""
        order = list(OrderStatus)
        return order.index(target) > order.index(self)


_NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.IN_PROCESS,
    OrderStatus.IN_PROCESS: OrderStatus.COMPLETED,
}


class Study(BaseSchema):
    """Snapshot of a protocol taken when the order was composed"""

    protocol_id: str = Field(..., alias="protocolId")
    protocol_code: str = Field(..., alias="protocolCode")
    display_name: str = Field(..., alias="displayName")
    protocol: Optional[Protocol] = Field(None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def unpack_protocol(cls, data):
        return split_reference(data, "protocolId", "protocol")

    @classmethod
    def from_protocol(cls, protocol: Protocol) -> "Study":
        return cls(
            protocol_id=protocol.id,
            protocol_code=protocol.code,
            display_name=protocol.name,
        )

    @property
    def title(self) -> str:
        return f"{self.display_name} ({self.protocol_code})"


class Order(BaseSchema):
    """Request for one or more studies on one patient"""

    id: Optional[str] = Field(None, alias="_id")
    patient_id: str = Field(..., alias="patientId")
    patient: Optional[Patient] = Field(None, exclude=True)
    studies: List[Study] = Field(default_factory=list)
    insurer: Optional[str] = Field(None, alias="obraSocial")
    auth_number: Optional[str] = Field(None, alias="authNumber")
    authorized: bool = False
    sample_taken: bool = Field(False, alias="sampleTaken")
    status: OrderStatus = OrderStatus.PENDING
    scheduled_at: Optional[datetime] = Field(None, alias="scheduledAt")

    @model_validator(mode="before")
    @classmethod
    def unpack_patient(cls, data):
        return split_reference(data, "patientId", "patient")

    def __repr__(self):
        return f"<Order(id={self.id!r}, patient_id={self.patient_id!r}, status='{self.status.value}')>"

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING

    @property
    def is_completed(self) -> bool:
        """Check if order is completed"""
        return self.status == OrderStatus.COMPLETED

    @property
    def study_names(self) -> str:
        return ", ".join(study.display_name for study in self.studies)

    @property
    def patient_name(self) -> str:
        return self.patient.full_name if self.patient else self.patient_id

    def can_be_started(self) -> bool:
        return self.is_pending

    def can_record_results(self) -> bool:
        return not self.is_completed

    def can_toggle_sample(self) -> bool:
        return not self.is_completed

    def is_scheduled_on(self, day: date) -> bool:
        if self.scheduled_at is None:
            return False
        scheduled = self.scheduled_at
        if scheduled.tzinfo is not None:
            scheduled = scheduled.astimezone()
        return scheduled.date() == day
