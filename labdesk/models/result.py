"""
Result model for LabDesk
"""

from typing import Any, Dict, Optional

from pydantic import Field, model_validator

from .base import BaseSchema, split_reference
from .protocol import OBSERVATIONS_KEY, Protocol, is_absent


class Result(BaseSchema):
    """Recorded field values for one study within one order"""

    id: Optional[str] = Field(None, alias="_id")
    order_id: str = Field(..., alias="orderId")
    patient_id: Optional[str] = Field(None, alias="patientId")
    protocol_id: str = Field(..., alias="protocolId")
    protocol: Optional[Protocol] = Field(None, exclude=True)
    values: Dict[str, Any] = Field(default_factory=dict)
    comments: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def unpack_references(cls, data):
        data = split_reference(data, "protocolId", "protocol")
        data = split_reference(data, "orderId")
        return split_reference(data, "patientId")

    def __repr__(self):
        return f"<Result(id={self.id!r}, order_id={self.order_id!r}, protocol_id={self.protocol_id!r})>"

    @property
    def observations(self) -> Optional[str]:
        value = self.values.get(OBSERVATIONS_KEY)
        if is_absent(value):
            return None
        return str(value)
