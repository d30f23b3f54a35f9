# Domain models exchanged with the backend

from .patient import Patient, filter_patients
from .protocol import (
    Protocol, ProtocolField, FieldType, ControlKind, FieldControl, ResultFlag,
    ReferenceRange, TextField, NumberField, SelectField, UnknownField,
    OBSERVATIONS_KEY,
)
from .order import Order, OrderStatus, Study
from .result import Result

__all__ = [
    # Models
    "Patient",
    "Protocol",
    "Order",
    "Study",
    "Result",

    # Protocol fields
    "ProtocolField",
    "TextField",
    "NumberField",
    "SelectField",
    "UnknownField",
    "ReferenceRange",
    "FieldControl",

    # Enums
    "OrderStatus",
    "FieldType",
    "ControlKind",
    "ResultFlag",

    # Helpers
    "filter_patients",
    "OBSERVATIONS_KEY",
]
