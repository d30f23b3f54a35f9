"""
Protocol (study template) model for LabDesk

A protocol owns an ordered list of typed fields. The same field objects drive
the result-entry prompts and the report rows, so parsing, range evaluation and
display formatting live here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar, List, Literal, Optional, Union

from pydantic import Discriminator, Field, Tag, field_validator

from ..core.exceptions import ValidationException
from .base import BaseSchema

OBSERVATIONS_KEY = "observations"
EMPTY_PLACEHOLDER = "-"


class FieldType(str, Enum):
    """Supported protocol field types"""
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"


class ResultFlag(Enum):
    """Result abnormal flag enumeration"""
    NORMAL = ""
    LOW = "L"     # Below reference low
    HIGH = "H"    # Above reference high


class ControlKind(str, Enum):
    """Input control used to capture a field value"""
    TEXTAREA = "textarea"
    DECIMAL = "decimal"
    CHOICE = "choice"


@dataclass(frozen=True)
class FieldControl:
    """What the UI has to draw for one field"""
    kind: ControlKind
    key: str
    label: str
    choices: tuple = ()


def to_number(value: Any) -> Optional[float]:
    """Parse a stored value as float, None when it is not evaluable"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_absent(value: Any) -> bool:
    return value is None or value == ""


class ReferenceRange(BaseSchema):
    """Numeric reference interval, both bounds inclusive"""

    low: Optional[float] = None
    high: Optional[float] = None

    @field_validator("low", "high", mode="before")
    @classmethod
    def blank_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_defined(self) -> bool:
        return self.low is not None and self.high is not None

    def flag(self, value: Any) -> ResultFlag:
        """Strict comparison against the bounds; boundary values are normal"""
        if not self.is_defined:
            return ResultFlag.NORMAL
        number = to_number(value)
        if number is None:
            return ResultFlag.NORMAL
        if number < self.low:
            return ResultFlag.LOW
        if number > self.high:
            return ResultFlag.HIGH
        return ResultFlag.NORMAL

    def describe(self) -> str:
        if not self.is_defined:
            return EMPTY_PLACEHOLDER
        return f"{format_number(self.low)} - {format_number(self.high)}"


class BaseField(BaseSchema):
    """Behaviour shared by every field variant"""

    key: str
    label: str
    unit: Optional[str] = None

    control_kind: ClassVar[Optional[ControlKind]] = None

    @field_validator("unit", mode="before")
    @classmethod
    def blank_unit_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_observations(self) -> bool:
        return self.key == OBSERVATIONS_KEY

    @property
    def reference_text(self) -> str:
        return EMPTY_PLACEHOLDER

    @property
    def prompt_label(self) -> str:
        """Label with unit and reference range, as shown next to the input"""
        label = self.label
        if self.unit:
            label += f" ({self.unit})"
        if self.reference_text != EMPTY_PLACEHOLDER:
            label += f" Ref: {self.reference_text}"
        return label

    def control(self) -> Optional[FieldControl]:
        if self.control_kind is None:
            return None
        return FieldControl(kind=self.control_kind, key=self.key, label=self.prompt_label)

    def parse_input(self, raw: str) -> Any:
        """Convert raw operator input into the stored value; None means absent"""
        raise NotImplementedError

    def flag(self, value: Any) -> ResultFlag:
        return ResultFlag.NORMAL

    def is_out_of_range(self, value: Any) -> bool:
        return self.flag(value) is not ResultFlag.NORMAL

    def display_value(self, value: Any) -> str:
        """`value unit`, or the placeholder when nothing was entered"""
        if is_absent(value):
            return EMPTY_PLACEHOLDER
        text = format_number(value) if isinstance(value, float) else str(value)
        if self.unit:
            text += f" {self.unit}"
        return text


class TextField(BaseField):
    """Multi-line free text"""

    type: Literal["text"] = "text"
    control_kind: ClassVar[Optional[ControlKind]] = ControlKind.TEXTAREA

    def parse_input(self, raw: str) -> Any:
        if raw is None or not raw.strip():
            return None
        return raw


class NumberField(BaseField):
    """Decimal value with an optional reference range"""

    type: Literal["number"] = "number"
    reference: Optional[ReferenceRange] = None
    control_kind: ClassVar[Optional[ControlKind]] = ControlKind.DECIMAL

    @property
    def reference_text(self) -> str:
        if self.reference is None:
            return EMPTY_PLACEHOLDER
        return self.reference.describe()

    def parse_input(self, raw: str) -> Any:
        if raw is None or not str(raw).strip():
            return None
        number = to_number(str(raw).strip().replace(",", "."))
        if number is None:
            raise ValidationException(
                f"{self.label}: '{raw}' is not a number",
                errors={self.key: "Must be a number"},
            )
        return number

    def flag(self, value: Any) -> ResultFlag:
        if self.reference is None:
            return ResultFlag.NORMAL
        return self.reference.flag(value)


class SelectField(BaseField):
    """One value drawn from a fixed option list"""

    type: Literal["select"] = "select"
    options: List[str] = Field(default_factory=list)
    control_kind: ClassVar[Optional[ControlKind]] = ControlKind.CHOICE

    def control(self) -> Optional[FieldControl]:
        return FieldControl(
            kind=self.control_kind,
            key=self.key,
            label=self.prompt_label,
            choices=tuple(self.options),
        )

    def parse_input(self, raw: str) -> Any:
        if raw is None or not raw.strip():
            return None
        if raw not in self.options:
            raise ValidationException(
                f"{self.label}: '{raw}' is not one of {', '.join(self.options)}",
                errors={self.key: "Not an allowed option"},
            )
        return raw


class UnknownField(BaseField):
    """Field whose type this client does not know; it is never rendered"""

    type: Optional[str] = None

    def parse_input(self, raw: str) -> Any:
        return None


def _field_tag(value: Any) -> str:
    if isinstance(value, dict):
        field_type = value.get("type")
    else:
        field_type = getattr(value, "type", None)
    field_type = getattr(field_type, "value", field_type)
    if field_type in {t.value for t in FieldType}:
        return field_type
    return "unknown"


ProtocolField = Annotated[
    Union[
        Annotated[TextField, Tag("text")],
        Annotated[NumberField, Tag("number")],
        Annotated[SelectField, Tag("select")],
        Annotated[UnknownField, Tag("unknown")],
    ],
    Discriminator(_field_tag),
]


class Protocol(BaseSchema):
    """Named, coded template for one type of study"""

    id: Optional[str] = Field(None, alias="_id")
    code: str
    name: str
    fields: List[ProtocolField] = Field(default_factory=list)

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper()

    def __repr__(self):
        return f"<Protocol(id={self.id!r}, code='{self.code}', fields={len(self.fields)})>"

    @property
    def title(self) -> str:
        return f"{self.name} ({self.code})"

    def get_field(self, key: str) -> Optional[BaseField]:
        for field in self.fields:
            if field.key == key:
                return field
        return None

    def input_fields(self) -> List[BaseField]:
        """Fields that get an input control, in declared order"""
        return [field for field in self.fields if field.control() is not None]

    def table_fields(self) -> List[BaseField]:
        """Fields shown as report rows; observations are rendered apart"""
        return [field for field in self.fields if not field.is_observations]
