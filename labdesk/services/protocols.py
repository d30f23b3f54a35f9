"""
Protocol catalog - create, edit and delete study templates
"""

import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..api.client import LabApiClient
from ..api.schemas import ProtocolCreate
from ..core.exceptions import NotFoundException, ValidationException
from ..models import Protocol

logger = logging.getLogger(__name__)


def blank_field() -> Dict:
    """Template for a new field row; text unless changed"""
    return {"key": "", "label": "", "unit": "", "type": "text", "reference": {"low": "", "high": ""}}


def build_protocol(name: str, code: str, fields: List[Dict]) -> ProtocolCreate:
    """Validate the editor form into a protocol payload"""
    errors = {}
    if not (name or "").strip():
        errors["name"] = "Name is required"
    if not (code or "").strip():
        errors["code"] = "Code is required"
    for index, field in enumerate(fields):
        if not str(field.get("key") or "").strip():
            errors[f"fields.{index}.key"] = "Key is required"
        if not str(field.get("label") or "").strip():
            errors[f"fields.{index}.label"] = "Label is required"
    if errors:
        raise ValidationException("Protocol form has errors", errors=errors)

    rows = []
    for field in fields:
        row = dict(field)
        # reference ranges only belong to numeric fields
        if row.get("type") != "number":
            row.pop("reference", None)
        rows.append(row)

    try:
        return ProtocolCreate(name=name.strip(), code=code, fields=rows)
    except ValidationError as e:
        raise ValidationException("Protocol form has errors", errors={"form": str(e)}) from e


class ProtocolCatalog:
    """Protocols as last read from the backend"""

    def __init__(self, client: LabApiClient):
        self.client = client
        self.protocols: List[Protocol] = []

    async def refresh(self) -> List[Protocol]:
        self.protocols = await self.client.get_protocols()
        return self.protocols

    def get(self, protocol_id: str) -> Protocol:
        for protocol in self.protocols:
            if protocol.id == protocol_id:
                return protocol
        raise NotFoundException(f"Protocol {protocol_id} not found")

    def edit_form(self, protocol_id: Optional[str] = None) -> Dict:
        """Editable copy of a protocol, or an empty form"""
        if protocol_id is None:
            return {"name": "", "code": "", "fields": []}
        protocol = self.get(protocol_id)
        return {
            "name": protocol.name,
            "code": protocol.code,
            "fields": [field.model_dump(by_alias=True, exclude_none=True) for field in protocol.fields],
        }

    async def save(self, form: Dict, protocol_id: Optional[str] = None) -> Protocol:
        payload = build_protocol(form.get("name"), form.get("code"), form.get("fields", []))
        if protocol_id:
            protocol = await self.client.update_protocol(protocol_id, payload)
            logger.info(f"Updated protocol {protocol.code}")
        else:
            protocol = await self.client.create_protocol(payload)
            logger.info(f"Created protocol {protocol.code}")
        await self.refresh()
        return protocol

    async def delete(self, protocol_id: str):
        """Hard delete; orders keep their own study snapshot"""
        await self.client.delete_protocol(protocol_id)
        logger.info(f"Deleted protocol {protocol_id}")
        await self.refresh()
