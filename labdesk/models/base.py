"""
Common pydantic configuration for records exchanged with the backend
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema: backend names are aliases, Python names are accepted too"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict:
        """Serialize for the wire, using backend field names"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def split_reference(data, key: str, embedded_key: str = None):
    """Backend references arrive either as an id or as the populated record"""
    if isinstance(data, dict) and isinstance(data.get(key), dict):
        data = dict(data)
        embedded = data[key]
        if embedded_key:
            data[embedded_key] = embedded
        data[key] = embedded.get("_id", embedded.get("id"))
    return data
