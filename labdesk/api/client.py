"""
REST API client for LabDesk
Wraps the backend endpoints used by the console: auth, patients, orders,
protocols, results and reports
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import ApiException
from ..core.session import SessionContext
from ..models import Order, Patient, Protocol, Result
from .schemas import (
    LoginRequest, LoginResponse,
    PatientCreate, PatientUpdate,
    ProtocolCreate,
    OrderCreate, OrderUpdate,
    ResultCreate,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Request failed"
UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from server"


def error_message(response: httpx.Response) -> str:
    """Human readable message from an error response body"""
    try:
        body = response.json()
    except ValueError:
        return GENERIC_ERROR_MESSAGE
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return GENERIC_ERROR_MESSAGE


class LabApiClient:
    """Async client for the laboratory backend"""

    def __init__(
        self,
        session: SessionContext,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.base_url = (base_url or settings.api_url).rstrip("/") + "/"
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": self.session.authorization_header,
        }

    async def _request(self, method: str, path: str, model=None, many: bool = False, **kwargs) -> Any:
        """Issue one request; with `model` the body is validated into it (a list when `many`)"""
        try:
            response = await self._client.request(
                method, path.lstrip("/"), headers=self._headers(), **kwargs
            )
        except httpx.TransportError as e:
            logger.error(f"{method} {path} could not reach backend: {e}")
            raise ApiException(f"Could not reach server: {e}") from e

        if response.is_error:
            message = error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiException(message, status_code=response.status_code)

        logger.debug(f"{method} {path} -> {response.status_code}")
        data = None
        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                raise ApiException(GENERIC_ERROR_MESSAGE, status_code=response.status_code) from e
        if model is None:
            return data

        try:
            if many:
                if data is None:
                    return []
                if not isinstance(data, list):
                    raise ApiException(UNEXPECTED_RESPONSE_MESSAGE, status_code=response.status_code)
                return [model.model_validate(item) for item in data]
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"{method} {path} returned a body that does not match {model.__name__}: {e}")
            raise ApiException(UNEXPECTED_RESPONSE_MESSAGE, status_code=response.status_code) from e

    # Auth
    async def login(self, username: str, password: str) -> LoginResponse:
        body = LoginRequest(username=username, password=password)
        return await self._request("POST", "/auth/login", LoginResponse, json=body.to_payload())

    # Patients
    async def get_patients(self, search: str = "") -> List[Patient]:
        params = {"search": search} if search else None
        return await self._request("GET", "/patients", Patient, many=True, params=params)

    async def get_patient(self, patient_id: str) -> Patient:
        return await self._request("GET", f"/patients/{patient_id}", Patient)

    async def create_patient(self, patient: PatientCreate) -> Patient:
        return await self._request("POST", "/patients", Patient, json=patient.to_payload())

    async def update_patient(self, patient_id: str, patient: PatientUpdate) -> Patient:
        return await self._request("PUT", f"/patients/{patient_id}", Patient, json=patient.to_payload())

    # Orders
    async def get_orders(self, **params) -> List[Order]:
        return await self._request("GET", "/orders", Order, many=True, params=params or None)

    async def get_order(self, order_id: str) -> Order:
        return await self._request("GET", f"/orders/{order_id}", Order)

    async def create_order(self, order: OrderCreate) -> Order:
        return await self._request("POST", "/orders", Order, json=order.to_payload())

    async def update_order(self, order_id: str, changes: OrderUpdate) -> Order:
        return await self._request("PUT", f"/orders/{order_id}", Order, json=changes.to_payload())

    # Protocols
    async def get_protocols(self) -> List[Protocol]:
        return await self._request("GET", "/protocols", Protocol, many=True)

    async def get_protocol(self, protocol_id: str) -> Protocol:
        return await self._request("GET", f"/protocols/{protocol_id}", Protocol)

    async def create_protocol(self, protocol: ProtocolCreate) -> Protocol:
        return await self._request("POST", "/protocols", Protocol, json=protocol.to_payload())

    async def update_protocol(self, protocol_id: str, protocol: ProtocolCreate) -> Protocol:
        return await self._request("PUT", f"/protocols/{protocol_id}", Protocol, json=protocol.to_payload())

    async def delete_protocol(self, protocol_id: str):
        await self._request("DELETE", f"/protocols/{protocol_id}")

    # Results
    async def create_result(self, result: ResultCreate) -> Result:
        return await self._request("POST", "/results", Result, json=result.to_payload())

    async def get_results(self, order_id: Optional[str] = None) -> List[Result]:
        params = {"orderId": order_id} if order_id else None
        return await self._request("GET", "/results", Result, many=True, params=params)

    # Reports
    async def generate_report(self, order_id: str) -> Dict[str, Any]:
        """Ask the backend to generate its own copy of the report"""
        data = await self._request("POST", "/reports/generate", json={"orderId": order_id})
        return data or {}
