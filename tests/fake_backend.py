"""
In-memory stand-in for the laboratory REST backend used by the tests
"""

import copy
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

TEST_USERNAME = "demo@lab"
TEST_PASSWORD = "demo123"
TEST_TOKEN = "test-token"


class BackendError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message


class FakeBackend:
    """Holds the stored records and the FastAPI app serving them"""

    def __init__(self):
        self.patients: Dict[str, dict] = {}
        self.protocols: Dict[str, dict] = {}
        self.orders: Dict[str, dict] = {}
        self.results: Dict[str, dict] = {}
        self.requests: List[Tuple[str, str]] = []
        self.auth_headers: List[Optional[str]] = []

        # failure injection
        self.fail_results_after: Optional[int] = None
        self.fail_order_updates = False

        self.app = self._create_app()

    @staticmethod
    def _new_id() -> str:
        return uuid4().hex[:24]

    def requests_to(self, method: str, path: str) -> int:
        return sum(1 for m, p in self.requests if m == method and p == path)

    # Population, the way the backend expands references
    def _populate_order(self, order: dict) -> dict:
        order = copy.deepcopy(order)
        patient = self.patients.get(order["patientId"])
        if patient:
            order["patientId"] = copy.deepcopy(patient)
        for study in order.get("studies", []):
            protocol = self.protocols.get(study["protocolId"])
            if protocol:
                study["protocolId"] = copy.deepcopy(protocol)
        return order

    def _populate_result(self, result: dict) -> dict:
        result = copy.deepcopy(result)
        protocol = self.protocols.get(result["protocolId"])
        if protocol:
            result["protocolId"] = copy.deepcopy(protocol)
        return result

    def _get(self, collection: Dict[str, dict], record_id: str, label: str) -> dict:
        if record_id not in collection:
            raise BackendError(404, f"{label} not found")
        return collection[record_id]

    def _create_app(self) -> FastAPI:
        app = FastAPI(title="Fake laboratory backend")
        backend = self

        @app.exception_handler(BackendError)
        async def backend_error_handler(request: Request, exc: BackendError):
            return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

        @app.middleware("http")
        async def record_and_authorize(request: Request, call_next):
            path = request.url.path
            backend.requests.append((request.method, path))
            backend.auth_headers.append(request.headers.get("authorization"))
            if path != "/api/auth/login" and request.headers.get("authorization") != f"Bearer {TEST_TOKEN}":
                return JSONResponse(status_code=401, content={"error": "Unauthorized"})
            return await call_next(request)

        # Auth
        @app.post("/api/auth/login")
        async def login(payload: Dict[str, Any] = Body(...)):
            if payload.get("username") != TEST_USERNAME or payload.get("password") != TEST_PASSWORD:
                raise BackendError(401, "Invalid credentials")
            return {"user": {"username": TEST_USERNAME, "name": "Demo Tech"}, "token": TEST_TOKEN}

        # Patients
        @app.get("/api/patients")
        async def list_patients(search: str = ""):
            patients = list(backend.patients.values())
            if search:
                needle = search.lower()
                patients = [
                    p for p in patients
                    if search in p["dni"] or needle in p["firstName"].lower() or needle in p["lastName"].lower()
                ]
            return patients

        @app.get("/api/patients/{patient_id}")
        async def get_patient(patient_id: str):
            return backend._get(backend.patients, patient_id, "Patient")

        @app.post("/api/patients", status_code=201)
        async def create_patient(payload: Dict[str, Any] = Body(...)):
            if any(p["dni"] == payload.get("dni") for p in backend.patients.values()):
                raise BackendError(400, "A patient with that DNI already exists")
            patient = dict(payload, _id=backend._new_id())
            backend.patients[patient["_id"]] = patient
            return patient

        @app.put("/api/patients/{patient_id}")
        async def update_patient(patient_id: str, payload: Dict[str, Any] = Body(...)):
            patient = backend._get(backend.patients, patient_id, "Patient")
            patient.update(payload)
            return patient

        # Orders
        @app.get("/api/orders")
        async def list_orders(status: str = ""):
            orders = [backend._populate_order(o) for o in backend.orders.values()]
            if status:
                orders = [o for o in orders if o["status"] == status]
            return orders

        @app.get("/api/orders/{order_id}")
        async def get_order(order_id: str):
            return backend._populate_order(backend._get(backend.orders, order_id, "Order"))

        @app.post("/api/orders", status_code=201)
        async def create_order(payload: Dict[str, Any] = Body(...)):
            if payload.get("patientId") not in backend.patients:
                raise BackendError(400, "Patient does not exist")
            if not payload.get("studies"):
                raise BackendError(400, "Order needs at least one study")
            order = dict(payload, _id=backend._new_id(), status="pending", sampleTaken=False)
            backend.orders[order["_id"]] = order
            return backend._populate_order(order)

        @app.put("/api/orders/{order_id}")
        async def update_order(order_id: str, payload: Dict[str, Any] = Body(...)):
            order = backend._get(backend.orders, order_id, "Order")
            if backend.fail_order_updates:
                raise BackendError(500, "Order could not be updated")
            order.update(payload)
            return backend._populate_order(order)

        # Protocols
        @app.get("/api/protocols")
        async def list_protocols():
            return list(backend.protocols.values())

        @app.get("/api/protocols/{protocol_id}")
        async def get_protocol(protocol_id: str):
            return backend._get(backend.protocols, protocol_id, "Protocol")

        @app.post("/api/protocols", status_code=201)
        async def create_protocol(payload: Dict[str, Any] = Body(...)):
            protocol = dict(payload, _id=backend._new_id())
            backend.protocols[protocol["_id"]] = protocol
            return protocol

        @app.put("/api/protocols/{protocol_id}")
        async def update_protocol(protocol_id: str, payload: Dict[str, Any] = Body(...)):
            protocol = backend._get(backend.protocols, protocol_id, "Protocol")
            protocol.update(payload)
            return protocol

        @app.delete("/api/protocols/{protocol_id}")
        async def delete_protocol(protocol_id: str):
            backend._get(backend.protocols, protocol_id, "Protocol")
            del backend.protocols[protocol_id]
            return {"message": "Protocol deleted"}

        # Results
        @app.post("/api/results", status_code=201)
        async def create_result(payload: Dict[str, Any] = Body(...)):
            if backend.fail_results_after is not None and len(backend.results) >= backend.fail_results_after:
                raise BackendError(500, "Database unavailable")
            result = dict(payload, _id=backend._new_id())
            backend.results[result["_id"]] = result
            return backend._populate_result(result)

        @app.get("/api/results")
        async def list_results(orderId: str = ""):
            results = list(backend.results.values())
            if orderId:
                results = [r for r in results if r["orderId"] == orderId]
            return [backend._populate_result(r) for r in results]

        # Reports
        @app.post("/api/reports/generate")
        async def generate_report(payload: Dict[str, Any] = Body(...)):
            order_id = payload.get("orderId")
            backend._get(backend.orders, order_id, "Order")
            return {"orderId": order_id, "url": f"/reports/{order_id}.pdf"}

        return app
