"""
Result entry form - collects typed values for every study of an order

One value map is kept per study (keyed by protocol id). Submission creates one
result per study, in order, and only completes the order when every study has
been recorded.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..api.client import LabApiClient
from ..api.schemas import OrderUpdate, ResultCreate
from ..core.exceptions import (
    ApiException, NotFoundException, ResultSubmissionException, WorkflowException,
)
from ..models import Order, OrderStatus, Protocol, Result, Study
from ..models.protocol import BaseField

logger = logging.getLogger(__name__)


class ResultEntryForm:
    """State and submission of the result-entry form for one order"""

    def __init__(self, client: LabApiClient, order: Order):
        if order.is_completed:
            raise WorkflowException(f"Order {order.id} is already completed")
        self.client = client
        self.order = order
        self.values: Dict[str, Dict[str, Any]] = {
            study.protocol_id: {} for study in order.studies
        }
        self.comments: str = ""
        self._protocols: Dict[str, Protocol] = {
            study.protocol_id: study.protocol
            for study in order.studies
            if study.protocol is not None
        }

    async def load_protocols(self):
        """Fetch definitions for studies the backend did not populate"""
        missing = [s.protocol_id for s in self.order.studies if s.protocol_id not in self._protocols]
        if not missing:
            return
        for protocol in await self.client.get_protocols():
            if protocol.id in missing:
                self._protocols[protocol.id] = protocol
        for protocol_id in missing:
            if protocol_id not in self._protocols:
                logger.warning(f"Protocol {protocol_id} of order {self.order.id} no longer exists")

    def protocol_for(self, study: Study) -> Optional[Protocol]:
        return self._protocols.get(study.protocol_id)

    def sections(self) -> List[Tuple[Study, List[BaseField]]]:
        """Each study with the fields that get an input control"""
        sections = []
        for study in self.order.studies:
            protocol = self.protocol_for(study)
            fields = protocol.input_fields() if protocol else []
            sections.append((study, fields))
        return sections

    def _field(self, protocol_id: str, key: str) -> BaseField:
        protocol = self._protocols.get(protocol_id)
        field = protocol.get_field(key) if protocol else None
        if protocol_id not in self.values or field is None:
            raise NotFoundException(f"Field {key} is not part of study {protocol_id}")
        return field

    def set_value(self, protocol_id: str, key: str, raw: str) -> Any:
        """Parse raw input with the field's type; empty input clears the value"""
        value = self._field(protocol_id, key).parse_input(raw)
        if value is None:
            self.values[protocol_id].pop(key, None)
        else:
            self.values[protocol_id][key] = value
        return value

    def get_value(self, protocol_id: str, key: str) -> Any:
        return self.values.get(protocol_id, {}).get(key)

    def build_results(self) -> List[ResultCreate]:
        return [
            ResultCreate(
                order_id=self.order.id,
                patient_id=self.order.patient_id,
                protocol_id=study.protocol_id,
                values=dict(self.values[study.protocol_id]),
                comments=self.comments,
            )
            for study in self.order.studies
        ]

    async def submit(self) -> List[Result]:
        """Create the results one study at a time, then complete the order

        Studies that already have a stored result for this order are skipped,
        so re-submitting after a partial failure does not duplicate them. The
        first failing study stops the batch and leaves the order status alone.
        """
        existing = await self.client.get_results(order_id=self.order.id)
        recorded = {result.protocol_id for result in existing}

        created: List[Result] = []
        submitted: List[str] = []
        for payload in self.build_results():
            if payload.protocol_id in recorded:
                logger.info(
                    f"Result for protocol {payload.protocol_id} of order {self.order.id} "
                    f"already stored, skipping"
                )
                continue
            try:
                created.append(await self.client.create_result(payload))
            except ApiException as e:
                logger.error(
                    f"Result batch for order {self.order.id} stopped at protocol "
                    f"{payload.protocol_id}: {e.message}"
                )
                raise ResultSubmissionException(e.message, submitted, payload.protocol_id) from e
            submitted.append(payload.protocol_id)
            logger.info(f"Created result for protocol {payload.protocol_id} of order {self.order.id}")

        await self.client.update_order(self.order.id, OrderUpdate(status=OrderStatus.COMPLETED))
        logger.info(f"Order {self.order.id} completed")
        return created
